"""
foreman impact - Show which features a change to one feature affects.
"""

from pathlib import Path

from foreman.features.impact import analyze_impact, apply_impact_recommendations
from foreman.features.store import require_feature_list, save_feature_list
from foreman.lib.config import ProjectProfile
from foreman.lib.progress import append_progress_log


def cmd_impact(args, cwd: Path, profile: ProjectProfile) -> int:
    """List dependents and same-module features; --apply flags them for review."""
    feature_list = require_feature_list(cwd)
    impact = analyze_impact(feature_list.features, args.feature_id)

    print(f"Impact of changes to: {impact.changed_id}")
    print("=" * 60)

    if impact.directly_affected:
        print()
        print("Directly affected (depend on it):")
        for f in impact.directly_affected:
            print(f"  {f.id} ({f.status})")

    indirect = [i for i in impact.transitive_chain if i not in {f.id for f in impact.directly_affected}]
    if indirect:
        print()
        print("Transitively affected:")
        for feature_id in indirect:
            print(f"  {feature_id}")

    if impact.potentially_affected:
        print()
        print("Potentially affected (same module):")
        for f in impact.potentially_affected:
            print(f"  {f.id} ({f.status})")

    if not (impact.directly_affected or impact.potentially_affected or indirect):
        print()
        print("No other features are affected.")
        return 0

    if impact.recommendations:
        print()
        print("Recommendations:")
        for rec in impact.recommendations:
            print(f"  {rec.feature_id}: {rec.action} - {rec.reason}")

    if args.apply and impact.recommendations:
        changed = apply_impact_recommendations(feature_list.features, impact.recommendations)
        save_feature_list(cwd, feature_list)
        append_progress_log(
            cwd, "IMPACT", f"updated {len(changed)} feature(s): {', '.join(changed)}",
            feature_id=impact.changed_id,
        )
        print()
        print(f"Applied {len(changed)} recommendation(s)")
    elif impact.recommendations:
        print()
        print(f"Apply with: foreman impact {impact.changed_id} --apply")

    return 0
