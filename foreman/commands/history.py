"""
foreman history - Show verification runs for a feature.
"""

from pathlib import Path

from foreman.features.store import require_feature_list, get_feature
from foreman.lib.config import ProjectProfile
from foreman.store.results import get_verification_history, rebuild_index


def cmd_history(args, cwd: Path, profile: ProjectProfile) -> int:
    """List every recorded verification run, oldest first."""
    if getattr(args, 'rebuild_index', False):
        index = rebuild_index(cwd)
        print(f"Rebuilt verification index ({len(index['features'])} features)")
        return 0

    if not args.feature_id:
        print("ERROR: feature_id is required unless --rebuild-index is given")
        return 2

    get_feature(require_feature_list(cwd).features, args.feature_id)
    runs = get_verification_history(cwd, args.feature_id)
    if not runs:
        print(f"No verification history for '{args.feature_id}'")
        return 0

    print(f"Verification history: {args.feature_id}")
    print("=" * 60)
    for run in runs:
        r = run.result
        checks = ", ".join(f"{c.type}:{'ok' if c.success else 'FAIL'}" for c in r.automated_checks) or "no checks"
        ai = " ai-skipped" if r.ai_skipped else ""
        print(f"  #{run.run_number:03d}  {r.timestamp}  {r.verdict:<12} {r.commit_hash[:7]}  [{checks}]{ai}")
    return 0
