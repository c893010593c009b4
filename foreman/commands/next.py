"""
foreman next - Show the next feature to work on.
"""

from pathlib import Path

from foreman.features.graph import get_blocking_features, get_dependency_depth
from foreman.features.store import require_feature_list, get_feature, select_next_feature
from foreman.lib.config import ProjectProfile
from foreman.store.results import get_last_verification


def cmd_next(args, cwd: Path, profile: ProjectProfile) -> int:
    """Show the next feature (or the one named) with its criteria and test requirements."""
    features = require_feature_list(cwd).features

    if args.feature_id:
        feature = get_feature(features, args.feature_id)
    else:
        feature = select_next_feature(features)
        if feature is None:
            print("All features are passing, blocked or deprecated. Nothing to do.")
            return 0

    print(f"Feature: {feature.id}")
    print("=" * 60)
    print(f"Status:     {feature.status}")
    print(f"Module:     {feature.module or '-'}")
    print(f"Priority:   {feature.priority}")
    print(f"Depth:      {get_dependency_depth(features, feature.id)}")
    if feature.description:
        print()
        print(feature.description)

    if feature.acceptance:
        print()
        print("Acceptance criteria:")
        for i, criterion in enumerate(feature.acceptance, 1):
            print(f"  {i}. {criterion}")

    blocking = get_blocking_features(features, feature.id)
    if blocking:
        print()
        print("Blocked by:")
        for dep in blocking:
            print(f"  {dep.id} ({dep.status})")

    unit = feature.test_requirements.unit
    if unit.pattern:
        print()
        required = "required" if unit.required else "optional"
        print(f"Unit tests ({required}): {unit.pattern}")

    last = get_last_verification(cwd, feature.id)
    if last:
        print()
        print(f"Last verified: run {last.run_number} -> {last.result.verdict} ({last.result.timestamp})")

    print()
    print(f"When done: foreman done {feature.id}")
    return 0
