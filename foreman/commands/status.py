"""
foreman status - Show feature list progress.
"""

import json
from pathlib import Path

from foreman.features.store import (
    require_feature_list,
    get_feature_stats,
    get_completion_percentage,
    select_next_feature,
)
from foreman.lib.config import ProjectProfile
from foreman.lib.progress import read_recent_entries
from foreman.store.results import get_verification_stats

STATUS_ORDER = ["passing", "needs_review", "failing", "failed", "blocked", "deprecated"]


def cmd_status(args, cwd: Path, profile: ProjectProfile) -> int:
    """Show feature counts, completion and recent activity."""
    feature_list = require_feature_list(cwd)
    features = feature_list.features
    stats = get_feature_stats(features)
    completion = get_completion_percentage(features)
    next_feature = select_next_feature(features)

    if getattr(args, 'json', False):
        print(json.dumps({
            "goal": feature_list.metadata.project_goal,
            "tddMode": feature_list.metadata.tdd_mode,
            "completion": completion,
            "stats": stats,
            "total": len(features),
            "next": next_feature.id if next_feature else None,
            "verification": get_verification_stats(cwd),
        }, indent=2))
        return 0

    if getattr(args, 'quiet', False):
        print(f"{completion}% complete | {stats['passing']}/{len(features)} passing")
        return 0

    print(f"Project: {feature_list.metadata.project_goal or '(no goal set)'}")
    print("=" * 60)
    print()
    print(f"Completion:     {completion}%")
    print(f"TDD mode:       {feature_list.metadata.tdd_mode}")
    print()
    for status in STATUS_ORDER:
        if stats.get(status):
            print(f"  {status:<14}{stats[status]}")
    print(f"  {'total':<14}{len(features)}")
    print()

    if next_feature:
        print(f"Next: {next_feature.id} ({next_feature.status}, priority {next_feature.priority})")
        if next_feature.description:
            print(f"  {next_feature.description}")
    else:
        print("Nothing left to do")

    recent = read_recent_entries(cwd, limit=5)
    if recent:
        print()
        print("Recent activity:")
        for entry in recent:
            subject = f" {entry.feature_id}" if entry.feature_id else ""
            print(f"  {entry.timestamp.strftime('%Y-%m-%d %H:%M')}  {entry.entry_type}{subject}: {entry.summary}")

    return 0
