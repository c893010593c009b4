"""
foreman fail - Mark a feature as failed with a reason.
"""

from pathlib import Path

from foreman.features.lifecycle import transition, can_transition
from foreman.features.models import FAILED
from foreman.features.store import require_feature_list, save_feature_list, get_feature, select_next_feature
from foreman.lib.config import ProjectProfile
from foreman.lib.progress import append_progress_log

DEFAULT_REASON = "Verification failed"


def cmd_fail(args, cwd: Path, profile: ProjectProfile) -> int:
    """Mark a feature as failed and show what to work on next."""
    feature_list = require_feature_list(cwd)
    feature = get_feature(feature_list.features, args.feature_id)
    reason = args.reason or DEFAULT_REASON

    if feature.status == FAILED:
        print(f"WARNING: Feature '{feature.id}' is already failed")
        return 0

    if not can_transition(feature.status, FAILED):
        print(f"ERROR: Cannot fail '{feature.id}' from status '{feature.status}'")
        return 2

    transition(feature, FAILED, reason=f"Failed: {reason}")
    save_feature_list(cwd, feature_list)
    append_progress_log(cwd, "FAIL", reason, feature_id=feature.id)

    print(f"Failed: {feature.id}")
    print(f"  Reason: {reason}")

    next_feature = select_next_feature(feature_list.features)
    if next_feature:
        print(f"\nNext: {next_feature.id}")
    return 0
