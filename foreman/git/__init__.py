"""Git operations for foreman.

Only what the verification engine needs: changed files, commit hash and
diffs. Functions returning parsed values return empty values on failure
(get_changed_files() -> [], get_commit_hash() -> "unknown").
"""

from foreman.git.runner import GitResult, run_git
from foreman.git.changes import (
    UNKNOWN_COMMIT,
    get_changed_files,
    get_commit_hash,
    get_diff,
    get_diff_summary,
)

__all__ = [
    # runner
    "GitResult",
    "run_git",
    # changes
    "UNKNOWN_COMMIT",
    "get_changed_files",
    "get_commit_hash",
    "get_diff",
    "get_diff_summary",
]
