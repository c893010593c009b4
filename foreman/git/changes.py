"""Change detection: which files changed, at which commit.

Every function here degrades instead of raising: no repository, no
history or no git binary gives [], "unknown" or "".
"""

import logging
from pathlib import Path

from foreman.git.runner import run_git

logger = logging.getLogger(__name__)

UNKNOWN_COMMIT = "unknown"

# Staged and unstaged changes; both must succeed
_CHANGE_SOURCES = [
    ["diff", "--name-only", "--cached"],
    ["diff", "--name-only"],
]

# Last commit; fails on a repository with a single commit
_LAST_COMMIT = ["diff", "--name-only", "HEAD~1", "HEAD"]


def _split_lines(output: str) -> list[str]:
    return [line.strip() for line in output.splitlines() if line.strip()]


def get_changed_files(cwd: Path) -> list[str]:
    """Staged + unstaged + last-commit changes, de-duplicated in first-seen order.

    Returns [] if the staged or unstaged listing fails. A missing previous
    commit only drops the last-commit part.
    """
    seen: dict[str, None] = {}
    for args in _CHANGE_SOURCES:
        result = run_git(args, cwd)
        if not result.success:
            logger.warning(f"git {' '.join(args)} failed in {cwd}: {result.stderr.strip()}")
            return []
        for path in _split_lines(result.stdout):
            seen.setdefault(path, None)

    last = run_git(_LAST_COMMIT, cwd)
    if last.success:
        for path in _split_lines(last.stdout):
            seen.setdefault(path, None)
    else:
        logger.debug(f"No previous commit in {cwd}: {last.stderr.strip()}")
    return list(seen)


def get_commit_hash(cwd: Path) -> str:
    """Current HEAD SHA, or "unknown"."""
    result = run_git(["rev-parse", "HEAD"], cwd)
    if not result.success or not result.stdout.strip():
        return UNKNOWN_COMMIT
    return result.stdout.strip()


def get_diff(cwd: Path, paths: list[str] | None = None) -> str:
    """Unified diff of the working tree against HEAD, falling back to the last commit."""
    args = ["diff", "HEAD"]
    if paths:
        args += ["--"] + paths
    result = run_git(args, cwd)
    if result.success and result.stdout.strip():
        return result.stdout

    args = ["diff", "HEAD~1", "HEAD"]
    if paths:
        args += ["--"] + paths
    result = run_git(args, cwd)
    return result.stdout if result.success else ""


def get_diff_summary(cwd: Path) -> str:
    """`git diff --stat` against HEAD (or the last commit if the tree is clean)."""
    result = run_git(["diff", "--stat", "HEAD"], cwd)
    if result.success and result.stdout.strip():
        return result.stdout.strip()

    result = run_git(["diff", "--stat", "HEAD~1", "HEAD"], cwd)
    return result.stdout.strip() if result.success else ""
