"""
Selective command synthesis.

Turns a discovery result into the narrowest command that runs the
relevant tests. Resolution order:

1. Learned templates from the project profile ({files} / {pattern}).
2. FRAMEWORKS: one descriptor per known test framework.
3. A generic fallback for package-manager wrappers, else the full command.

Adding a framework means adding a FRAMEWORKS entry.

A discovered pattern may be a path glob (module-based or explicit). Test
runners filter by name or regex, not by glob, so a glob is expanded to the
files it matches on disk; a glob that matches nothing runs the full suite.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

from foreman.features.models import Feature
from foreman.lib.config import ProjectProfile, E2EProfile
from foreman.verifier.tdd_gate import find_matching_files
from foreman.verifier.test_discovery import discover_tests_for_feature
from foreman.verifier.types import DiscoveryResult, NONE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FrameworkCommands:
    """How one framework runs specific files, or tests matching a name."""
    files: Optional[str]  # contains {files}; None if the runner can't take paths
    pattern: str          # contains {pattern}


FRAMEWORKS: dict[str, FrameworkCommands] = {
    "vitest": FrameworkCommands(files="npx vitest run {files}", pattern='npx vitest run --testNamePattern "{pattern}"'),
    "jest": FrameworkCommands(files="npx jest {files}", pattern='npx jest --testPathPattern "{pattern}"'),
    "mocha": FrameworkCommands(files="npx mocha {files}", pattern='npx mocha --grep "{pattern}"'),
    "pytest": FrameworkCommands(files="pytest {files}", pattern='pytest -k "{pattern}"'),
    "go": FrameworkCommands(files=None, pattern='go test -run "{pattern}" ./...'),
    "cargo": FrameworkCommands(files=None, pattern='cargo test "{pattern}"'),
}

# Package-manager wrappers: prefix -> how the pattern is appended
WRAPPER_SUFFIXES = [
    ("npm ", ' -- "{pattern}"'),
    ("pnpm ", ' -- "{pattern}"'),
    ("yarn ", ' "{pattern}"'),
    ("bun ", ' "{pattern}"'),
]


def _fallback_command(base_command: str, pattern: str) -> str:
    for prefix, suffix in WRAPPER_SUFFIXES:
        if base_command.startswith(prefix):
            return base_command + suffix.format(pattern=pattern)
    return base_command


def is_glob(pattern: str) -> bool:
    return any(ch in pattern for ch in "*?[{")


def build_selective_test_command(profile: ProjectProfile, discovery: DiscoveryResult) -> Optional[str]:
    """The command to run only the discovered tests.

    Returns None when the project has no test command at all, and the full
    test command when discovery found nothing to narrow to.
    """
    if not profile.has_tests:
        return None

    pattern = discovery.pattern
    if not pattern:
        return profile.test_command

    files = " ".join(discovery.test_files)
    if is_glob(pattern):
        if not files:
            logger.debug(f"No test files match {pattern}, running the full suite")
            return profile.test_command
        pattern = files

    learned = profile.learned_templates
    if learned is not None:
        if files:
            return learned.file_template.replace("{files}", files)
        return learned.name_template.replace("{pattern}", pattern)

    framework = FRAMEWORKS.get(profile.test_framework or "")
    if framework is not None:
        if files and framework.files:
            return framework.files.format(files=files)
        if is_glob(discovery.pattern):
            return profile.test_command
        return framework.pattern.format(pattern=pattern)

    return _fallback_command(profile.test_command, pattern)


async def expand_test_glob(cwd: Path, discovery: DiscoveryResult) -> DiscoveryResult:
    """Fill test_files from disk when the pattern is a glob and none are known."""
    if discovery.test_files or not discovery.pattern or not is_glob(discovery.pattern):
        return discovery
    files = await asyncio.to_thread(find_matching_files, cwd, discovery.pattern)
    return replace(discovery, test_files=tuple(files))


@dataclass(frozen=True)
class SelectiveTestCommand:
    command: Optional[str]
    is_selective: bool
    discovery: DiscoveryResult


async def get_selective_test_command(
    cwd: Path,
    feature: Optional[Feature],
    profile: ProjectProfile,
    changed_files: list[str],
) -> SelectiveTestCommand:
    """Discovery plus synthesis in one step."""
    discovery = await discover_tests_for_feature(cwd, feature, changed_files)
    discovery = await expand_test_glob(cwd, discovery)
    command = build_selective_test_command(profile, discovery)
    return SelectiveTestCommand(
        command=command,
        is_selective=discovery.source != NONE and command != profile.test_command,
        discovery=discovery,
    )


# E2E modes
E2E_FULL = "full"
E2E_SMOKE = "smoke"
E2E_TAGS = "tags"
E2E_SKIP = "skip"

SMOKE_TAG = "@smoke"

E2E_GREP_COMMANDS = {
    "playwright": 'npx playwright test --grep "{tags}"',
    "cypress": 'npx cypress run --spec "**/*" --env grep="{tags}"',
    "puppeteer": 'npx jest --testPathPattern "e2e" --testNamePattern "{tags}"',
}


def determine_e2e_mode(test_mode: str, has_tags: bool) -> str:
    """Map the overall test mode (full/quick/skip) to an E2E mode."""
    if test_mode == "skip":
        return E2E_SKIP
    if test_mode == "full":
        return E2E_FULL
    return E2E_TAGS if has_tags else E2E_SMOKE


def _e2e_grep_command(e2e: E2EProfile, tags: list[str]) -> str:
    tag_pattern = "|".join(tags)
    if e2e.grep_template:
        return e2e.grep_template.replace("{tags}", f'"{tag_pattern}"')
    template = E2E_GREP_COMMANDS.get(e2e.framework or "")
    if template is not None:
        return template.format(tags=tag_pattern)
    return f'{e2e.command} --grep "{tag_pattern}"'


def build_e2e_command(e2e: Optional[E2EProfile], tags: Optional[list[str]] = None, mode: str = E2E_TAGS) -> Optional[str]:
    """E2E command for the given tags, or None when E2E is unavailable or skipped.

    Multiple tags are OR-ed. With no tags only @smoke tests run.
    """
    tags = tags or []
    if e2e is None or not e2e.command or mode == E2E_SKIP:
        return None
    if mode == E2E_FULL or tags == ["*"]:
        return e2e.command
    if mode == E2E_SMOKE or not tags:
        return _e2e_grep_command(e2e, [SMOKE_TAG])
    return _e2e_grep_command(e2e, tags)
