"""
TDD gate: required tests must exist before a feature can pass.

Active when the project runs in strict TDD mode or the feature marks its
unit (or e2e) tests as required. When active, each required pattern must
match at least one file on disk. The gate only reports; it never touches
the feature's status.
"""

import asyncio
import logging
from pathlib import Path

from wcmatch import glob

from foreman.features.models import Feature
from foreman.verifier.types import TDDGateResult

logger = logging.getLogger(__name__)

GLOB_FLAGS = glob.GLOBSTAR | glob.BRACE
EXCLUDED_DIRS = ["**/node_modules/**", "**/.git/**", "**/.venv/**", "**/dist/**"]

DEFAULT_UNIT_PATTERNS = [
    "tests/{module}/**/*",
    "**/{module}/**/*.test.*",
    "**/{module}/**/*.spec.*",
    "**/test_{module}*.py",
]

DEFAULT_E2E_PATTERNS = [
    "e2e/**/*{module}*",
    "tests/e2e/**/*{module}*",
]


def _module_name(feature: Feature) -> str:
    return feature.module or feature.id.split(".")[0]


def _expand(templates: list[str], feature: Feature) -> list[str]:
    module = _module_name(feature)
    return [t.replace("{module}", module) for t in templates]


def find_matching_files(cwd: Path, pattern: str) -> list[str]:
    """Files under cwd matching a glob, relative to cwd, sorted."""
    matches = glob.glob(pattern, flags=GLOB_FLAGS, root_dir=str(cwd), exclude=EXCLUDED_DIRS)
    return sorted(m for m in matches if (cwd / m).is_file())


async def _probe(cwd: Path, patterns: list[str]) -> dict[str, list[str]]:
    found = await asyncio.gather(*(asyncio.to_thread(find_matching_files, cwd, p) for p in patterns))
    return dict(zip(patterns, found))


def is_gate_active(feature: Feature, tdd_mode: str) -> bool:
    reqs = feature.test_requirements
    return tdd_mode == "strict" or reqs.unit.required or reqs.e2e.required


async def _check_group(cwd: Path, patterns: list[str]) -> tuple[list[str], list[str]]:
    """Returns (found files, missing patterns). Any match satisfies the group."""
    matches = await _probe(cwd, patterns)
    found = sorted({f for files in matches.values() for f in files})
    return found, ([] if found else patterns)


async def check_tdd_gate(cwd: Path, feature: Feature, tdd_mode: str) -> TDDGateResult:
    """Check that the feature's required tests exist."""
    if not is_gate_active(feature, tdd_mode):
        return TDDGateResult(passed=True, active=False)

    reqs = feature.test_requirements
    found_unit: list[str] = []
    missing_unit: list[str] = []
    found_e2e: list[str] = []
    missing_e2e: list[str] = []

    if tdd_mode == "strict" or reqs.unit.required:
        patterns = [reqs.unit.pattern] if reqs.unit.pattern else _expand(DEFAULT_UNIT_PATTERNS, feature)
        found_unit, missing_unit = await _check_group(cwd, patterns)

    if reqs.e2e.required:
        patterns = [reqs.e2e.pattern] if reqs.e2e.pattern else _expand(DEFAULT_E2E_PATTERNS, feature)
        found_e2e, missing_e2e = await _check_group(cwd, patterns)

    passed = not missing_unit and not missing_e2e
    if not passed:
        logger.info(f"[TDD] {feature.id}: missing tests for {missing_unit + missing_e2e}")

    return TDDGateResult(
        passed=passed,
        active=True,
        missing_unit_tests=tuple(missing_unit),
        missing_e2e_tests=tuple(missing_e2e),
        found_unit_tests=tuple(found_unit),
        found_e2e_tests=tuple(found_e2e),
    )
