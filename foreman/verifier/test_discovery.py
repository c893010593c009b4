"""
Test discovery: which existing tests cover a set of changed files.

Sources are tried in order and the first that yields a result wins:

    explicit       1.0  the feature declares testRequirements.unit.pattern
    auto-detected  0.9  conventional test paths for the changed files exist
    module-based   0.6  fall back to every test under the changed module
    none           0.0  nothing changed and nothing declared

Candidate existence probes are independent reads, so they run
concurrently in worker threads.
"""

import asyncio
import logging
import posixpath
import re
from pathlib import Path
from typing import Awaitable, Callable, Optional

from foreman.features.models import Feature
from foreman.verifier.types import DiscoveryResult, EXPLICIT, AUTO_DETECTED, MODULE_BASED, NONE

logger = logging.getLogger(__name__)

SOURCE_ROOTS = ("src", "lib", "app", "pkg")
_SOURCE_ROOT_MODULE = re.compile(r'^(?:src|lib|app|pkg)/([^/]+)')

# Extracts a module name from a changed path, or None
ModuleExtractor = Callable[[str], Optional[str]]


def is_test_file(path: str) -> bool:
    """Does this path look like a test rather than source?"""
    name = posixpath.basename(path)
    return (
        ".test." in path
        or ".spec." in path
        or "__tests__" in path
        or path.startswith(("test/", "tests/"))
        or (name.startswith("test_") and name.endswith(".py"))
        or name.endswith(("_test.py", "_test.go"))
    )


def map_source_to_test_files(source_file: str) -> list[str]:
    """Candidate test paths for a source file under common conventions.

    src/auth/login.ts -> src/auth/login.test.ts, src/auth/login.spec.ts,
    src/auth/__tests__/login.test.ts, src/auth/__tests__/login.ts,
    tests/auth/login.test.ts, test/auth/login.test.ts, __tests__/auth/login.test.ts
    """
    directory, filename = posixpath.split(source_file)
    base, ext = posixpath.splitext(filename)

    def join(*parts: str) -> str:
        return posixpath.normpath(posixpath.join(*parts))

    candidates = [
        # Sibling
        join(directory, f"{base}.test{ext}"),
        join(directory, f"{base}.spec{ext}"),
        # Nested test directory
        join(directory, "__tests__", f"{base}.test{ext}"),
        join(directory, "__tests__", f"{base}{ext}"),
    ]

    # Parallel test root mirroring the source tree
    if source_file.startswith("src/"):
        rel_dir = posixpath.dirname(source_file[len("src/"):])
        for root in ("tests", "test", "__tests__"):
            candidates.append(join(root, rel_dir, f"{base}.test{ext}"))

    if ext == ".py":
        candidates.append(join("tests", f"test_{base}.py"))
        candidates.append(join("test", f"test_{base}.py"))
        candidates.append(join(directory, f"test_{base}.py"))
        candidates.append(join(directory, f"{base}_test.py"))

    if ext == ".go":
        candidates.append(join(directory, f"{base}_test.go"))

    # De-duplicate, keep order
    return list(dict.fromkeys(candidates))


def extract_module_from_path(file_path: str) -> Optional[str]:
    """Best-effort module name for a path.

    src/auth/login.ts -> auth; billing/invoice.py -> billing; README.md -> None
    """
    match = _SOURCE_ROOT_MODULE.match(file_path)
    if match:
        return match.group(1)

    parts = file_path.split("/")
    if len(parts) >= 2 and parts[0] and not parts[0].startswith("."):
        return parts[0]
    return None


async def file_exists(path: Path) -> bool:
    return await asyncio.to_thread(path.is_file)


async def find_existing_test_files(
    cwd: Path,
    candidates: list[str],
    exists: Callable[[Path], Awaitable[bool]] = file_exists,
) -> list[str]:
    """Candidates that exist on disk, in candidate order."""
    results = await asyncio.gather(*(exists(cwd / c) for c in candidates))
    return [c for c, found in zip(candidates, results) if found]


def _explicit(feature: Optional[Feature]) -> Optional[DiscoveryResult]:
    if feature is None or not feature.unit_test_pattern:
        return None
    return DiscoveryResult(pattern=feature.unit_test_pattern, source=EXPLICIT, confidence=1.0)


async def _auto_detected(cwd: Path, changed_files: list[str]) -> Optional[DiscoveryResult]:
    candidates: list[str] = []
    for path in changed_files:
        if is_test_file(path):
            candidates.append(path)
        else:
            candidates.extend(map_source_to_test_files(path))
    candidates = list(dict.fromkeys(candidates))

    existing = await find_existing_test_files(cwd, candidates)
    if not existing:
        return None
    return DiscoveryResult(
        pattern=" ".join(existing),
        source=AUTO_DETECTED,
        test_files=tuple(existing),
        confidence=0.9,
    )


def _module_based(
    feature: Optional[Feature],
    changed_files: list[str],
    extract_module: ModuleExtractor,
) -> DiscoveryResult:
    module = feature.module if feature is not None and feature.module else None
    if module is None:
        module = next((m for m in map(extract_module, changed_files) if m), None)

    # No module to narrow to: pattern None means "run the full suite"
    pattern = f"**/{module}/**/*.test.*" if module else None
    return DiscoveryResult(pattern=pattern, source=MODULE_BASED, confidence=0.6)


async def discover_tests_for_feature(
    cwd: Path,
    feature: Optional[Feature],
    changed_files: list[str],
    extract_module: ModuleExtractor = extract_module_from_path,
) -> DiscoveryResult:
    """Find the tests relevant to `feature` given the changed files.

    feature may be None (fast path): discovery then works purely from the
    changed paths. Returns source "none" exactly when nothing changed and
    no explicit pattern is declared.
    """
    explicit = _explicit(feature)
    if explicit is not None:
        return explicit

    if not changed_files:
        return DiscoveryResult(pattern=None, source=NONE, confidence=0.0)

    detected = await _auto_detected(cwd, changed_files)
    if detected is not None:
        logger.debug(f"Auto-detected {len(detected.test_files)} test file(s)")
        return detected

    return _module_based(feature, changed_files, extract_module)
