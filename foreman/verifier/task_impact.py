"""
Change-to-feature impact matching.

Maps changed files to the features they plausibly affect. Each feature is
tried against an ordered list of strategies; the first one that matches
at least one file decides the confidence for that feature:

    high    the file matches one of the feature's affectedBy globs
    medium  the file matches the source path derived from its test pattern
    low     the file lives under a directory named after its module

Matching is best-effort: nothing here reads a build graph.
"""

import logging
import re
from typing import Callable, Iterable, Optional

from wcmatch import glob

from foreman.features.models import Feature, SETTLED_STATUSES
from foreman.lib.constants import DEFAULT_SOURCE_ROOT
from foreman.verifier.types import TaskImpact, HIGH, MEDIUM, LOW, CONFIDENCE_RANK

logger = logging.getLogger(__name__)

# minimatch-like semantics: ** spans directories (including none), {a,b}
# alternation, and slash-free patterns match against the base name
GLOB_FLAGS = glob.GLOBSTAR | glob.BRACE | glob.MATCHBASE

TEST_ROOT_PREFIXES = ("tests/", "test/", "__tests__/", "spec/")

# Base-name test markers, checked in order, applied once
_TEST_MARKER_RULES = [
    (re.compile(r'\.(?:test|spec)\.\*$'), ".*"),
    (re.compile(r'\.(?:test|spec)\.(tsx?|jsx?|mjs|cjs)$'), r".\1"),
    (re.compile(r'(^|/)test_([^/]*\.py)$'), r"\1\2"),
    (re.compile(r'_test\.(py|go)$'), r".\1"),
]


def matches_glob(path: str, pattern: str) -> bool:
    return glob.globmatch(path, pattern, flags=GLOB_FLAGS)


def matching_files(patterns: Iterable[str], changed_files: list[str]) -> list[str]:
    """Changed files matched by any pattern, in changed-file order, no repeats."""
    patterns = list(patterns)
    return [f for f in changed_files if any(matches_glob(f, p) for p in patterns)]


def derive_source_pattern(test_pattern: str, source_root: str = DEFAULT_SOURCE_ROOT) -> str:
    """Guess where the code under test lives from a test path or glob.

    Approximate, purely textual:
        tests/auth/login.test.ts  -> src/auth/login.ts
        tests/auth/**/*.test.*    -> src/auth/**/*.*
        tests/test_login.py       -> src/login.py
    """
    pattern = test_pattern
    for prefix in TEST_ROOT_PREFIXES:
        if pattern.startswith(prefix):
            pattern = pattern[len(prefix):]
            break

    for regex, replacement in _TEST_MARKER_RULES:
        new_pattern = regex.sub(replacement, pattern)
        if new_pattern != pattern:
            pattern = new_pattern
            break

    return f"{source_root.rstrip('/')}/{pattern}"


# A strategy returns a TaskImpact for the feature or None
ImpactStrategy = Callable[[Feature, list[str], str], Optional[TaskImpact]]


def match_affected_by(feature: Feature, changed_files: list[str], source_root: str) -> Optional[TaskImpact]:
    if not feature.affected_by:
        return None
    matched = matching_files(feature.affected_by, changed_files)
    if not matched:
        return None
    return TaskImpact(
        feature_id=feature.id,
        confidence=HIGH,
        reason=f"matches affectedBy pattern: {feature.affected_by[0]}",
        matched_files=tuple(matched),
    )


def match_test_pattern(feature: Feature, changed_files: list[str], source_root: str) -> Optional[TaskImpact]:
    test_pattern = feature.unit_test_pattern
    if not test_pattern:
        return None
    matched = matching_files([derive_source_pattern(test_pattern, source_root)], changed_files)
    if not matched:
        return None
    return TaskImpact(
        feature_id=feature.id,
        confidence=MEDIUM,
        reason=f"matches test pattern: {test_pattern}",
        matched_files=tuple(matched),
    )


def match_module(feature: Feature, changed_files: list[str], source_root: str) -> Optional[TaskImpact]:
    module = feature.module
    if not module:
        return None
    module_glob = f"**/{module}/**/*"
    matched = [
        f for f in changed_files
        if matches_glob(f, module_glob) or f"/{module}/" in f
    ]
    if not matched:
        return None
    return TaskImpact(
        feature_id=feature.id,
        confidence=LOW,
        reason=f"file in module: {module}",
        matched_files=tuple(matched),
    )


IMPACT_STRATEGIES: list[ImpactStrategy] = [
    match_affected_by,
    match_test_pattern,
    match_module,
]


def match_feature(
    feature: Feature,
    changed_files: list[str],
    source_root: str = DEFAULT_SOURCE_ROOT,
    strategies: Optional[list[ImpactStrategy]] = None,
) -> Optional[TaskImpact]:
    """First strategy that matches wins."""
    for strategy in strategies or IMPACT_STRATEGIES:
        impact = strategy(feature, changed_files, source_root)
        if impact is not None:
            return impact
    return None


def get_task_impact(
    features: list[Feature],
    changed_files: list[str],
    source_root: str = DEFAULT_SOURCE_ROOT,
    strategies: Optional[list[ImpactStrategy]] = None,
) -> list[TaskImpact]:
    """Features affected by changed_files, high confidence first.

    Passing and deprecated features are never reported. A feature appears
    at most once, with its best tier.
    """
    if not changed_files:
        return []

    best: dict[str, TaskImpact] = {}
    for feature in features:
        if feature.status in SETTLED_STATUSES:
            continue
        impact = match_feature(feature, changed_files, source_root, strategies)
        if impact is None:
            continue
        current = best.get(feature.id)
        if current is None or CONFIDENCE_RANK[impact.confidence] < CONFIDENCE_RANK[current.confidence]:
            best[feature.id] = impact

    impacts = sorted(best.values(), key=lambda i: CONFIDENCE_RANK[i.confidence])
    logger.debug(f"[IMPACT] {len(impacts)} feature(s) affected by {len(changed_files)} changed file(s)")
    return impacts


def build_file_task_index(features: list[Feature], source_root: str = DEFAULT_SOURCE_ROOT) -> dict[str, set[str]]:
    """Reverse index: glob pattern -> IDs of features that claim it."""
    index: dict[str, set[str]] = {}
    for feature in features:
        patterns = list(feature.affected_by)
        if feature.unit_test_pattern:
            patterns.append(derive_source_pattern(feature.unit_test_pattern, source_root))
        if feature.module:
            patterns.append(f"**/{feature.module}/**/*")
        for pattern in patterns:
            index.setdefault(pattern, set()).add(feature.id)
    return index


def features_for_file(index: dict[str, set[str]], path: str) -> set[str]:
    """Look a single path up in a file-task index."""
    ids: set[str] = set()
    for pattern, feature_ids in index.items():
        if matches_glob(path, pattern):
            ids |= feature_ids
    return ids

