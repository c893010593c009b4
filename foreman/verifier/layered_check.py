"""
Layered check orchestration.

Fast path (default): driven by the git diff. Runs typecheck, lint and
only the tests relevant to the changed files, skips build and e2e, then
reports which features the change touches. AI verification of those
features is opt-in.

Full path: targets one feature (explicit, or the next ready one), runs
every configured check, and always asks the verify agent about the
feature's acceptance criteria. Task impact is skipped since the target
is already known.

Both paths return data. Failing checks and a missing agent never raise;
a missing feature list or unknown feature ID does.
"""

import logging
import posixpath
import re
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from foreman import git
from foreman.features.graph import get_ready_features
from foreman.features.store import require_feature_list, get_feature
from foreman.lib.config import ProjectProfile
from foreman.lib.constants import FAST_PATH_ALL_SKIPPED, FAST_PATH_SKIPPED
from foreman.verifier.ai_analysis import Agent, analyze_with_ai
from foreman.verifier.checks import plan_checks, run_automated_checks
from foreman.verifier.commands import build_e2e_command, determine_e2e_mode, get_selective_test_command
from foreman.verifier.task_impact import get_task_impact
from foreman.verifier.types import (
    FullCheckResult,
    LayeredCheckResult,
    TaskVerification,
    VerificationResult,
    FAIL,
    NEEDS_REVIEW,
)

logger = logging.getLogger(__name__)

# Files whose change can affect the whole build: manifests, lockfiles,
# compiler/lint/test/e2e config and env files. Tested against the base
# name and the full path.
HIGH_RISK_PATTERNS = [
    re.compile(r'^package\.json$'),
    re.compile(r'^package-lock\.json$'),
    re.compile(r'^pnpm-lock\.yaml$'),
    re.compile(r'^yarn\.lock$'),
    re.compile(r'^tsconfig.*\.json$'),
    re.compile(r'^\.eslintrc'),
    re.compile(r'^eslint\.config\.'),
    re.compile(r'^vite\.config\.'),
    re.compile(r'^vitest\.config\.'),
    re.compile(r'^playwright\.config\.'),
    re.compile(r'^\.env'),
    re.compile(r'^Cargo\.toml$'),
    re.compile(r'^go\.mod$'),
    re.compile(r'^requirements.*\.txt$'),
    re.compile(r'^pyproject\.toml$'),
    re.compile(r'^poetry\.lock$'),
    re.compile(r'^setup\.(py|cfg)$'),
]


def is_high_risk_change(files: list[str]) -> bool:
    """True if any changed file is build-graph-affecting configuration."""
    for path in files:
        name = posixpath.basename(path)
        if any(p.search(name) or p.search(path) for p in HIGH_RISK_PATTERNS):
            return True
    return False


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


async def run_layered_check(
    cwd: Path,
    profile: ProjectProfile,
    ai: bool = False,
    agent: Optional[Agent] = None,
    skip_task_impact: bool = False,
) -> LayeredCheckResult:
    """Fast, diff-driven check.

    Raises:
        FeatureListNotFound: if the project has no feature list
    """
    start = time.monotonic()
    feature_list = require_feature_list(cwd)

    changed_files = git.get_changed_files(cwd)
    if not changed_files:
        logger.info("[CHECK] No changed files, nothing to check")
        return LayeredCheckResult(
            changed_files=[],
            duration=time.monotonic() - start,
            passed=True,
            skipped=list(FAST_PATH_ALL_SKIPPED),
        )

    high_risk = is_high_risk_change(changed_files)
    if high_risk:
        logger.info("[CHECK] High-risk files changed, a full check is recommended")

    # Fast path infers modules from the paths, not from any one feature
    selective = await get_selective_test_command(cwd, None, profile, changed_files)
    discovery = selective.discovery
    test_command = selective.command

    specs = plan_checks(profile, test_command, skip_build=True)
    checks = await run_automated_checks(cwd, specs, timeout=profile.check_timeout)
    passed = all(c.success for c in checks)

    affected = []
    if not skip_task_impact:
        affected = get_task_impact(feature_list.features, changed_files, profile.source_root)

    skipped = list(FAST_PATH_SKIPPED)
    task_verification = None
    if ai and affected:
        skipped.remove("ai")
        diff = git.get_diff(cwd)
        task_verification = []
        for impact in affected:
            feature = get_feature(feature_list.features, impact.feature_id)
            analysis = await analyze_with_ai(cwd, feature, diff, changed_files, checks, agent)
            task_verification.append(TaskVerification(
                feature_id=feature.id,
                verdict=analysis.verdict,
                reasoning=analysis.reasoning,
                skipped=analysis.skipped,
            ))

    return LayeredCheckResult(
        changed_files=changed_files,
        checks=checks,
        affected_tasks=affected,
        task_verification=task_verification,
        discovery=discovery,
        test_command=test_command,
        duration=time.monotonic() - start,
        passed=passed,
        skipped=skipped,
        high_risk_escalation=high_risk,
    )


def decide_verdict(checks_passed: bool, ai_verdict: str, ai_skipped: bool) -> str:
    """A failed check always fails; without an agent a human has to look."""
    if not checks_passed:
        return FAIL
    if ai_skipped:
        return NEEDS_REVIEW
    return ai_verdict


def _pick_ready_feature(features):
    ready = get_ready_features(features)
    if not ready:
        return None
    # min() keeps list order for equal priorities
    return min(ready, key=lambda f: f.priority)


async def run_full_check(
    cwd: Path,
    profile: ProjectProfile,
    feature_id: Optional[str] = None,
    agent: Optional[Agent] = None,
    skip_e2e: bool = False,
) -> FullCheckResult:
    """Complete check of one feature.

    With no feature_id the next ready feature is chosen; if there is none
    the result has feature_id None and nothing ran.

    Raises:
        FeatureListNotFound: if the project has no feature list
        FeatureNotFound: if feature_id is unknown
    """
    start = time.monotonic()
    feature_list = require_feature_list(cwd)

    if feature_id is not None:
        feature = get_feature(feature_list.features, feature_id)
    else:
        feature = _pick_ready_feature(feature_list.features)
        if feature is None:
            logger.info("[CHECK] No ready feature to check")
            return FullCheckResult(feature_id=None, duration=time.monotonic() - start)

    changed_files = git.get_changed_files(cwd)
    commit_hash = git.get_commit_hash(cwd)
    diff_summary = git.get_diff_summary(cwd)
    diff = git.get_diff(cwd)

    e2e_command = None
    if not skip_e2e and feature.e2e_tags:
        mode = determine_e2e_mode("quick", has_tags=True)
        e2e_command = build_e2e_command(profile.e2e, feature.e2e_tags, mode)

    specs = plan_checks(profile, profile.test_command, e2e_command=e2e_command)
    checks = await run_automated_checks(cwd, specs, timeout=profile.check_timeout)
    checks_passed = all(c.success for c in checks)

    analysis = await analyze_with_ai(cwd, feature, diff, changed_files, checks, agent)
    verdict = decide_verdict(checks_passed, analysis.verdict, analysis.skipped)

    skipped = ["task-impact"]
    if e2e_command is None:
        skipped.append("e2e")
    if analysis.skipped:
        skipped.append("ai")

    result = VerificationResult(
        feature_id=feature.id,
        timestamp=_now_iso(),
        commit_hash=commit_hash,
        changed_files=tuple(changed_files),
        diff_summary=diff_summary,
        automated_checks=tuple(checks),
        criteria_results=analysis.criteria_results,
        verdict=verdict,
        reasoning=analysis.reasoning,
        suggestions=analysis.suggestions,
        ai_skipped=analysis.skipped,
    )
    logger.info(f"[CHECK] {feature.id}: verdict={verdict}")

    return FullCheckResult(
        feature_id=feature.id,
        result=result,
        duration=time.monotonic() - start,
        skipped=skipped,
        high_risk_escalation=is_high_risk_change(changed_files),
    )
