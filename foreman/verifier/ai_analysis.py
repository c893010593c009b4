"""
AI-assisted acceptance-criteria verification.

Never fatal: when the agent is missing or misbehaves the step is
reported as skipped with a needs_review verdict.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Protocol

from foreman.agents.verifier import AIUnavailable
from foreman.features.models import Feature
from foreman.lib.constants import MAX_DIFF_CHARS
from foreman.lib.prompts import render_prompt
from foreman.verifier.types import (
    AIAnalysis,
    AutomatedCheckResult,
    CriterionResult,
    NEEDS_REVIEW,
)

logger = logging.getLogger(__name__)


class Agent(Protocol):
    def verify(self, prompt: str, cwd: Path) -> dict: ...


def _numbered(items: list[str], empty: str) -> str:
    if not items:
        return empty
    return "\n".join(f"{i}. {item}" for i, item in enumerate(items))


def _check_summary(checks: list[AutomatedCheckResult]) -> str:
    if not checks:
        return "(no automated checks ran)"
    return "\n".join(
        f"- {c.type}: {'passed' if c.success else 'FAILED'} ({c.duration:.1f}s)"
        for c in checks
    )


def build_verify_prompt(
    feature: Feature,
    diff: str,
    changed_files: list[str],
    checks: list[AutomatedCheckResult],
) -> str:
    if len(diff) > MAX_DIFF_CHARS:
        diff = diff[:MAX_DIFF_CHARS] + "\n... (diff truncated)"
    return render_prompt(
        "verify",
        feature_id=feature.id,
        description=feature.description or "(none)",
        criteria=_numbered(feature.acceptance, "(no acceptance criteria)"),
        changed_files="\n".join(f"- {f}" for f in changed_files) or "(none)",
        check_summary=_check_summary(checks),
        diff=diff or "(empty diff)",
    )


def skipped_analysis(reason: str) -> AIAnalysis:
    return AIAnalysis(verdict=NEEDS_REVIEW, reasoning=reason, skipped=True)


def _to_analysis(feature: Feature, data: dict) -> AIAnalysis:
    criteria = []
    for item in data.get("criteriaResults", []):
        index = item["index"]
        if index >= len(feature.acceptance):
            logger.warning(f"{feature.id}: agent returned result for unknown criterion {index}")
            continue
        criteria.append(CriterionResult(
            index=index,
            criterion=feature.acceptance[index],
            satisfied=item["satisfied"],
            confidence=float(item.get("confidence", 0.0)),
            evidence=tuple(item.get("evidence", [])),
            reasoning=item.get("reasoning", ""),
        ))
    criteria.sort(key=lambda c: c.index)
    return AIAnalysis(
        verdict=data["verdict"],
        criteria_results=tuple(criteria),
        reasoning=data.get("reasoning", ""),
        suggestions=tuple(data.get("suggestions", [])),
    )


async def analyze_with_ai(
    cwd: Path,
    feature: Feature,
    diff: str,
    changed_files: list[str],
    checks: list[AutomatedCheckResult],
    agent: Optional[Agent],
) -> AIAnalysis:
    """Ask the verify agent whether the feature's criteria hold."""
    if agent is None:
        return skipped_analysis("No AI agent configured")

    prompt = build_verify_prompt(feature, diff, changed_files, checks)
    try:
        data = await asyncio.to_thread(agent.verify, prompt, cwd)
    except AIUnavailable as e:
        logger.warning(f"AI verification skipped for {feature.id}: {e}")
        return skipped_analysis(str(e))

    return _to_analysis(feature, data)
