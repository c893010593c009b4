"""
Result types shared by the verification engine.

These are plain values: check failures, missing tests and AI outages
are represented here as data, never raised.
"""

from dataclasses import dataclass, field
from typing import Optional

# Impact confidence tiers, best first
HIGH = "high"
MEDIUM = "medium"
LOW = "low"
CONFIDENCE_RANK = {HIGH: 0, MEDIUM: 1, LOW: 2}

# Discovery sources
EXPLICIT = "explicit"
AUTO_DETECTED = "auto-detected"
MODULE_BASED = "module-based"
NONE = "none"

# Verdicts
PASS = "pass"
FAIL = "fail"
NEEDS_REVIEW = "needs_review"
VERDICTS = (PASS, FAIL, NEEDS_REVIEW)


@dataclass(frozen=True)
class TaskImpact:
    """One feature plausibly affected by a set of changed files."""
    feature_id: str
    confidence: str  # high | medium | low
    reason: str
    matched_files: tuple[str, ...] = ()


@dataclass(frozen=True)
class DiscoveryResult:
    """Which tests cover a change, and how sure we are."""
    pattern: Optional[str]
    source: str  # explicit | auto-detected | module-based | none
    test_files: tuple[str, ...] = ()
    confidence: float = 0.0


@dataclass(frozen=True)
class AutomatedCheckResult:
    type: str  # typecheck | lint | test | build | e2e
    success: bool
    duration: float  # seconds
    output: str = ""
    command: str = ""

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "success": self.success,
            "duration": round(self.duration, 3),
            "output": self.output,
            "command": self.command,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AutomatedCheckResult":
        return cls(
            type=data["type"],
            success=data["success"],
            duration=float(data.get("duration", 0.0)),
            output=data.get("output", ""),
            command=data.get("command", ""),
        )


@dataclass(frozen=True)
class CriterionResult:
    index: int
    criterion: str
    satisfied: bool
    confidence: float = 0.0
    evidence: tuple[str, ...] = ()
    reasoning: str = ""

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "criterion": self.criterion,
            "satisfied": self.satisfied,
            "confidence": self.confidence,
            "evidence": list(self.evidence),
            "reasoning": self.reasoning,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CriterionResult":
        return cls(
            index=data["index"],
            criterion=data.get("criterion", ""),
            satisfied=data["satisfied"],
            confidence=float(data.get("confidence", 0.0)),
            evidence=tuple(data.get("evidence", [])),
            reasoning=data.get("reasoning", ""),
        )


@dataclass(frozen=True)
class AIAnalysis:
    """Outcome of asking the verify agent about one feature.

    skipped=True means no agent was available or the call failed; the
    verdict is then needs_review and carries no information.
    """
    verdict: str
    criteria_results: tuple[CriterionResult, ...] = ()
    reasoning: str = ""
    suggestions: tuple[str, ...] = ()
    skipped: bool = False


@dataclass(frozen=True)
class VerificationResult:
    """One immutable record per check run for one feature."""
    feature_id: str
    timestamp: str
    commit_hash: str
    changed_files: tuple[str, ...]
    diff_summary: str
    automated_checks: tuple[AutomatedCheckResult, ...]
    criteria_results: tuple[CriterionResult, ...]
    verdict: str
    reasoning: str = ""
    suggestions: tuple[str, ...] = ()
    ai_skipped: bool = False

    def to_dict(self) -> dict:
        return {
            "featureId": self.feature_id,
            "timestamp": self.timestamp,
            "commitHash": self.commit_hash,
            "changedFiles": list(self.changed_files),
            "diffSummary": self.diff_summary,
            "automatedChecks": [c.to_dict() for c in self.automated_checks],
            "criteriaResults": [c.to_dict() for c in self.criteria_results],
            "verdict": self.verdict,
            "reasoning": self.reasoning,
            "suggestions": list(self.suggestions),
            "aiSkipped": self.ai_skipped,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "VerificationResult":
        return cls(
            feature_id=data["featureId"],
            timestamp=data["timestamp"],
            commit_hash=data["commitHash"],
            changed_files=tuple(data.get("changedFiles", [])),
            diff_summary=data.get("diffSummary", ""),
            automated_checks=tuple(AutomatedCheckResult.from_dict(c) for c in data.get("automatedChecks", [])),
            criteria_results=tuple(CriterionResult.from_dict(c) for c in data.get("criteriaResults", [])),
            verdict=data["verdict"],
            reasoning=data.get("reasoning", ""),
            suggestions=tuple(data.get("suggestions", [])),
            ai_skipped=bool(data.get("aiSkipped", False)),
        )


@dataclass(frozen=True)
class TaskVerification:
    feature_id: str
    verdict: str
    reasoning: str
    skipped: bool = False


@dataclass
class LayeredCheckResult:
    """Outcome of a fast (diff-driven) check."""
    changed_files: list[str]
    checks: list[AutomatedCheckResult] = field(default_factory=list)
    affected_tasks: list[TaskImpact] = field(default_factory=list)
    task_verification: Optional[list[TaskVerification]] = None
    discovery: Optional[DiscoveryResult] = None
    test_command: Optional[str] = None
    duration: float = 0.0
    passed: bool = True
    skipped: list[str] = field(default_factory=list)
    high_risk_escalation: bool = False

    def check(self, check_type: str) -> Optional[AutomatedCheckResult]:
        return next((c for c in self.checks if c.type == check_type), None)


@dataclass
class FullCheckResult:
    """Outcome of a full check against one target feature.

    feature_id is None when no feature was targeted and none was ready.
    """
    feature_id: Optional[str]
    result: Optional[VerificationResult] = None
    duration: float = 0.0
    skipped: list[str] = field(default_factory=list)
    high_risk_escalation: bool = False

    @property
    def passed(self) -> bool:
        return self.result is not None and all(c.success for c in self.result.automated_checks)


@dataclass(frozen=True)
class TDDGateResult:
    """Whether the required tests exist for a feature."""
    passed: bool
    active: bool
    missing_unit_tests: tuple[str, ...] = ()
    missing_e2e_tests: tuple[str, ...] = ()
    found_unit_tests: tuple[str, ...] = ()
    found_e2e_tests: tuple[str, ...] = ()

    @property
    def missing(self) -> tuple[str, ...]:
        return self.missing_unit_tests + self.missing_e2e_tests
