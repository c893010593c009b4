"""
Data models for the feature list (ai/feature_list.json).

Persisted keys are camelCase; attributes are snake_case. Keys this module
does not know about are kept in `extra` so a load/save cycle never drops
data written by other tools.
"""

from dataclasses import dataclass, field
from typing import Optional

# Feature statuses. Initial state is "failing".
FAILING = "failing"
PASSING = "passing"
NEEDS_REVIEW = "needs_review"
FAILED = "failed"
BLOCKED = "blocked"
DEPRECATED = "deprecated"

STATUSES = (FAILING, PASSING, NEEDS_REVIEW, FAILED, BLOCKED, DEPRECATED)

# Statuses the impact matcher never reports
SETTLED_STATUSES = (PASSING, DEPRECATED)


class FeatureListNotFound(Exception):
    """ai/feature_list.json does not exist."""

    def __init__(self, path):
        self.path = path
        super().__init__(f"Feature list not found: {path}")


class FeatureNotFound(Exception):
    """No feature with the requested ID."""

    def __init__(self, feature_id: str):
        self.feature_id = feature_id
        super().__init__(f"Feature '{feature_id}' not found")


class DuplicateFeatureId(Exception):
    """Two features share one ID."""

    def __init__(self, feature_id: str):
        self.feature_id = feature_id
        super().__init__(f"Duplicate feature id: {feature_id}")


@dataclass
class UnitTestRequirement:
    """Where a feature's tests live and whether they are mandatory."""
    pattern: Optional[str] = None
    required: bool = False

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "UnitTestRequirement":
        data = data or {}
        return cls(pattern=data.get("pattern") or None, required=bool(data.get("required", False)))

    def to_dict(self) -> dict:
        d = {"required": self.required}
        if self.pattern:
            d["pattern"] = self.pattern
        return d


@dataclass
class FeatureTestRequirements:
    unit: UnitTestRequirement = field(default_factory=UnitTestRequirement)
    e2e: UnitTestRequirement = field(default_factory=UnitTestRequirement)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "FeatureTestRequirements":
        data = data or {}
        return cls(
            unit=UnitTestRequirement.from_dict(data.get("unit")),
            e2e=UnitTestRequirement.from_dict(data.get("e2e")),
        )

    def to_dict(self) -> dict:
        return {"unit": self.unit.to_dict(), "e2e": self.e2e.to_dict()}

    def is_empty(self) -> bool:
        return self.unit == UnitTestRequirement() and self.e2e == UnitTestRequirement()


@dataclass
class Feature:
    """A trackable unit of work with acceptance criteria and a status."""
    id: str
    description: str = ""
    module: str = ""
    priority: int = 1                          # lower = more urgent
    status: str = FAILING
    acceptance: list[str] = field(default_factory=list)
    depends_on: list[str] = field(default_factory=list)
    affected_by: list[str] = field(default_factory=list)
    test_requirements: FeatureTestRequirements = field(default_factory=FeatureTestRequirements)
    e2e_tags: list[str] = field(default_factory=list)
    supersedes: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    version: int = 1
    notes: str = ""
    origin: str = "manual"
    extra: dict = field(default_factory=dict)  # unknown keys, round-tripped

    @property
    def unit_test_pattern(self) -> Optional[str]:
        return self.test_requirements.unit.pattern

    _KNOWN_KEYS = (
        "id", "description", "module", "priority", "status", "acceptance",
        "dependsOn", "affectedBy", "testRequirements", "e2eTags", "supersedes",
        "tags", "version", "notes", "origin",
    )

    @classmethod
    def from_dict(cls, data: dict) -> "Feature":
        return cls(
            id=data["id"],
            description=data.get("description", ""),
            module=data.get("module", ""),
            priority=int(data.get("priority", 1)),
            status=data.get("status", FAILING),
            acceptance=list(data.get("acceptance", [])),
            depends_on=list(data.get("dependsOn", [])),
            affected_by=list(data.get("affectedBy", [])),
            test_requirements=FeatureTestRequirements.from_dict(data.get("testRequirements")),
            e2e_tags=list(data.get("e2eTags", [])),
            supersedes=data.get("supersedes"),
            tags=list(data.get("tags", [])),
            version=int(data.get("version", 1)),
            notes=data.get("notes", ""),
            origin=data.get("origin", "manual"),
            extra={k: v for k, v in data.items() if k not in cls._KNOWN_KEYS},
        )

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "description": self.description,
            "module": self.module,
            "priority": self.priority,
            "status": self.status,
            "acceptance": list(self.acceptance),
            "dependsOn": list(self.depends_on),
            "version": self.version,
            "origin": self.origin,
            "notes": self.notes,
        }
        if self.affected_by:
            d["affectedBy"] = list(self.affected_by)
        if not self.test_requirements.is_empty():
            d["testRequirements"] = self.test_requirements.to_dict()
        if self.e2e_tags:
            d["e2eTags"] = list(self.e2e_tags)
        if self.supersedes:
            d["supersedes"] = self.supersedes
        if self.tags:
            d["tags"] = list(self.tags)
        d.update(self.extra)
        return d


@dataclass
class FeatureListMetadata:
    project_goal: str = ""
    created_at: str = ""
    updated_at: str = ""
    version: str = "1.0.0"
    tdd_mode: str = "recommended"
    extra: dict = field(default_factory=dict)

    _KNOWN_KEYS = ("projectGoal", "createdAt", "updatedAt", "version", "tddMode")

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "FeatureListMetadata":
        data = data or {}
        return cls(
            project_goal=data.get("projectGoal", ""),
            created_at=data.get("createdAt", ""),
            updated_at=data.get("updatedAt", ""),
            version=str(data.get("version", "1.0.0")),
            tdd_mode=data.get("tddMode", "recommended"),
            extra={k: v for k, v in data.items() if k not in cls._KNOWN_KEYS},
        )

    def to_dict(self) -> dict:
        d = {
            "projectGoal": self.project_goal,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "version": self.version,
            "tddMode": self.tdd_mode,
        }
        d.update(self.extra)
        return d


@dataclass
class FeatureList:
    features: list[Feature] = field(default_factory=list)
    metadata: FeatureListMetadata = field(default_factory=FeatureListMetadata)

    @classmethod
    def from_dict(cls, data: dict) -> "FeatureList":
        return cls(
            features=[Feature.from_dict(f) for f in data.get("features", [])],
            metadata=FeatureListMetadata.from_dict(data.get("metadata")),
        )

    def to_dict(self) -> dict:
        return {
            "features": [f.to_dict() for f in self.features],
            "metadata": self.metadata.to_dict(),
        }
