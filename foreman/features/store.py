"""
Feature list persistence and queries (ai/feature_list.json).

Single-writer model: a command loads the list once, mutates the in-memory
snapshot and saves it back. Saves are atomic (temp file + rename) and
schema-validated before anything touches disk.
"""

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from foreman.features.graph import find_dangling_dependencies, get_blocking_features, index_by_id
from foreman.features.models import (
    Feature,
    FeatureList,
    FeatureListNotFound,
    FeatureNotFound,
    STATUSES,
    FAILING,
    PASSING,
    NEEDS_REVIEW,
    DEPRECATED,
)
from foreman.lib.constants import FEATURE_LIST_FILE
from foreman.lib.validate import validate_file, validate_before_write

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def feature_list_path(cwd: Path) -> Path:
    return cwd / FEATURE_LIST_FILE


def load_feature_list(cwd: Path) -> Optional[FeatureList]:
    """Load and validate the feature list, or None if the file doesn't exist.

    Raises:
        ValidationError: if the file is not valid JSON or doesn't match the schema
        DuplicateFeatureId: if two features share an ID
    """
    path = feature_list_path(cwd)
    if not path.exists():
        return None

    data = validate_file(path, "feature_list")
    feature_list = FeatureList.from_dict(data)
    index_by_id(feature_list.features)

    for feature_id, missing in find_dangling_dependencies(feature_list.features).items():
        logger.warning(f"[STORE] {feature_id}: dependsOn references unknown feature(s) {missing}")

    return feature_list


def require_feature_list(cwd: Path) -> FeatureList:
    """Load the feature list, failing loudly if it is missing."""
    feature_list = load_feature_list(cwd)
    if feature_list is None:
        raise FeatureListNotFound(feature_list_path(cwd))
    return feature_list


def save_feature_list(cwd: Path, feature_list: FeatureList) -> Path:
    """Validate and atomically write the feature list. Returns the path written."""
    path = feature_list_path(cwd)
    feature_list.metadata.updated_at = _now_iso()
    if not feature_list.metadata.created_at:
        feature_list.metadata.created_at = feature_list.metadata.updated_at

    data = feature_list.to_dict()
    validate_before_write(data, "feature_list", path)

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".feature_list.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w") as f:
            json.dump(data, f, indent=2)
            f.write("\n")
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise

    logger.debug(f"[STORE] Saved {len(feature_list.features)} features to {path}")
    return path


def find_feature(features: list[Feature], feature_id: str) -> Optional[Feature]:
    for feature in features:
        if feature.id == feature_id:
            return feature
    return None


def get_feature(features: list[Feature], feature_id: str) -> Feature:
    """Return the feature with this ID.

    Raises:
        FeatureNotFound: if no feature has this ID
    """
    feature = find_feature(features, feature_id)
    if feature is None:
        raise FeatureNotFound(feature_id)
    return feature


def append_note(feature: Feature, note: str, separator: str = "; ") -> None:
    """Append to a feature's notes, keeping what is already there."""
    if not note:
        return
    feature.notes = f"{feature.notes}{separator}{note}" if feature.notes else note


def select_next_feature(features: list[Feature]) -> Optional[Feature]:
    """Pick the next feature to work on.

    needs_review comes before failing; inside each group lower priority
    wins, and features whose dependencies are all passing come first.
    Returns None when nothing is left to do.
    """
    candidates = [f for f in features if f.status in (NEEDS_REVIEW, FAILING)]
    if not candidates:
        return None

    status_rank = {NEEDS_REVIEW: 0, FAILING: 1}

    def sort_key(feature: Feature):
        blocked = bool(get_blocking_features(features, feature.id))
        return (status_rank[feature.status], blocked, feature.priority)

    # sorted() is stable, so list order breaks remaining ties
    return sorted(candidates, key=sort_key)[0]


def get_feature_stats(features: list[Feature]) -> dict[str, int]:
    """Count features per status (every status present, zero if unused)."""
    stats = {status: 0 for status in STATUSES}
    for feature in features:
        stats[feature.status] = stats.get(feature.status, 0) + 1
    return stats


def get_completion_percentage(features: list[Feature]) -> int:
    """Percent of non-deprecated features that are passing, rounded."""
    active = [f for f in features if f.status != DEPRECATED]
    if not active:
        return 0
    passing = sum(1 for f in active if f.status == PASSING)
    return round(passing / len(active) * 100)
