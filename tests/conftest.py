"""Shared fixtures: on-disk foreman projects under tmp_path."""

import json

import pytest

from foreman.features.models import FeatureList, FeatureListMetadata


@pytest.fixture
def write_features(tmp_path):
    """Write ai/feature_list.json under tmp_path and return the project dir."""
    def _write(features, tdd_mode="recommended"):
        feature_list = FeatureList(
            features=list(features),
            metadata=FeatureListMetadata(project_goal="Test project", tdd_mode=tdd_mode),
        )
        path = tmp_path / "ai" / "feature_list.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(feature_list.to_dict(), indent=2))
        return tmp_path
    return _write


@pytest.fixture
def touch(tmp_path):
    """Create files (with parent dirs) relative to tmp_path."""
    def _touch(*paths):
        for rel in paths:
            p = tmp_path / rel
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_text("")
        return tmp_path
    return _touch
