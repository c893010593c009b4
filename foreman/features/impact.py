"""
Feature-change impact analysis.

When one feature changes, the features that depend on it (and, more
loosely, the other features in its module) may need re-verification.
"""

import logging
from dataclasses import dataclass, field

from foreman.features.graph import build_dependency_graph, find_affected_chain
from foreman.features.lifecycle import transition
from foreman.features.models import Feature, PASSING, DEPRECATED, NEEDS_REVIEW
from foreman.features.store import append_note, get_feature

logger = logging.getLogger(__name__)

MARK_NEEDS_REVIEW = "mark_needs_review"
UPDATE_NOTES = "update_notes"


@dataclass
class ImpactRecommendation:
    feature_id: str
    action: str  # mark_needs_review | update_notes
    reason: str


@dataclass
class FeatureImpact:
    """Features touched by a change to one feature."""
    changed_id: str
    directly_affected: list[Feature] = field(default_factory=list)
    potentially_affected: list[Feature] = field(default_factory=list)
    transitive_chain: list[str] = field(default_factory=list)
    recommendations: list[ImpactRecommendation] = field(default_factory=list)


def analyze_impact(features: list[Feature], changed_id: str) -> FeatureImpact:
    """Work out which features a change to `changed_id` affects.

    Directly affected: non-deprecated features listing it in dependsOn.
    Potentially affected: other non-deprecated features in the same module.

    Raises:
        FeatureNotFound: if changed_id is unknown
    """
    changed = get_feature(features, changed_id)

    direct = [
        f for f in features
        if changed_id in f.depends_on and f.status != DEPRECATED
    ]
    direct_ids = {f.id for f in direct}
    potential = [
        f for f in features
        if changed.module
        and f.module == changed.module
        and f.id != changed_id
        and f.id not in direct_ids
        and f.status != DEPRECATED
    ]

    recommendations = []
    for f in direct:
        if f.status == PASSING:
            recommendations.append(ImpactRecommendation(
                feature_id=f.id,
                action=MARK_NEEDS_REVIEW,
                reason=f"Depends on '{changed_id}' which was modified",
            ))
    for f in potential:
        if f.status == PASSING:
            recommendations.append(ImpactRecommendation(
                feature_id=f.id,
                action=UPDATE_NOTES,
                reason=f"Same module as '{changed_id}', may need verification",
            ))

    graph = build_dependency_graph(features)
    return FeatureImpact(
        changed_id=changed_id,
        directly_affected=direct,
        potentially_affected=potential,
        transitive_chain=find_affected_chain(graph, changed_id),
        recommendations=recommendations,
    )


def apply_impact_recommendations(features: list[Feature], recommendations: list[ImpactRecommendation]) -> list[str]:
    """Apply recommendations in place. Returns the IDs that were changed.

    Recommendations naming unknown features are skipped with a warning.
    """
    changed = []
    for rec in recommendations:
        feature = next((f for f in features if f.id == rec.feature_id), None)
        if feature is None:
            logger.warning(f"[IMPACT] Skipping recommendation for unknown feature {rec.feature_id}")
            continue

        if rec.action == MARK_NEEDS_REVIEW:
            transition(feature, NEEDS_REVIEW)
            append_note(feature, rec.reason)
        elif rec.action == UPDATE_NOTES:
            append_note(feature, rec.reason)
        else:
            logger.warning(f"[IMPACT] Unknown recommendation action '{rec.action}' for {rec.feature_id}")
            continue
        changed.append(feature.id)
    return changed
