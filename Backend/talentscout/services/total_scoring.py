"""
Total Scoring Service

Combines the four component scores into a weighted 0-10 total and a priority
tier, and recalculates every active candidate of a tenant when the tenant's
scoring weights change.
"""

import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from talentscout.core.models import PriorityTier, ScoreComponents, ScoreResult, ScoringWeights
from talentscout.core.numbers import clamp, round_half_up

logger = logging.getLogger(__name__)

HIGH_PRIORITY_THRESHOLD = 7.5
MEDIUM_PRIORITY_THRESHOLD = 5.0


class RecalculationSummary(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    tenant_id: str
    updated_count: int = 0
    failed_count: int = 0
    weights: ScoringWeights


class ScoreAggregator:
    """Weighted combination of component scores into a total score and priority tier."""

    @staticmethod
    def calculate_total(components: ScoreComponents, weights: ScoringWeights) -> float:
        if weights.total <= 0:
            return 0.0

        normalized = weights.normalized()
        total = (
            components.open_to_work * normalized.open_to_work
            + components.skill_match * normalized.skill_match
            + components.job_stability * normalized.job_stability
            + components.platform_engagement * normalized.platform_engagement
        )
        return round_half_up(clamp(total), 2)

    @staticmethod
    def calculate_priority(total_score: float) -> PriorityTier:
        if total_score >= HIGH_PRIORITY_THRESHOLD:
            return PriorityTier.HIGH
        if total_score >= MEDIUM_PRIORITY_THRESHOLD:
            return PriorityTier.MEDIUM
        return PriorityTier.LOW

    def score(self, components: ScoreComponents, weights: ScoringWeights) -> ScoreResult:
        total = self.calculate_total(components, weights)
        return ScoreResult(total=total, priority=self.calculate_priority(total))

    async def recalculate_all(self, storage, tenant_id: str,
                              weights: Optional[ScoringWeights] = None) -> RecalculationSummary:
        """
        Re-score every active candidate of a tenant. Safe to re-run: the result
        depends only on the stored components and the weights, never on the
        previous total. A failure on one candidate is logged and skipped.
        """
        if weights is None:
            weights = await storage.get_scoring_weights(tenant_id)

        summary = RecalculationSummary(tenant_id=tenant_id, weights=weights)
        candidates = await storage.list_candidate_components(tenant_id)

        for candidate_id, components in candidates:
            try:
                result = self.score(components, weights)
                await storage.update_candidate_score(candidate_id, result)
                summary.updated_count += 1
            except Exception:
                logger.exception("Failed to update score for candidate %s", candidate_id)
                summary.failed_count += 1

        logger.info(
            "Recalculated scores for %d candidates in tenant %s (%d failed)",
            summary.updated_count, tenant_id, summary.failed_count,
        )
        return summary
