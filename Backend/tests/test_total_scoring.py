import asyncio
from unittest.mock import AsyncMock

import pytest

from talentscout.core.errors import InvalidWeightsError
from talentscout.core.models import PriorityTier, ScoreComponents, ScoringWeights
from talentscout.services.total_scoring import ScoreAggregator


@pytest.fixture
def aggregator():
    return ScoreAggregator()


def test_equal_weights_average_the_components(aggregator):
    components = ScoreComponents(open_to_work=8, skill_match=7, job_stability=6.4, platform_engagement=8)
    result = aggregator.score(components, ScoringWeights.default())
    assert result.total == pytest.approx(7.35)
    assert result.priority == PriorityTier.MEDIUM


def test_weights_are_normalized_before_use(aggregator):
    components = ScoreComponents(open_to_work=10, skill_match=0, job_stability=0, platform_engagement=0)
    weights = ScoringWeights(open_to_work=50, skill_match=50, job_stability=0, platform_engagement=0)
    assert aggregator.calculate_total(components, weights) == 5.0


def test_zero_weights_score_zero(aggregator):
    components = ScoreComponents(open_to_work=10, skill_match=10, job_stability=10, platform_engagement=10)
    weights = ScoringWeights(open_to_work=0, skill_match=0, job_stability=0, platform_engagement=0)
    result = aggregator.score(components, weights)
    assert result.total == 0
    assert result.priority == PriorityTier.LOW


def test_total_stays_within_bounds(aggregator):
    top = ScoreComponents(open_to_work=10, skill_match=10, job_stability=10, platform_engagement=10)
    assert aggregator.calculate_total(top, ScoringWeights.default()) == 10.0
    bottom = ScoreComponents()
    assert aggregator.calculate_total(bottom, ScoringWeights.default()) == 0.0


def test_component_scores_are_clamped():
    components = ScoreComponents(open_to_work=14, skill_match=-3)
    assert components.open_to_work == 10
    assert components.skill_match == 0


@pytest.mark.parametrize("total, tier", [
    (7.5, PriorityTier.HIGH),
    (7.49, PriorityTier.MEDIUM),
    (5.0, PriorityTier.MEDIUM),
    (4.99, PriorityTier.LOW),
])
def test_priority_thresholds(aggregator, total, tier):
    assert aggregator.calculate_priority(total) == tier


def test_normalization_is_idempotent():
    weights = ScoringWeights(open_to_work=40, skill_match=30, job_stability=20, platform_engagement=10)
    once = weights.normalized()
    twice = once.normalized()
    assert twice.open_to_work == pytest.approx(once.open_to_work)
    assert twice.platform_engagement == pytest.approx(once.platform_engagement)
    assert once.total == pytest.approx(1.0)


def test_interactive_weights_must_sum_to_100():
    with pytest.raises(InvalidWeightsError):
        ScoringWeights(open_to_work=30, skill_match=30, job_stability=30, platform_engagement=30).validate_interactive()
    ScoringWeights(open_to_work=40, skill_match=30, job_stability=20, platform_engagement=10).validate_interactive()


def test_recalculate_all_skips_failures(aggregator):
    components = ScoreComponents(open_to_work=8, skill_match=8, job_stability=8, platform_engagement=8)
    storage = AsyncMock()
    storage.get_scoring_weights.return_value = ScoringWeights.default()
    storage.list_candidate_components.return_value = [("a", components), ("b", components), ("c", components)]
    storage.update_candidate_score.side_effect = [None, RuntimeError("db down"), None]

    summary = asyncio.run(aggregator.recalculate_all(storage, "acme"))

    assert summary.updated_count == 2
    assert summary.failed_count == 1
    assert summary.tenant_id == "acme"
    assert storage.update_candidate_score.await_count == 3
    first_result = storage.update_candidate_score.await_args_list[0].args[1]
    assert first_result.total == 8.0
    assert first_result.priority == PriorityTier.HIGH


def test_recalculate_all_uses_explicit_weights(aggregator):
    storage = AsyncMock()
    storage.list_candidate_components.return_value = []
    weights = ScoringWeights(open_to_work=100, skill_match=0, job_stability=0, platform_engagement=0)

    summary = asyncio.run(aggregator.recalculate_all(storage, "acme", weights))

    storage.get_scoring_weights.assert_not_awaited()
    assert summary.weights == weights
    assert summary.model_dump(by_alias=True)["updatedCount"] == 0


def test_weighted_example(aggregator):
    weights = ScoringWeights(open_to_work=40, skill_match=30, job_stability=15, platform_engagement=15)
    components = ScoreComponents(open_to_work=9, skill_match=7, job_stability=6, platform_engagement=5)
    result = aggregator.score(components, weights)
    assert result.total == pytest.approx(7.35)
    assert result.priority == PriorityTier.MEDIUM
