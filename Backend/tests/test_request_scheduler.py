import asyncio

import pytest

from talentscout.core.errors import CandidateScoringError, PipelineValidationError
from talentscout.core.models import CandidateRecord, ProfileIdentity, ScoringWeights
from talentscout.services.request_scheduler import (
    EnrichmentRequest,
    RequestScheduler,
    ScoringRequest,
    identity_key,
)

from .fakes import FakeProfileLookup, FakeScorer


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def make_scheduler(lookup=None, scorer=None, **kwargs):
    kwargs.setdefault("rate_limit_delay", 0)
    return RequestScheduler(lookup or FakeProfileLookup(), scorer or FakeScorer(), **kwargs)


def scoring_request(name="Jane Doe", **fields):
    return ScoringRequest(candidate=CandidateRecord(name=name, **fields), weights=ScoringWeights.default())


class TestIdentityKey:

    def test_normalizes_case_whitespace_and_skill_order(self):
        a = identity_key("profile", "Jane Doe ", "JANE@example.com", "Acme", ["SQL", "Python"])
        b = identity_key("profile", "jane doe", "jane@example.com", "acme", ["python", "sql"])
        assert a == b

    def test_kind_and_weights_change_the_key(self):
        assert identity_key("profile", "Jane") != identity_key("analysis", "Jane")
        heavy = ScoringWeights(open_to_work=70, skill_match=10, job_stability=10, platform_engagement=10)
        assert identity_key("analysis", "Jane", weights=ScoringWeights.default()) != \
            identity_key("analysis", "Jane", weights=heavy)

    def test_enrichment_key_ignores_title(self):
        a = EnrichmentRequest(ProfileIdentity(name="Jane", company="Acme", title="Engineer"))
        b = EnrichmentRequest(ProfileIdentity(name="Jane", company="Acme", title="Manager"))
        assert a.cache_key() == b.cache_key()


class TestCaching:

    def test_cache_hit_skips_the_queue(self):
        async def scenario():
            lookup = FakeProfileLookup()
            scheduler = make_scheduler(lookup)
            identity = ProfileIdentity(name="Jane Doe", company="Acme")

            first = await scheduler.enrich_profile(identity)
            assert scheduler.dispatched_count == 1

            future = scheduler.submit(EnrichmentRequest(identity))
            assert future.done()
            assert future.result() == first
            assert scheduler.dispatched_count == 1
            assert lookup.calls == ["Jane Doe"]
            assert scheduler.cache_stats()["hits"] == 1
            await scheduler.close()

        asyncio.run(scenario())

    def test_expired_entry_is_fetched_again(self):
        async def scenario():
            clock = FakeClock()
            lookup = FakeProfileLookup()
            scheduler = make_scheduler(lookup, cache_ttl=300, clock=clock)
            identity = ProfileIdentity(name="Jane Doe")

            await scheduler.enrich_profile(identity)
            clock.now += 299
            await scheduler.enrich_profile(identity)
            assert scheduler.dispatched_count == 1

            clock.now += 2
            await scheduler.enrich_profile(identity)
            assert scheduler.dispatched_count == 2
            assert len(lookup.calls) == 2
            await scheduler.close()

        asyncio.run(scenario())

    def test_degraded_profiles_are_not_cached(self):
        async def scenario():
            lookup = FakeProfileLookup(fail_for={"Jane Doe"})
            scheduler = make_scheduler(lookup)
            identity = ProfileIdentity(name="Jane Doe", company="Acme", title="Engineer")

            profile = await scheduler.enrich_profile(identity)
            assert profile.degraded
            assert profile.headline == "Engineer"
            assert profile.current_company == "Acme"

            await scheduler.enrich_profile(identity)
            assert lookup.calls == ["Jane Doe", "Jane Doe"]
            assert scheduler.cache_stats()["size"] == 0
            await scheduler.close()

        asyncio.run(scenario())

    def test_unexpected_lookup_error_degrades(self):
        class BrokenLookup:
            async def lookup(self, identity):
                raise KeyError("data")

        async def scenario():
            scheduler = make_scheduler(BrokenLookup())
            profile = await scheduler.enrich_profile(ProfileIdentity(name="Jane Doe"))
            assert profile.degraded
            await scheduler.close()

        asyncio.run(scenario())

    def test_scoring_results_are_cached(self):
        async def scenario():
            scorer = FakeScorer(skill_match=6.0)
            scheduler = make_scheduler(scorer=scorer)
            first = await scheduler.score_candidate(scoring_request())
            second = await scheduler.score_candidate(scoring_request())
            assert first.skill_match == 6.0
            assert second == first
            assert scorer.calls == ["Jane Doe"]
            await scheduler.close()

        asyncio.run(scenario())

    def test_clear_cache(self):
        async def scenario():
            lookup = FakeProfileLookup()
            scheduler = make_scheduler(lookup)
            await scheduler.enrich_profile(ProfileIdentity(name="Jane Doe"))
            scheduler.clear_cache()
            await scheduler.enrich_profile(ProfileIdentity(name="Jane Doe"))
            assert len(lookup.calls) == 2
            await scheduler.close()

        asyncio.run(scenario())


class TestErrors:

    def test_scoring_failure_propagates(self):
        async def scenario():
            scheduler = make_scheduler(scorer=FakeScorer(fail_for={"Jane Doe"}))
            with pytest.raises(CandidateScoringError):
                await scheduler.score_candidate(scoring_request())
            assert scheduler.active_requests == 0
            await scheduler.close()

        asyncio.run(scenario())

    def test_non_object_scoring_response_is_a_scoring_error(self):
        class ListScorer(FakeScorer):
            async def score(self, request):
                return ["not", "an", "object"]

        async def scenario():
            scheduler = make_scheduler(scorer=ListScorer())
            with pytest.raises(CandidateScoringError):
                await scheduler.score_candidate(scoring_request())
            await scheduler.close()

        asyncio.run(scenario())

    def test_invalid_rate_limit_is_rejected(self):
        scheduler = make_scheduler()
        with pytest.raises(PipelineValidationError):
            scheduler.update_rate_limit(-1, 2)
        with pytest.raises(PipelineValidationError):
            scheduler.update_rate_limit(0.5, 0)
        scheduler.update_rate_limit(0.5, 5)
        assert scheduler.rate_limit_delay == 0.5
        assert scheduler.max_concurrent == 5

    def test_max_concurrent_must_be_positive(self):
        with pytest.raises(PipelineValidationError):
            make_scheduler(max_concurrent=0)


class TestDispatch:

    def test_concurrency_bound_and_fifo_order(self):
        async def scenario():
            lookup = FakeProfileLookup(delay=0.02)
            scheduler = make_scheduler(lookup, max_concurrent=2)
            names = [f"Candidate {i}" for i in range(6)]

            profiles = await asyncio.gather(*(
                scheduler.enrich_profile(ProfileIdentity(name=name)) for name in names
            ))

            assert [p.name for p in profiles] == names
            assert lookup.calls == names
            assert lookup.max_in_flight <= 2
            assert scheduler.dispatched_count == 6
            assert scheduler.active_requests == 0
            assert scheduler.queue_depth == 0
            await scheduler.close()

        asyncio.run(scenario())

    def test_close_cancels_queued_requests(self):
        async def scenario():
            lookup = FakeProfileLookup(delay=0.05)
            scheduler = make_scheduler(lookup, max_concurrent=1)
            futures = [scheduler.submit(EnrichmentRequest(ProfileIdentity(name=f"C{i}"))) for i in range(3)]
            await asyncio.sleep(0.01)
            await scheduler.close()
            assert futures[-1].cancelled()

        asyncio.run(scenario())


class TestBatchScoring:

    def requests(self, count=3):
        return [scoring_request(f"Candidate {i}") for i in range(count)]

    def test_combined_response_is_used(self):
        async def scenario():
            scorer = FakeScorer(skill_match=8.0)
            scheduler = make_scheduler(scorer=scorer)
            analyses = await scheduler.score_batch(self.requests())
            assert [a.skill_match for a in analyses] == [8.0, 8.0, 8.0]
            assert scorer.batch_calls == 1
            assert scorer.calls == []
            await scheduler.close()

        asyncio.run(scenario())

    def test_plain_list_response_is_accepted(self):
        async def scenario():
            scorer = FakeScorer(batch_response=[{"skillMatch": 3}, {"skillMatch": 4}])
            scheduler = make_scheduler(scorer=scorer)
            analyses = await scheduler.score_batch(self.requests(2))
            assert [a.skill_match for a in analyses] == [3.0, 4.0]
            await scheduler.close()

        asyncio.run(scenario())

    def test_wrong_length_falls_back_to_single_calls(self):
        async def scenario():
            scorer = FakeScorer(batch_response={"candidates": [{"skillMatch": 9}]})
            scheduler = make_scheduler(scorer=scorer)
            analyses = await scheduler.score_batch(self.requests())
            assert len(analyses) == 3
            assert scorer.calls == ["Candidate 0", "Candidate 1", "Candidate 2"]
            await scheduler.close()

        asyncio.run(scenario())

    def test_failed_batch_call_falls_back(self):
        async def scenario():
            scorer = FakeScorer(batch_response=CandidateScoringError("quota exceeded"))
            scheduler = make_scheduler(scorer=scorer)
            analyses = await scheduler.score_batch(self.requests(2))
            assert len(analyses) == 2
            assert scorer.batch_calls == 1
            assert len(scorer.calls) == 2
            await scheduler.close()

        asyncio.run(scenario())

    def test_fallback_uses_the_cache(self):
        async def scenario():
            scorer = FakeScorer(batch_response="garbage")
            scheduler = make_scheduler(scorer=scorer)
            requests = self.requests(2)
            await scheduler.score_candidate(requests[0])
            await scheduler.score_batch(requests)
            assert scorer.calls == ["Candidate 0", "Candidate 1"]
            await scheduler.close()

        asyncio.run(scenario())

    def test_single_request_skips_the_combined_call(self):
        async def scenario():
            scorer = FakeScorer()
            scheduler = make_scheduler(scorer=scorer)
            assert len(await scheduler.score_batch(self.requests(1))) == 1
            assert scorer.batch_calls == 0
            assert await scheduler.score_batch([]) == []
            await scheduler.close()

        asyncio.run(scenario())
