import asyncio
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from talentscout.core.errors import CandidateScoringError
from talentscout.core.models import CandidateRecord, EnrichedProfile, ScoringWeights
from talentscout.services.candidate_scoring import GeminiCandidateScorer, HeuristicCandidateScorer
from talentscout.services.request_scheduler import ScoringRequest


def make_request(skills=(), job_description="", profile=None):
    return ScoringRequest(
        candidate=CandidateRecord(name="Jane Doe", skills=list(skills), company="Acme"),
        weights=ScoringWeights.default(),
        profile=profile,
        job_description=job_description,
    )


class TestHeuristicCandidateScorer:

    @pytest.mark.parametrize("count, expected", [(0, 0), (1, 2), (5, 4), (10, 6), (15, 8), (20, 10)])
    def test_skill_count_buckets(self, count, expected):
        assert HeuristicCandidateScorer.skill_count_score(count) == expected

    def test_keyword_coverage_ignores_stopwords(self):
        coverage = HeuristicCandidateScorer.keyword_coverage(["Python"], "Python and the team")
        assert coverage == 10

    def test_no_keywords_means_no_coverage(self):
        assert HeuristicCandidateScorer.keyword_coverage(["Python"], "") is None
        assert HeuristicCandidateScorer.keyword_coverage(["Python"], "the and for") is None

    def test_blends_skill_count_with_keyword_coverage(self):
        request = make_request(["Python", "SQL"], "Python SQL Kubernetes")
        result = HeuristicCandidateScorer().analyze(request)
        assert result["skillMatch"] == 4.33
        assert result["priority"] == "Low"
        assert "Job description keyword coverage: 67%" in result["insights"]

    def test_profile_skills_are_merged_without_duplicates(self):
        profile = EnrichedProfile(name="Jane Doe", skills=("python", "Go", "Rust", "Docker", "Java"))
        result = HeuristicCandidateScorer().analyze(make_request(["Python"], profile=profile))
        assert result["insights"][0] == "5 skills listed"
        assert result["skillMatch"] == 4.0

    def test_batch_returns_one_analysis_per_request(self):
        scorer = HeuristicCandidateScorer()
        raw = asyncio.run(scorer.score_batch([make_request(["Python"]), make_request()]))
        assert [c["skillMatch"] for c in raw["candidates"]] == [2.0, 0.0]


def gemini_client(text=None, error=None):
    client = MagicMock()
    if error is not None:
        client.aio.models.generate_content = AsyncMock(side_effect=error)
    else:
        client.aio.models.generate_content = AsyncMock(return_value=SimpleNamespace(text=text))
    return client


class TestGeminiCandidateScorer:

    def test_returns_parsed_json(self):
        client = gemini_client(json.dumps({"skillMatch": 8, "priority": "High"}))
        scorer = GeminiCandidateScorer(client=client, model_name="gemini-test")

        raw = asyncio.run(scorer.score(make_request(["Python"], "Backend role")))

        assert raw == {"skillMatch": 8, "priority": "High"}
        kwargs = client.aio.models.generate_content.await_args.kwargs
        assert kwargs["model"] == "gemini-test"
        assert "Jane Doe" in kwargs["contents"]
        assert "Backend role" in kwargs["contents"]
        assert "Skill Match: 25%" in kwargs["contents"]

    def test_batch_prompt_lists_every_candidate(self):
        client = gemini_client(json.dumps({"candidates": []}))
        scorer = GeminiCandidateScorer(client=client)
        asyncio.run(scorer.score_batch([make_request(), make_request()]))
        prompt = client.aio.models.generate_content.await_args.kwargs["contents"]
        assert "following 2 candidate profiles" in prompt

    @pytest.mark.parametrize("client", [
        gemini_client(error=RuntimeError("quota exceeded")),
        gemini_client(text=""),
        gemini_client(text="not json"),
    ])
    def test_failures_raise_scoring_errors(self, client):
        scorer = GeminiCandidateScorer(client=client)
        with pytest.raises(CandidateScoringError):
            asyncio.run(scorer.score(make_request()))
