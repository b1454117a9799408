from datetime import datetime, timedelta

import pytest

from talentscout.core.models import CompanyComparison, CompanyMatch, PotentialToJoin
from talentscout.services.company_analysis import CompanyConsistencyAnalyzer, normalize_company_name

NOW = datetime(2024, 6, 1, 12, 0)


@pytest.fixture
def analyzer():
    return CompanyConsistencyAnalyzer(clock=lambda: NOW)


def test_normalize_company_name():
    assert normalize_company_name("  ACME,   Inc. ") == "acme inc"
    assert normalize_company_name(None) == ""


class TestCompanyComparison:

    def test_exact_match_after_normalization(self, analyzer):
        result = analyzer.compare("Acme Inc", "ACME INC.")
        assert result.score == 10
        assert result.classification == CompanyMatch.MATCH

    def test_different_companies(self, analyzer):
        result = analyzer.compare("Acme Inc", "Globex Corp")
        assert result.score == 3
        assert result.classification == CompanyMatch.DIFFERENT
        assert result.description == "Different companies: Acme Inc -> Globex Corp"

    def test_containment_is_a_likely_match(self, analyzer):
        result = analyzer.compare("Acme", "Acme Corporation")
        assert result.score == 8
        assert result.classification == CompanyMatch.LIKELY_MATCH

    def test_word_overlap_with_legal_suffix_is_a_likely_match(self, analyzer):
        assert analyzer.compare("Global Tech Solutions Inc", "Global Tech Inc").score == 8

    def test_word_overlap_without_legal_suffix_is_different(self, analyzer):
        assert analyzer.compare("Blue Ocean Labs", "Blue Sky Labs").score == 3

    @pytest.mark.parametrize("declared, enriched", [
        (None, "Globex"),
        ("Acme", None),
        (None, None),
        ("Acme", "Unknown Company"),
    ])
    def test_missing_side_is_unknown(self, analyzer, declared, enriched):
        result = analyzer.compare(declared, enriched)
        assert result.score == 5
        assert result.classification == CompanyMatch.UNKNOWN


class TestHireability:

    def test_strong_candidate(self, analyzer):
        comparison = analyzer.compare("Acme", "Acme")
        result = analyzer.assess_hireability(
            open_to_work=True,
            comparison=comparison,
            last_activity=NOW - timedelta(days=3),
            skills=[f"skill{i}" for i in range(12)],
            location="New York",
        )
        assert result.hireability_score == 9.6
        assert result.potential_to_join == PotentialToJoin.HIGH
        assert result.company_difference == "Companies match"
        assert result.company_difference_score == 10
        assert len(result.hireability_factors) == 5
        assert result.hireability_factors[0] == "Open to Work: 10/10"

    def test_unknown_signals_fall_back_to_neutral_factors(self, analyzer):
        comparison = CompanyComparison(classification=CompanyMatch.DIFFERENT, score=3, description="Different")
        result = analyzer.assess_hireability(False, comparison, None, [], None)
        assert result.hireability_score == 4.2
        assert result.potential_to_join == PotentialToJoin.LOW

    def test_weak_candidate_is_unknown(self, analyzer):
        comparison = CompanyComparison(classification=CompanyMatch.DIFFERENT, score=3, description="Different")
        result = analyzer.assess_hireability(False, comparison, NOW - timedelta(days=100), ["Excel"], None)
        assert result.hireability_score == 3.2
        assert result.potential_to_join == PotentialToJoin.UNKNOWN

    @pytest.mark.parametrize("days, expected", [(1, 10), (20, 8), (60, 6), (365, 4)])
    def test_recency_buckets(self, analyzer, days, expected):
        score, _ = analyzer.score_recency(NOW - timedelta(days=days))
        assert score == expected
