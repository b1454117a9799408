"""
Company consistency and hireability analysis.

Compares the employer a candidate declared on their resume with the employer
reported by the enrichment service, then folds that comparison together with
four other signals into a 0-10 hireability estimate.
"""

import logging
import math
import re
from datetime import datetime
from typing import Callable, Optional, Sequence

from talentscout.core.models import (
    CompanyComparison,
    CompanyMatch,
    HireabilityAssessment,
    PotentialToJoin,
)
from talentscout.core.numbers import round_half_up
from talentscout.core.timeutil import to_naive_utc, utcnow

logger = logging.getLogger(__name__)

LEGAL_ENTITY_SUFFIXES = frozenset({'inc', 'corp', 'corporation', 'llc', 'ltd', 'limited', 'company', 'co'})
PLACEHOLDER_COMPANIES = frozenset({'unknown', 'unknown company', 'n/a', 'na', 'none'})
WORD_OVERLAP_RATIO = 0.6

_PUNCTUATION_RE = re.compile(r"[^\w\s]")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_company_name(company_name: Optional[str]) -> str:
    """Lowercase, strip punctuation, collapse whitespace."""
    if not company_name:
        return ""
    normalized = _PUNCTUATION_RE.sub("", company_name.lower())
    return _WHITESPACE_RE.sub(" ", normalized).strip()


class CompanyConsistencyAnalyzer:
    """Pure heuristic comparing declared and enriched employers."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or utcnow

    def compare(self, declared_company: Optional[str], enriched_company: Optional[str]) -> CompanyComparison:
        declared = normalize_company_name(declared_company)
        enriched = normalize_company_name(enriched_company)
        if enriched in PLACEHOLDER_COMPANIES:
            enriched = ""

        if not declared and not enriched:
            return CompanyComparison(classification=CompanyMatch.UNKNOWN, score=5,
                                     description="No company information available")
        if not declared:
            return CompanyComparison(classification=CompanyMatch.UNKNOWN, score=5,
                                     description="Resume company unknown")
        if not enriched:
            return CompanyComparison(classification=CompanyMatch.UNKNOWN, score=5,
                                     description="Enriched company unknown")

        if declared == enriched:
            return CompanyComparison(classification=CompanyMatch.MATCH, score=10,
                                     description="Companies match")

        if self.is_partial_match(declared, enriched):
            return CompanyComparison(classification=CompanyMatch.LIKELY_MATCH, score=8,
                                     description="Companies likely match (partial)")

        return CompanyComparison(
            classification=CompanyMatch.DIFFERENT,
            score=3,
            description=f"Different companies: {declared_company} -> {enriched_company}",
        )

    @staticmethod
    def is_partial_match(company1: str, company2: str) -> bool:
        """Containment, or strong word overlap when a legal-entity suffix is present."""
        if company1 in company2 or company2 in company1:
            return True

        words1 = company1.split(" ")
        words2 = company2.split(" ")
        has_suffix = any(w in LEGAL_ENTITY_SUFFIXES for w in words1) or \
            any(w in LEGAL_ENTITY_SUFFIXES for w in words2)
        shared = sum(1 for w in words1 if w in words2)
        min_words = min(len(words1), len(words2))
        return has_suffix and shared >= math.ceil(min_words * WORD_OVERLAP_RATIO)

    def assess_hireability(
        self,
        open_to_work: bool,
        comparison: CompanyComparison,
        last_activity: Optional[datetime],
        skills: Sequence[str],
        location: Optional[str],
    ) -> HireabilityAssessment:
        """Average five equally weighted 0-10 factors into a hireability score."""
        factors = []
        scores = []

        open_to_work_score = 10 if open_to_work else 3
        scores.append(open_to_work_score)
        factors.append(f"Open to Work: {open_to_work_score}/10")

        scores.append(comparison.score)
        factors.append(f"Company Consistency: {comparison.score:g}/10")

        activity_score, activity_label = self.score_recency(last_activity)
        scores.append(activity_score)
        factors.append(activity_label)

        skills_score = min(10, len(skills)) if skills else 5
        scores.append(skills_score)
        factors.append(f"Skills: {skills_score}/10 ({len(skills or ())} skills)")

        location_score = 8 if location else 5
        scores.append(location_score)
        factors.append(f"Location: {location_score}/10")

        hireability_score = round_half_up(sum(scores) / len(scores), 1)

        return HireabilityAssessment(
            company_difference=comparison.description,
            company_difference_score=comparison.score,
            hireability_score=hireability_score,
            hireability_factors=factors,
            potential_to_join=self.potential_to_join(hireability_score),
        )

    def score_recency(self, last_activity: Optional[datetime]):
        if last_activity is None:
            return 5, "Activity: unknown"
        days_since_active = (self._clock() - to_naive_utc(last_activity)).days
        if days_since_active <= 7:
            return 10, "Activity: very active (last 7 days)"
        if days_since_active <= 30:
            return 8, "Activity: active (last 30 days)"
        if days_since_active <= 90:
            return 6, "Activity: moderately active (last 90 days)"
        return 4, "Activity: inactive (>90 days)"

    @staticmethod
    def potential_to_join(hireability_score: float) -> PotentialToJoin:
        if hireability_score >= 8:
            return PotentialToJoin.HIGH
        if hireability_score >= 6:
            return PotentialToJoin.MEDIUM
        if hireability_score >= 4:
            return PotentialToJoin.LOW
        return PotentialToJoin.UNKNOWN
