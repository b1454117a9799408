"""
Individual Scoring Service

Calculates the open-to-work and platform-engagement component scores (0-10)
from the raw candidate record and the enriched profile. Skill match comes from
the scoring request and job stability from JobStabilityAnalyzer; this module
only assembles them into ScoreComponents.
"""

from datetime import datetime
from typing import Callable, Optional

from talentscout.core.models import CandidateAnalysis, CandidateRecord, EnrichedProfile, ScoreComponents
from talentscout.core.numbers import round_half_up
from talentscout.core.timeutil import to_naive_utc, utcnow

OPEN_TO_WORK_KEYWORDS = (
    'immediate joiner',
    'immediately available',
    'open for opportunity',
    'open to opportunity',
    'seeking new opportunity',
    'looking for new',
    'open to work',
    'available immediately',
    'ready to join',
    'actively seeking',
    'job seeking',
    'career change',
    'new opportunities',
    'open for roles',
    'exploring opportunities',
)
URGENT_KEYWORDS = ('immediate', 'asap', 'urgent', 'available now', 'right away')
PASSIVE_KEYWORDS = ('open to discuss', 'interested in hearing', 'would consider', 'might be interested')

NEUTRAL_SCORE = 5.0


class IndividualScorer:

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or utcnow

    def open_to_work_score(self, candidate: CandidateRecord, profile: EnrichedProfile) -> float:
        """
        Explicit open-to-work signal scores 10. Otherwise scan the summary,
        headline and recent signals for phrases; no explicit phrase is neutral.
        """
        if profile.open_to_work:
            return 10.0

        text = " ".join(filter(None, [
            candidate.summary,
            profile.headline,
            *profile.recent_signals,
        ])).lower()

        score = 0.0
        keyword_matches = 0
        for keyword in OPEN_TO_WORK_KEYWORDS:
            if keyword in text:
                keyword_matches += 1
                score += 2
        for keyword in URGENT_KEYWORDS:
            if keyword in text:
                score += 1
        for keyword in PASSIVE_KEYWORDS:
            if keyword in text:
                score += 0.5

        if keyword_matches == 0:
            return NEUTRAL_SCORE
        return round_half_up(min(10.0, score), 2)

    def platform_engagement_score(self, candidate: CandidateRecord, profile: EnrichedProfile) -> float:
        score = 0.0
        factors = 0

        # Last activity (40%)
        if profile.last_activity is not None:
            days = (self._clock() - to_naive_utc(profile.last_activity)).days
            if days <= 7:
                activity_score = 10
            elif days <= 30:
                activity_score = 8
            elif days <= 90:
                activity_score = 6
            elif days <= 180:
                activity_score = 4
            else:
                activity_score = 2
            score += activity_score * 0.4
            factors += 1

        # Network size (20%)
        if profile.connections:
            if profile.connections >= 500:
                connection_score = 10
            elif profile.connections >= 200:
                connection_score = 8
            elif profile.connections >= 100:
                connection_score = 6
            elif profile.connections >= 50:
                connection_score = 4
            else:
                connection_score = 2
            score += connection_score * 0.2
            factors += 1

        # Recent posts / comments (20%)
        signals_length = sum(len(s) for s in profile.recent_signals)
        if signals_length:
            if signals_length > 500:
                signals_score = 10
            elif signals_length > 200:
                signals_score = 8
            elif signals_length > 100:
                signals_score = 6
            else:
                signals_score = 4
            score += signals_score * 0.2
            factors += 1

        # Profile completeness (20%)
        completeness = 0
        completeness_factors = 0
        if candidate.summary and len(candidate.summary) > 50:
            completeness += 3
            completeness_factors += 1
        if candidate.work_history:
            completeness += 3
            completeness_factors += 1
        if candidate.skills or profile.skills:
            completeness += 2
            completeness_factors += 1
        if candidate.email:
            completeness += 2
            completeness_factors += 1
        if completeness_factors:
            score += (completeness / completeness_factors) * 2 * 0.2
            factors += 1

        if factors == 0:
            return NEUTRAL_SCORE
        return round_half_up(min(10.0, score), 2)

    def components(
        self,
        candidate: CandidateRecord,
        profile: EnrichedProfile,
        analysis: CandidateAnalysis,
        job_stability: float,
    ) -> ScoreComponents:
        return ScoreComponents(
            open_to_work=self.open_to_work_score(candidate, profile),
            skill_match=analysis.skill_match,
            job_stability=job_stability,
            platform_engagement=self.platform_engagement_score(candidate, profile),
        )
