"""
Job Stability Scoring Service

Scores a candidate's employment history on a 0-10 scale from five signals:
average tenure of the two most recent roles, longest tenure, number of job
changes in the last five years, the largest employment gap, and how
consistently the role titles stay within one function.

The analyzer is a pure function of the history and the reference "now": the
entries are sorted internally, so the input order never changes the result.
"""

import logging
import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Sequence, Tuple

from talentscout.core.models import WorkHistoryEntry
from talentscout.core.numbers import round_half_up
from talentscout.core.timeutil import to_naive_utc, utcnow

logger = logging.getLogger(__name__)

AVERAGE_MONTH_SECONDS = 60 * 60 * 24 * 30.44
OPEN_ENDED_SENTINELS = frozenset({"current", "present"})
MIN_GAP_MONTHS = 2

_DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%Y-%m",
    "%Y/%m",
    "%m/%Y",
    "%m-%Y",
    "%b %Y",
    "%B %Y",
    "%b %d %Y",
    "%B %d %Y",
    "%d %b %Y",
    "%d %B %Y",
)
_MONTH_YEAR_RE = re.compile(r"(\d{1,2})[/\-](\d{4})")
_YEAR_RE = re.compile(r"(\d{4})")

# Title keyword buckets used for the continuity signal
TECH_KEYWORDS = ('software', 'developer', 'engineer', 'programmer', 'architect', 'tech', 'data',
                 'web', 'mobile', 'frontend', 'backend', 'fullstack', 'devops')
MANAGEMENT_KEYWORDS = ('manager', 'director', 'lead', 'head', 'chief', 'vp', 'president', 'senior')
DESIGN_KEYWORDS = ('designer', 'ux', 'ui', 'product', 'creative', 'visual')
SALES_KEYWORDS = ('sales', 'account', 'business', 'marketing', 'customer')
TITLE_CATEGORIES = (TECH_KEYWORDS, MANAGEMENT_KEYWORDS, DESIGN_KEYWORDS, SALES_KEYWORDS)


@dataclass(frozen=True)
class ParsedJob:
    title: str
    company: str
    start: datetime
    end: Optional[datetime]  # None when the entry carries no end date at all

    def sort_key(self) -> Tuple:
        return (self.start, self.end is None, self.end or self.start, self.title.lower(), self.company.lower())


@dataclass
class JobStabilityMetrics:
    avg_tenure: float = 0.0  # months
    longest_tenure: float = 0.0  # months
    job_changes_last_5_years: int = 0
    largest_gap: int = 0  # months
    continuity_score: float = 0.0  # 0-100


@dataclass
class JobStabilityScoring:
    avg_tenure_score: float = 0.0
    longest_tenure_score: float = 0.0
    job_change_score: float = 0.0
    gap_score: float = 100.0
    continuity_score: float = 0.0
    final_score: float = 0.0  # 0-100
    scaled_score: float = 0.0  # 0-10
    metrics: JobStabilityMetrics = field(default_factory=JobStabilityMetrics)


def parse_work_date(value: Optional[str], now: datetime) -> Optional[datetime]:
    """Parse a work-history date. "current"/"present" map to now; junk maps to None."""
    if not value:
        return None
    text = value.strip()
    if text.lower() in OPEN_ENDED_SENTINELS:
        return now

    try:
        return to_naive_utc(datetime.fromisoformat(text))
    except ValueError:
        pass

    cleaned = text.replace(".", "").replace(",", "")
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt)
        except ValueError:
            continue

    match = _MONTH_YEAR_RE.search(text)
    if match:
        month, year = int(match.group(1)), int(match.group(2))
        if 1 <= month <= 12:
            return datetime(year, month, 1)

    match = _YEAR_RE.search(text)
    if match:
        return datetime(int(match.group(1)), 1, 1)

    logger.debug("Failed to parse work-history date: %r", value)
    return None


def months_between(start: datetime, end: datetime) -> int:
    """Whole months between two instants, rounded up, using an average month length."""
    return math.ceil(abs((end - start).total_seconds()) / AVERAGE_MONTH_SECONDS)


def _years_before(moment: datetime, years: int) -> datetime:
    try:
        return moment.replace(year=moment.year - years)
    except ValueError:
        # 29 February
        return moment.replace(year=moment.year - years, day=28)


class JobStabilityAnalyzer:
    """Pure heuristic scorer over employment history."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or utcnow

    def score(self, history: Sequence[WorkHistoryEntry]) -> float:
        return self.analyze(history).scaled_score

    def analyze(self, history: Sequence[WorkHistoryEntry]) -> JobStabilityScoring:
        now = self._clock()
        jobs = self.parse_history(history, now)
        if not jobs:
            return JobStabilityScoring()

        metrics = self.calculate_metrics(jobs, now)

        avg_tenure_score = self.score_average_tenure(metrics.avg_tenure)
        longest_tenure_score = self.score_longest_tenure(metrics.longest_tenure)
        job_change_score = self.score_job_changes(metrics.job_changes_last_5_years)
        gap_score = self.score_gaps(metrics.largest_gap)

        final_score = (
            0.30 * avg_tenure_score
            + 0.20 * longest_tenure_score
            + 0.25 * job_change_score
            + 0.15 * gap_score
            + 0.10 * metrics.continuity_score
        )

        return JobStabilityScoring(
            avg_tenure_score=avg_tenure_score,
            longest_tenure_score=longest_tenure_score,
            job_change_score=job_change_score,
            gap_score=gap_score,
            continuity_score=metrics.continuity_score,
            final_score=round_half_up(final_score, 2),
            scaled_score=round_half_up(final_score / 10, 2),
            metrics=metrics,
        )

    @staticmethod
    def parse_history(history: Sequence[WorkHistoryEntry], now: datetime) -> List[ParsedJob]:
        """Parse dates, drop entries without a usable start date, sort oldest first."""
        jobs = []
        for entry in history or ():
            start = parse_work_date(entry.start_date, now)
            if start is None:
                continue
            jobs.append(ParsedJob(
                title=entry.title or "",
                company=entry.company or "",
                start=start,
                end=parse_work_date(entry.end_date, now),
            ))
        jobs.sort(key=ParsedJob.sort_key)
        return jobs

    def calculate_metrics(self, jobs: List[ParsedJob], now: datetime) -> JobStabilityMetrics:
        tenures = [months_between(job.start, job.end or now) for job in jobs]

        # jobs are sorted oldest first, so the most recent two are at the end
        recent = tenures[-2:]
        avg_tenure = sum(recent) / len(recent)

        five_years_ago = _years_before(now, 5)
        recent_jobs = [job for job in jobs if job.start >= five_years_ago]

        return JobStabilityMetrics(
            avg_tenure=avg_tenure,
            longest_tenure=max(tenures),
            job_changes_last_5_years=max(0, len(recent_jobs) - 1),
            largest_gap=self.calculate_largest_gap(jobs),
            continuity_score=self.calculate_continuity_score(jobs),
        )

    @staticmethod
    def calculate_largest_gap(jobs: List[ParsedJob]) -> int:
        """Largest gap (months) between consecutive jobs, counting only gaps over two months."""
        largest_gap = 0
        for previous, current in zip(jobs, jobs[1:]):
            if previous.end is None:
                continue
            gap_seconds = (current.start - previous.end).total_seconds()
            gap_months = math.ceil(gap_seconds / AVERAGE_MONTH_SECONDS)
            if gap_months > MIN_GAP_MONTHS:
                largest_gap = max(largest_gap, gap_months)
        return largest_gap

    @staticmethod
    def calculate_continuity_score(jobs: List[ParsedJob]) -> float:
        if len(jobs) <= 1:
            return 100

        best_coverage = 0.0
        for keywords in TITLE_CATEGORIES:
            matching = sum(
                1 for job in jobs
                if any(keyword in job.title.lower() for keyword in keywords)
            )
            best_coverage = max(best_coverage, matching / len(jobs) * 100)

        if best_coverage >= 70:
            return 100
        if best_coverage >= 50:
            return 70
        if best_coverage >= 30:
            return 40
        return 20

    @staticmethod
    def score_average_tenure(avg_tenure: float) -> float:
        if avg_tenure >= 24:
            return 100
        if avg_tenure >= 18:
            return 75
        if avg_tenure >= 12:
            return 50
        if avg_tenure >= 6:
            return 25
        return 0

    @staticmethod
    def score_longest_tenure(longest_tenure: float) -> float:
        if longest_tenure >= 60:
            return 100
        if longest_tenure >= 36:
            return 80
        if longest_tenure >= 24:
            return 60
        if longest_tenure >= 12:
            return 40
        return 20

    @staticmethod
    def score_job_changes(changes: int) -> float:
        if changes <= 1:
            return 100
        if changes == 2:
            return 80
        if changes == 3:
            return 60
        if changes == 4:
            return 40
        return 20

    @staticmethod
    def score_gaps(largest_gap: int) -> float:
        if largest_gap == 0:
            return 100
        if largest_gap <= 6:
            return 70
        if largest_gap <= 12:
            return 40
        return 20
