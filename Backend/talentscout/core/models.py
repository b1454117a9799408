"""
Core data models for the enrichment-and-scoring pipeline using Pydantic.

Candidate records and enriched profiles are closed, explicitly typed
structures. Records handed to the pipeline are frozen; skills and work
history are stored as tuples so nothing downstream can mutate them.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from .errors import CandidateValidationError, InvalidWeightsError
from .numbers import clamp
from .timeutil import utcnow


_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)
_FROZEN_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class PriorityTier(str, Enum):
    """Priority tier derived from the total score."""
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class PotentialToJoin(str, Enum):
    """Likelihood-to-join tier derived from the hireability score."""
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"
    UNKNOWN = "Unknown"


class CompanyMatch(str, Enum):
    MATCH = "match"
    LIKELY_MATCH = "likely_match"
    UNKNOWN = "unknown"
    DIFFERENT = "different"


class JobStatus(str, Enum):
    """Enrichment job lifecycle states."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    STOPPED = "stopped"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_JOB_STATUSES


TERMINAL_JOB_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.STOPPED})

ALLOWED_JOB_TRANSITIONS: Dict[JobStatus, frozenset] = {
    JobStatus.PENDING: frozenset({JobStatus.PROCESSING, JobStatus.FAILED, JobStatus.STOPPED}),
    JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.STOPPED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
    JobStatus.STOPPED: frozenset(),
}


def _clean_optional_str(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


class WorkHistoryEntry(BaseModel):
    """One employment entry. An end date of None or "present" means ongoing."""
    model_config = _FROZEN_CAMEL

    title: str = ""
    company: str = ""
    start_date: Optional[str] = None
    end_date: Optional[str] = None

    @field_validator("title", "company", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return (v or "").strip() if isinstance(v, (str, type(None))) else v

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _dates_to_str(cls, v):
        if isinstance(v, (date, datetime)):
            return v.isoformat()
        return _clean_optional_str(v)


class CandidateRecord(BaseModel):
    """Raw candidate produced by an extractor. Immutable once created."""
    model_config = _FROZEN_CAMEL

    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    title: Optional[str] = None
    company: Optional[str] = None
    location: Optional[str] = None
    linkedin_url: Optional[str] = None
    summary: Optional[str] = None
    source_file: Optional[str] = None
    skills: Tuple[str, ...] = ()
    work_history: Tuple[WorkHistoryEntry, ...] = ()

    @field_validator("name", mode="before")
    @classmethod
    def _require_name(cls, v):
        if not isinstance(v, str) or not v.strip():
            raise ValueError("Candidate name is required")
        return v.strip()

    @field_validator("email", "phone", "title", "company", "location",
                     "linkedin_url", "summary", "source_file", mode="before")
    @classmethod
    def _strip_optional(cls, v):
        return _clean_optional_str(v)

    @field_validator("skills", mode="before")
    @classmethod
    def _dedupe_skills(cls, v):
        if v is None:
            return ()
        if isinstance(v, str):
            v = v.replace(";", ",").split(",")
        seen = set()
        skills = []
        for skill in v:
            if not isinstance(skill, str):
                continue
            skill = skill.strip()
            if skill and skill.lower() not in seen:
                seen.add(skill.lower())
                skills.append(skill)
        return tuple(skills)

    @field_validator("work_history", mode="before")
    @classmethod
    def _none_to_empty_history(cls, v):
        return () if v is None else v

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "CandidateRecord":
        """Validate an untyped mapping, raising CandidateValidationError on failure."""
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise CandidateValidationError(f"Invalid candidate record: {e}") from e


class ProfileIdentity(BaseModel):
    """Identity fields sent to the profile-lookup service."""
    model_config = _FROZEN_CAMEL

    name: str
    company: Optional[str] = None
    title: Optional[str] = None
    profile_url: Optional[str] = None
    email: Optional[str] = None

    @classmethod
    def from_candidate(cls, candidate: CandidateRecord) -> "ProfileIdentity":
        return cls(
            name=candidate.name,
            company=candidate.company,
            title=candidate.title,
            profile_url=candidate.linkedin_url,
            email=candidate.email,
        )


class EnrichedProfile(BaseModel):
    """Profile returned by the lookup service, or a degraded stand-in."""
    model_config = _FROZEN_CAMEL

    name: str
    headline: Optional[str] = None
    current_company: Optional[str] = None
    skills: Tuple[str, ...] = ()
    open_to_work: bool = False
    last_activity: Optional[datetime] = None
    recent_signals: Tuple[str, ...] = ()
    profile_url: Optional[str] = None
    connections: Optional[int] = None
    degraded: bool = False

    @classmethod
    def degraded_for(cls, identity: ProfileIdentity) -> "EnrichedProfile":
        return cls(
            name=identity.name,
            headline=identity.title or "Professional",
            current_company=identity.company or "Unknown Company",
            profile_url=identity.profile_url,
            degraded=True,
        )


class ScoreComponents(BaseModel):
    """Four independent component scores, each clamped to [0, 10]."""
    model_config = _CAMEL

    open_to_work: float = 0.0
    skill_match: float = 0.0
    job_stability: float = 0.0
    platform_engagement: float = 0.0

    @field_validator("open_to_work", "skill_match", "job_stability", "platform_engagement", mode="before")
    @classmethod
    def _clamp(cls, v):
        return clamp(float(v or 0.0))


class ScoringWeights(BaseModel):
    """Percentage weights for the four score components."""
    model_config = _CAMEL

    open_to_work: float = Field(25.0, ge=0, le=100)
    skill_match: float = Field(25.0, ge=0, le=100)
    job_stability: float = Field(25.0, ge=0, le=100)
    platform_engagement: float = Field(25.0, ge=0, le=100)

    @property
    def total(self) -> float:
        return self.open_to_work + self.skill_match + self.job_stability + self.platform_engagement

    def normalized(self) -> "ScoringWeights":
        """Return the weights as fractions summing to 1.0."""
        total = self.total
        if total <= 0:
            raise InvalidWeightsError("Scoring weights must have a positive sum")
        return ScoringWeights(
            open_to_work=self.open_to_work / total,
            skill_match=self.skill_match / total,
            job_stability=self.job_stability / total,
            platform_engagement=self.platform_engagement / total,
        )

    def validate_interactive(self, tolerance: float = 0.1) -> "ScoringWeights":
        """Reject weights whose raw sum is not 100 (used for user-submitted updates)."""
        if abs(self.total - 100) > tolerance:
            raise InvalidWeightsError(f"Scoring weights must sum to 100% (got {self.total:g})")
        return self

    @classmethod
    def default(cls) -> "ScoringWeights":
        return cls()


class ScoreResult(BaseModel):
    model_config = _CAMEL

    total: float = Field(..., ge=0.0, le=10.0)
    priority: PriorityTier


class CompanyComparison(BaseModel):
    model_config = _CAMEL

    classification: CompanyMatch
    score: float
    description: str


class HireabilityAssessment(BaseModel):
    model_config = _CAMEL

    company_difference: str
    company_difference_score: float
    hireability_score: float
    hireability_factors: List[str] = Field(default_factory=list)
    potential_to_join: PotentialToJoin = PotentialToJoin.UNKNOWN


class CandidateAnalysis(BaseModel):
    """Normalized response of a scoring-type request."""
    model_config = _CAMEL

    skill_match: float = 0.0
    open_to_work: float = 0.0
    job_stability: float = 0.0
    engagement: float = 0.0
    company_consistency: float = 0.0
    overall_score: float = 0.0
    priority: PriorityTier = PriorityTier.LOW
    insights: List[str] = Field(default_factory=list)

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> "CandidateAnalysis":
        """Build an analysis from loosely typed model output, clamping every score."""
        if not isinstance(raw, dict):
            raise TypeError(f"Expected a JSON object, got {type(raw).__name__}")

        def _score(key: str) -> float:
            value = raw.get(key)
            try:
                return clamp(float(value or 0))
            except (TypeError, ValueError):
                return 0.0

        priority = raw.get("priority")
        insights = raw.get("insights")
        return cls(
            skill_match=_score("skillMatch"),
            open_to_work=_score("openToWork"),
            job_stability=_score("jobStability"),
            engagement=_score("engagement"),
            company_consistency=_score("companyConsistency"),
            overall_score=_score("overallScore"),
            priority=PriorityTier(priority) if priority in {p.value for p in PriorityTier} else PriorityTier.LOW,
            insights=[str(i) for i in insights][:5] if isinstance(insights, list) else [],
        )


class EnrichmentJob(BaseModel):
    """Batch enrichment job. Mutated only by the orchestrator."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    tenant_id: str
    file_name: str
    status: JobStatus = JobStatus.PENDING
    progress: int = Field(0, ge=0, le=100)
    total_records: int = 0
    processed_records: int = 0
    failed_records: int = 0
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CompletedCandidate(BaseModel):
    model_config = _CAMEL

    candidate_id: str
    name: str
    email: Optional[str] = None
    score: Optional[float] = None
    priority: Optional[PriorityTier] = None


class SessionError(BaseModel):
    model_config = _CAMEL

    file_name: str
    error: str


class EnrichmentSession(BaseModel):
    """Progress of one batch upload, kept in memory by the broadcaster."""
    model_config = _CAMEL

    session_id: str
    tenant_id: str
    total_files: int = Field(0, ge=0)
    completed_files: int = 0
    current_file: Optional[str] = None
    candidates: List[CompletedCandidate] = Field(default_factory=list)
    errors: List[SessionError] = Field(default_factory=list)
    completed: bool = False

    @property
    def progress(self) -> int:
        if self.total_files <= 0:
            return 100 if self.completed else 0
        return min(100, round(self.completed_files / self.total_files * 100))


class ProgressEvent(BaseModel):
    model_config = _CAMEL

    type: str
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utcnow)
    session_id: Optional[str] = None


class RawDocument(BaseModel):
    """An uploaded file as handed to an extractor."""
    file_name: str
    content: bytes
    content_type: Optional[str] = None


class CandidateScoringResult(BaseModel):
    """Everything the pipeline computed for one candidate."""
    model_config = _CAMEL

    candidate_id: str
    profile: EnrichedProfile
    components: ScoreComponents
    score: ScoreResult
    comparison: CompanyComparison
    hireability: HireabilityAssessment
    analysis: CandidateAnalysis


__all__ = [
    'PriorityTier',
    'PotentialToJoin',
    'CompanyMatch',
    'JobStatus',
    'TERMINAL_JOB_STATUSES',
    'ALLOWED_JOB_TRANSITIONS',
    'WorkHistoryEntry',
    'CandidateRecord',
    'ProfileIdentity',
    'EnrichedProfile',
    'ScoreComponents',
    'ScoringWeights',
    'ScoreResult',
    'CompanyComparison',
    'HireabilityAssessment',
    'CandidateAnalysis',
    'EnrichmentJob',
    'CompletedCandidate',
    'SessionError',
    'EnrichmentSession',
    'ProgressEvent',
    'RawDocument',
    'CandidateScoringResult',
]
