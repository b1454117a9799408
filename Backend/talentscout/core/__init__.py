from .models import (
    CandidateRecord,
    WorkHistoryEntry,
    ProfileIdentity,
    EnrichedProfile,
    ScoreComponents,
    ScoringWeights,
    ScoreResult,
    PriorityTier,
    PotentialToJoin,
    CompanyMatch,
    CompanyComparison,
    HireabilityAssessment,
    CandidateAnalysis,
    CandidateScoringResult,
    EnrichmentJob,
    EnrichmentSession,
    JobStatus,
    ProgressEvent,
    RawDocument,
)

__all__ = [
    'CandidateRecord',
    'WorkHistoryEntry',
    'ProfileIdentity',
    'EnrichedProfile',
    'ScoreComponents',
    'ScoringWeights',
    'ScoreResult',
    'PriorityTier',
    'PotentialToJoin',
    'CompanyMatch',
    'CompanyComparison',
    'HireabilityAssessment',
    'CandidateAnalysis',
    'CandidateScoringResult',
    'EnrichmentJob',
    'EnrichmentSession',
    'JobStatus',
    'ProgressEvent',
    'RawDocument',
]
