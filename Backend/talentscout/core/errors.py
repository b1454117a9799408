"""
Exception hierarchy for the enrichment-and-scoring pipeline.
"""


class TalentScoutError(Exception):
    """Base class for all pipeline errors."""


class PipelineValidationError(TalentScoutError, ValueError):
    """Input rejected before any state was mutated."""


class InvalidWeightsError(PipelineValidationError):
    """Scoring weights are malformed or do not sum to 100."""


class CandidateValidationError(PipelineValidationError):
    """A candidate record is missing required fields."""


class UpstreamDegraded(TalentScoutError):
    """The profile-lookup service failed or returned an unusable shape."""


class CandidateScoringError(TalentScoutError):
    """A scoring-type request failed; propagated to the caller."""


class ExtractionError(TalentScoutError):
    """A document could not be turned into candidate records."""


class InvalidJobTransition(TalentScoutError):
    """An enrichment job was moved along an edge the state machine forbids."""


class JobNotFoundError(TalentScoutError):
    pass


class SessionNotFoundError(TalentScoutError):
    pass
