# Importing every table here registers it on Base.metadata.

from .activity import Activity
from .candidate import Candidate
from .job import ProcessingJob
from .scoring_config import ScoringConfig

__all__ = ['Activity', 'Candidate', 'ProcessingJob', 'ScoringConfig']
