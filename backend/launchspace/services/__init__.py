"""Services module for business logic and data operations.

Services own the rules of the Launch Space competition: submission
storage, vote tallies, weekly rankings and the competition lifecycle.
They flush but never commit; the request (or script) owning the session
decides when to commit.
"""

from launchspace.services.submission_service import SubmissionFilters, SubmissionService
from launchspace.services.vote_service import VoteOutcome, VoteResult, VoteService, ranking_score
from launchspace.services.competition_service import CompetitionService
from launchspace.services.ranking_service import RankingService

__all__ = [
    "SubmissionFilters",
    "SubmissionService",
    "VoteOutcome",
    "VoteResult",
    "VoteService",
    "ranking_score",
    "CompetitionService",
    "RankingService",
]
