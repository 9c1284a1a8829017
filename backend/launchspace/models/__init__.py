"""SQLAlchemy models for Launch Space.

All models are imported here so the metadata sees every table.
"""

from launchspace.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from launchspace.models.submission import Submission, SubmissionCategory
from launchspace.models.vote import Vote
from launchspace.models.competition import Competition
from launchspace.models.user import User

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "Submission",
    "SubmissionCategory",
    "Vote",
    "Competition",
    "User",
]
