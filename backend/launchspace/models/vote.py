"""Vote model: one vote per (user, submission) pair."""

import uuid

from sqlalchemy import String, ForeignKey, UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from launchspace.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from launchspace.models.submission import Submission


VOTE_TYPES = ("upvote", "downvote")


class Vote(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Tracks which user voted on which submission.

    The unique constraint is what closes the check-then-insert race;
    changing the vote type updates this row in place.
    """

    __tablename__ = "votes"

    user_id: Mapped[str] = mapped_column(
        String(64), nullable=False, index=True,
        comment="Opaque user id from the identity provider"
    )
    submission_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("submissions.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    vote_type: Mapped[str] = mapped_column(
        String(8), nullable=False,
        comment="'upvote' or 'downvote'"
    )

    __table_args__ = (
        UniqueConstraint("user_id", "submission_id", name="uq_user_submission_vote"),
        Index("idx_votes_submission_type", "submission_id", "vote_type"),
    )

    # Relationships
    submission: Mapped["Submission"] = relationship(back_populates="votes")

    def __repr__(self) -> str:
        return f"<Vote(user={self.user_id}, submission={self.submission_id}, type={self.vote_type})>"
