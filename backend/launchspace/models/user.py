"""User model holding denormalised per-user counters."""

from sqlalchemy import String, Integer
from sqlalchemy.orm import Mapped, mapped_column

from launchspace.models.base import Base, TimestampMixin


class User(TimestampMixin, Base):
    """A known submitter or voter.

    Identity lives with the external identity provider; this row only keys
    on its opaque id. Counters are best-effort and never used for ranking.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True,
        comment="Opaque user id from the identity provider"
    )
    total_submissions: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0,
        comment="Number of submissions created"
    )
    total_votes: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0,
        comment="Number of live vote rows"
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, submissions={self.total_submissions})>"
