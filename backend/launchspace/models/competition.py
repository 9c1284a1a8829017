"""Competition model for the weekly launch competitions."""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, Integer, String, Text, Index
from sqlalchemy.orm import Mapped, mapped_column

from launchspace.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


COMPETITION_STATUSES = ("upcoming", "active", "completed")


class Competition(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """One weekly competition, keyed by its week id.

    Submissions join a competition through ``Submission.launch_week``.
    Slot counters gate how many submissions each plan may add.
    """

    __tablename__ = "competitions"

    week_id: Mapped[str] = mapped_column(
        String(8), unique=True, index=True, nullable=False,
        comment="Week token, e.g. '2024-W01'"
    )
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(
        String(10), nullable=False, default="upcoming",
        comment="'upcoming', 'active' or 'completed'"
    )
    theme: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Slot accounting
    total_submissions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    standard_submissions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    premium_submissions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_votes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Results
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    winner_id: Mapped[Optional[uuid.UUID]] = mapped_column(nullable=True)
    top_three_ids: Mapped[list] = mapped_column(
        JSON, nullable=False, default=list,
        comment="Submission ids in finishing order"
    )

    __table_args__ = (
        Index("idx_competitions_status_start", "status", "start_date"),
    )

    def __repr__(self) -> str:
        return f"<Competition(week_id='{self.week_id}', status='{self.status}')>"
