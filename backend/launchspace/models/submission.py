"""Submission model: a launched project competing in a weekly competition."""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from launchspace.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from launchspace.models.vote import Vote


SUBMISSION_STATUSES = ("pending", "approved", "live", "archived", "rejected")
PLANS = ("standard", "premium", "support")
PRICING_OPTIONS = ("Free", "Freemium", "Paid")

# Statuses that show up in public rankings and accept votes
RANKED_STATUSES = ("approved", "live")


class Submission(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A user-submitted app competing in its launch week.

    ``upvotes``, ``downvotes`` and ``ranking_score`` are derived from the
    ``votes`` table and are only written by the vote service.
    """

    __tablename__ = "submissions"

    # Basic information
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    slug: Mapped[str] = mapped_column(
        String(120), unique=True, index=True, nullable=False,
        comment="URL-friendly identifier"
    )
    short_description: Mapped[str] = mapped_column(String(200), nullable=False)
    full_description: Mapped[str] = mapped_column(Text, nullable=False)

    # URLs and media
    website_url: Mapped[str] = mapped_column(String(2000), nullable=False)
    logo_url: Mapped[Optional[str]] = mapped_column(String(2000), nullable=True)
    screenshots: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    video_url: Mapped[Optional[str]] = mapped_column(String(2000), nullable=True)

    # Categorisation
    pricing: Mapped[str] = mapped_column(String(10), nullable=False, comment="Free, Freemium or Paid")
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Launch information
    launch_week: Mapped[str] = mapped_column(
        String(8), nullable=False, index=True,
        comment="Competition bucket, e.g. '2024-W01'"
    )
    launch_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Contact and ownership
    contact_email: Mapped[Optional[str]] = mapped_column(String(320), nullable=True)
    submitted_by: Mapped[str] = mapped_column(
        String(64), nullable=False, index=True,
        comment="Opaque user id from the identity provider"
    )

    # Plan and backlinks
    plan: Mapped[str] = mapped_column(String(10), nullable=False, default="standard")
    backlink_url: Mapped[Optional[str]] = mapped_column(String(2000), nullable=True)
    link_type: Mapped[str] = mapped_column(
        String(10), nullable=False, default="nofollow",
        comment="'nofollow' or 'dofollow'"
    )
    dofollow_reason: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    dofollow_awarded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Status and moderation
    status: Mapped[str] = mapped_column(String(10), nullable=False, default="pending", index=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Engagement metrics
    views: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    clicks: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    upvotes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    downvotes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Ranking
    ranking_score: Mapped[float] = mapped_column(
        Float, nullable=False, default=0.0,
        comment="upvotes - downvotes * 0.5"
    )
    weekly_winner: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    weekly_position: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    __table_args__ = (
        Index("idx_submissions_week_status", "launch_week", "status"),
        Index("idx_submissions_ranking", "ranking_score", "created_at"),
    )

    # Relationships
    category_links: Mapped[List["SubmissionCategory"]] = relationship(
        back_populates="submission",
        cascade="all, delete-orphan",
        order_by="SubmissionCategory.position",
        lazy="selectin",
    )
    votes: Mapped[List["Vote"]] = relationship(
        back_populates="submission", cascade="all, delete-orphan"
    )

    @property
    def categories(self) -> List[str]:
        return [link.name for link in self.category_links]

    @categories.setter
    def categories(self, names: List[str]) -> None:
        self.category_links = [
            SubmissionCategory(name=name, position=idx) for idx, name in enumerate(names)
        ]

    def __repr__(self) -> str:
        return f"<Submission(id={self.id}, slug='{self.slug}', score={self.ranking_score})>"


class SubmissionCategory(Base):
    """One category label of a submission (1-3 per submission)."""

    __tablename__ = "submission_categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    submission_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("submissions.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    submission: Mapped["Submission"] = relationship(back_populates="category_links")

    def __repr__(self) -> str:
        return f"<SubmissionCategory(submission={self.submission_id}, name='{self.name}')>"
