"""Competition Pydantic schemas."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class TimeLeft(BaseModel):
    """Countdown to a competition's next boundary."""

    days: int
    hours: int
    minutes: int
    seconds: int
    total_ms: int


class CompetitionResponse(BaseModel):
    """Weekly competition with slot counters and results."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    week_id: str
    start_date: datetime
    end_date: datetime
    status: str
    theme: Optional[str] = None
    description: Optional[str] = None
    total_submissions: int
    standard_submissions: int
    premium_submissions: int
    total_votes: int
    completed_at: Optional[datetime] = None
    winner_id: Optional[UUID] = None
    top_three_ids: List[str] = []
    time_left: Optional[TimeLeft] = None


class LifecycleRunResponse(BaseModel):
    """Summary of one competition lifecycle run."""

    timestamp: datetime
    created: List[str] = []
    activated: List[dict] = []
    completed: List[dict] = []
    errors: List[dict] = []
