"""Pydantic schemas for per-user progress, visits and change events."""
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class SectionDetail(BaseModel):
    id: str
    label: str
    completed: bool
    seconds_spent: int = 0
    seconds_required: int = 0  # 0 = visit-only
    progress: int = 0  # per-section percentage 0-100


class ProgressBreakdown(BaseModel):
    """Derived view of a user's progress; recomputed on every read, never stored."""

    user_id: str
    percentage: int = Field(ge=0, le=100)
    section_details: list[SectionDetail]
    sections_completed: int
    total_sections: int
    can_acknowledge: bool
    is_tracked: bool
    acknowledged: bool = False
    acknowledged_at: datetime | None = None
    # True when served from a cached or zeroed view because the store failed
    stale: bool = False


class VisitRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    section_id: str
    first_visit: datetime
    last_visit: datetime
    cumulative_seconds: int = Field(ge=0)
    completed: bool


class VisitInSchema(BaseModel):
    section_id: str
    dwell_seconds: int = Field(default=0, ge=0)


class QuizInSchema(BaseModel):
    section_id: str
    score: float = Field(ge=0.0, le=1.0)


class QuizOutSchema(BaseModel):
    section_id: str
    passed: bool
    breakdown: ProgressBreakdown


class AcknowledgementOutSchema(BaseModel):
    user_id: str
    acknowledged: bool
    acknowledged_at: datetime


class EventKind(str, Enum):
    VISIT_RECORDED = "visit_recorded"
    ACKNOWLEDGED = "acknowledged"


class ProgressEvent(BaseModel):
    user_id: str
    kind: EventKind
    breakdown: ProgressBreakdown
    published_at: datetime
