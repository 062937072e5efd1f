"""Pydantic schemas for the admin fleet snapshot."""
from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class Band(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    POOR = "poor"
    INACTIVE = "inactive"


class UserSnapshotSchema(BaseModel):
    user_id: str
    name: str
    position: str
    status: str
    completed_sections: int
    total_sections: int
    percentage: int
    acknowledged: bool
    last_active: datetime | None = None
    days_since_active: int
    time_since_active: str
    band: Band


class FleetTotalsSchema(BaseModel):
    total_users: int = 0
    active_users: int = 0
    blocked_users: int = 0
    acknowledged_count: int = 0
    excellent: int = 0
    good: int = 0
    poor: int = 0
    inactive: int = 0
    average_percentage: float = 0.0


class AdminSnapshotSchema(BaseModel):
    generated_at: datetime
    users: list[UserSnapshotSchema]
    totals: FleetTotalsSchema
