"""Pydantic schemas for user identity."""
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class Role(str, Enum):
    TRACKED = "tracked"
    UNTRACKED = "untracked"


class UserCreateSchema(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    name: str = ""
    position: str = "Trainee"


class UserIdentity(BaseModel):
    user_id: str
    name: str
    position: str
    role: Role
    status: str = "active"


class UserState(BaseModel):
    """Stored per-user state the aggregator and rollup read from."""

    identity: UserIdentity
    acknowledged: bool = False
    acknowledged_at: datetime | None = None
    last_active: datetime | None = None
    created_at: datetime | None = None
