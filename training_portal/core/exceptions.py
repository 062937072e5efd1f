"""Error taxonomy of the progress tracking core.

Lookup failures (unknown section / user) are local and the caller may log and
skip. Eligibility failures are expected business-rule rejections. Store and
concurrency failures are infrastructure errors and are always propagated.
"""
from enum import Enum


class TrainingTrackerError(Exception):
    """Base class for every error raised by the tracking core."""


class UnknownSectionError(TrainingTrackerError):
    def __init__(self, section_id: str):
        super().__init__(f"Unknown section: {section_id!r}")
        self.section_id = section_id


class UnknownUserError(TrainingTrackerError):
    def __init__(self, user_id: str):
        super().__init__(f"Unknown user: {user_id!r}")
        self.user_id = user_id


class InvalidDwellError(TrainingTrackerError, ValueError):
    def __init__(self, dwell_seconds: int):
        super().__init__(f"Dwell seconds must be >= 0, got {dwell_seconds}")
        self.dwell_seconds = dwell_seconds


class NotEligibleReason(str, Enum):
    ALREADY_ACKNOWLEDGED = "already_acknowledged"
    INCOMPLETE_PROGRESS = "incomplete_progress"
    UNTRACKED_ROLE = "untracked_role"


class NotEligibleError(TrainingTrackerError):
    """User may not acknowledge right now; `reason` tells the UI why."""

    reason: NotEligibleReason

    def __init__(self, user_id: str, reason: NotEligibleReason, percentage: int | None = None):
        super().__init__(f"User {user_id!r} cannot acknowledge: {reason.value}")
        self.user_id = user_id
        self.reason = reason
        self.percentage = percentage


class AlreadyAcknowledgedError(NotEligibleError):
    def __init__(self, user_id: str):
        super().__init__(user_id, NotEligibleReason.ALREADY_ACKNOWLEDGED, percentage=100)


class IncompleteProgressError(NotEligibleError):
    def __init__(self, user_id: str, percentage: int):
        super().__init__(user_id, NotEligibleReason.INCOMPLETE_PROGRESS, percentage=percentage)


class UntrackedRoleError(NotEligibleError):
    def __init__(self, user_id: str):
        super().__init__(user_id, NotEligibleReason.UNTRACKED_ROLE)


class StoreUnavailableError(TrainingTrackerError):
    """The persistent store failed; the outcome of a write is unknown."""


class ConcurrencyConflictError(TrainingTrackerError):
    """A concurrent write won the race; retry the whole operation."""
