from training_portal.schemas.admin import AdminSnapshotSchema, Band, FleetTotalsSchema, UserSnapshotSchema
from training_portal.schemas.progress import (
    AcknowledgementOutSchema,
    EventKind,
    ProgressBreakdown,
    ProgressEvent,
    QuizInSchema,
    QuizOutSchema,
    SectionDetail,
    VisitInSchema,
    VisitRecord,
)
from training_portal.schemas.user import Role, UserCreateSchema, UserIdentity, UserState

__all__ = [
    "AcknowledgementOutSchema",
    "AdminSnapshotSchema",
    "Band",
    "EventKind",
    "FleetTotalsSchema",
    "ProgressBreakdown",
    "ProgressEvent",
    "QuizInSchema",
    "QuizOutSchema",
    "Role",
    "SectionDetail",
    "UserCreateSchema",
    "UserIdentity",
    "UserSnapshotSchema",
    "UserState",
    "VisitInSchema",
    "VisitRecord",
]
