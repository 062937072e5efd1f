"""API routes: JSON for visits, progress, acknowledgement and the admin snapshot."""
import asyncio
import logging
from contextlib import contextmanager
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, WebSocket, WebSocketDisconnect

from training_portal.core.exceptions import (
    ConcurrencyConflictError,
    InvalidDwellError,
    NotEligibleError,
    StoreUnavailableError,
    UnknownSectionError,
    UnknownUserError,
)
from training_portal.schemas.admin import AdminSnapshotSchema
from training_portal.schemas.progress import (
    AcknowledgementOutSchema,
    ProgressBreakdown,
    ProgressEvent,
    QuizInSchema,
    QuizOutSchema,
    SectionDetail,
    VisitInSchema,
    VisitRecord,
)
from training_portal.schemas.user import UserCreateSchema, UserIdentity
from training_portal.services.rollup import resolve_exclusions
from training_portal.services.roles import get_non_tracked_positions, get_tracked_positions
from training_portal.services.tracker import TrainingTracker

router = APIRouter(prefix="/api", tags=["api"])
logger = logging.getLogger(__name__)


def get_tracker(request: Request) -> TrainingTracker:
    return request.app.state.tracker


Tracker = Annotated[TrainingTracker, Depends(get_tracker)]


@contextmanager
def core_errors():
    """Map core errors to HTTP responses."""
    try:
        yield
    except (UnknownUserError, UnknownSectionError) as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InvalidDwellError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except NotEligibleError as exc:
        raise HTTPException(
            status_code=409,
            detail={"reason": exc.reason.value, "percentage": exc.percentage},
        ) from exc
    except ConcurrencyConflictError as exc:
        raise HTTPException(status_code=409, detail={"reason": "conflict", "message": str(exc)}) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=503, detail="Progress store unavailable") from exc


@router.get("/sections")
async def list_sections(tracker: Tracker):
    """Trackable sections in display order with their completion policy."""
    return [
        {
            "id": s.id,
            "label": s.label,
            "required_dwell_seconds": s.required_dwell_seconds,
            "policy": s.policy.kind.value,
        }
        for s in tracker.catalog.sections
    ]


@router.get("/positions")
async def list_positions():
    return {"tracked": get_tracked_positions(), "untracked": get_non_tracked_positions()}


@router.post("/users", response_model=UserIdentity, status_code=201)
async def register_user(body: UserCreateSchema, tracker: Tracker):
    with core_errors():
        return await tracker.store.register_user(body.email, name=body.name, position=body.position)


@router.get("/users/{user_id}", response_model=UserIdentity)
async def get_user(user_id: str, tracker: Tracker):
    with core_errors():
        return await tracker.store.get_identity(user_id)


@router.post("/users/{user_id}/visits", response_model=VisitRecord)
async def record_visit(user_id: str, body: VisitInSchema, tracker: Tracker):
    with core_errors():
        return await tracker.ledger.record_visit(user_id, body.section_id, body.dwell_seconds)


@router.post("/users/{user_id}/quizzes", response_model=QuizOutSchema)
async def submit_quiz(user_id: str, body: QuizInSchema, tracker: Tracker):
    with core_errors():
        passed = await tracker.ledger.credit_quiz(user_id, body.section_id, body.score)
        breakdown = await tracker.aggregator.breakdown(user_id)
    return QuizOutSchema(section_id=body.section_id, passed=passed, breakdown=breakdown)


@router.get("/users/{user_id}/progress", response_model=ProgressBreakdown)
async def get_progress(user_id: str, tracker: Tracker):
    with core_errors():
        return await tracker.aggregator.breakdown(user_id)


@router.get("/users/{user_id}/sections/{section_id}", response_model=SectionDetail)
async def get_section_detail(user_id: str, section_id: str, tracker: Tracker):
    with core_errors():
        return await tracker.aggregator.section_detail(user_id, section_id)


@router.post("/users/{user_id}/acknowledgement", response_model=AcknowledgementOutSchema)
async def submit_acknowledgement(user_id: str, tracker: Tracker):
    with core_errors():
        return await tracker.gate.submit_acknowledgement(user_id)


@router.websocket("/users/{user_id}/progress/stream")
async def progress_stream(websocket: WebSocket, user_id: str):
    """Push a refreshed breakdown to this socket on every change for the user.

    The subscription lives exactly as long as the socket.
    """
    tracker: TrainingTracker = websocket.app.state.tracker
    await websocket.accept()

    queue: asyncio.Queue[ProgressEvent] = asyncio.Queue()
    async with tracker.notifier.subscribe(user_id, queue.put_nowait):
        try:
            initial = await tracker.aggregator.breakdown(user_id)
        except UnknownUserError:
            await websocket.close(code=4404)
            return
        await websocket.send_json({"kind": "snapshot", "breakdown": initial.model_dump(mode="json")})

        receiver = asyncio.create_task(websocket.receive_text())
        getter = None
        try:
            while True:
                getter = asyncio.create_task(queue.get())
                done, _ = await asyncio.wait({getter, receiver}, return_when=asyncio.FIRST_COMPLETED)
                if getter in done:
                    await websocket.send_json(getter.result().model_dump(mode="json"))
                else:
                    getter.cancel()
                if receiver in done:
                    # client messages are ignored; a disconnect ends the stream
                    receiver.result()
                    receiver = asyncio.create_task(websocket.receive_text())
        except WebSocketDisconnect:
            logger.debug("Progress stream for %s closed", user_id)
        finally:
            receiver.cancel()
            if getter is not None:
                getter.cancel()


@router.get("/admin/snapshot", response_model=AdminSnapshotSchema)
async def admin_snapshot(tracker: Tracker, requester: str | None = None):
    """Fleet bands and totals. Hidden accounts are resolved here, not in the core."""
    excluded = resolve_exclusions(tracker.settings.hidden_accounts, requester)
    with core_errors():
        return await tracker.rollup.fleet_snapshot(excluded)


@router.post("/admin/users/{user_id}/sections/{section_id}/complete", response_model=VisitRecord)
async def admin_complete_section(user_id: str, section_id: str, tracker: Tracker):
    with core_errors():
        return await tracker.ledger.admin_override_visit(user_id, section_id)
