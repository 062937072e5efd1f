"""Persistent store adapter over async SQLAlchemy.

Every public method runs in its own transaction and commits before it returns,
so a read issued after a write by the same caller sees that write. Mutations
are conditional UPDATE statements evaluated by the database, never a
read-then-write in Python.
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Callable

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from training_portal.core.exceptions import (
    ConcurrencyConflictError,
    StoreUnavailableError,
    UnknownUserError,
)
from training_portal.models.user import User
from training_portal.models.visit import SectionVisit
from training_portal.schemas.progress import VisitRecord
from training_portal.schemas.user import UserIdentity, UserState
from training_portal.services.roles import TRACKED_POSITIONS, role_for_position

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def user_key(user_id: str) -> str:
    """Users are keyed by email, compared without case or padding."""
    return user_id.strip().lower()


def as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; everything we write is UTC
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _identity(user: User) -> UserIdentity:
    return UserIdentity(
        user_id=user.email,
        name=user.name or "",
        position=user.position,
        role=role_for_position(user.position),
        status=user.status or "active",
    )


def _user_state(user: User) -> UserState:
    return UserState(
        identity=_identity(user),
        acknowledged=bool(user.acknowledged),
        acknowledged_at=as_utc(user.acknowledged_at),
        last_active=as_utc(user.last_active),
        created_at=as_utc(user.created_at),
    )


def _visit_record(visit: SectionVisit) -> VisitRecord:
    return VisitRecord(
        section_id=visit.section_id,
        first_visit=as_utc(visit.first_visit),
        last_visit=as_utc(visit.last_visit),
        cumulative_seconds=visit.cumulative_seconds,
        completed=bool(visit.completed),
    )


class ProgressStore:
    """Rows for users and their section visits, keyed by user email."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], clock: Clock = utcnow):
        self._session_factory = session_factory
        self.clock = clock

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as db:
                async with db.begin():
                    yield db
        except IntegrityError:
            raise
        except SQLAlchemyError as exc:
            logger.error("Progress store failure: %s", exc)
            raise StoreUnavailableError(str(exc)) from exc

    async def _get_user(self, db: AsyncSession, user_id: str) -> User:
        result = await db.execute(select(User).where(User.email == user_key(user_id)))
        user = result.scalar_one_or_none()
        if user is None:
            raise UnknownUserError(user_id)
        return user

    # ---------- users ----------

    async def register_user(
        self,
        user_id: str,
        name: str = "",
        position: str = "Trainee",
        status: str = "active",
    ) -> UserIdentity:
        """Create the user, or update name/position/status when it already exists."""
        user_id = user_key(user_id)
        try:
            async with self._transaction() as db:
                result = await db.execute(select(User).where(User.email == user_id))
                user = result.scalar_one_or_none()
                if user is None:
                    user = User(
                        email=user_id,
                        name=name,
                        position=position,
                        status=status,
                        acknowledged=False,
                        created_at=self.clock(),
                    )
                    db.add(user)
                else:
                    user.name = name
                    user.position = position
                    user.status = status
                await db.flush()
                return _identity(user)
        except IntegrityError as exc:
            raise ConcurrencyConflictError(f"User {user_id!r} was registered concurrently") from exc

    async def get_identity(self, user_id: str) -> UserIdentity:
        async with self._transaction() as db:
            return _identity(await self._get_user(db, user_id))

    async def get_user_progress(self, user_id: str) -> tuple[UserState, dict[str, VisitRecord]]:
        """User state plus visit records, read in one transaction."""
        async with self._transaction() as db:
            user = await self._get_user(db, user_id)
            result = await db.execute(select(SectionVisit).where(SectionVisit.user_id == user.id))
            visits = {v.section_id: _visit_record(v) for v in result.scalars().all()}
            return _user_state(user), visits

    async def list_user_progress(self) -> list[tuple[UserState, dict[str, VisitRecord]]]:
        async with self._transaction() as db:
            users = (await db.execute(select(User).order_by(User.id))).scalars().all()
            visits = (await db.execute(select(SectionVisit))).scalars().all()

            by_user: dict[int, dict[str, VisitRecord]] = {u.id: {} for u in users}
            for v in visits:
                by_user.setdefault(v.user_id, {})[v.section_id] = _visit_record(v)
            return [(_user_state(u), by_user[u.id]) for u in users]

    # ---------- mutations ----------

    async def upsert_visit(
        self,
        user_id: str,
        section_id: str,
        dwell_seconds: int,
        required_dwell_seconds: int,
    ) -> VisitRecord:
        """Merge a visit into the (user, section) row atomically.

        The first attempt inserts when no row exists. If a concurrent caller
        inserted the same row first, the unique constraint rejects ours and
        the merge is retried as a plain conditional update.
        """
        try:
            return await self._merge_visit(user_id, section_id, dwell_seconds, required_dwell_seconds, allow_insert=True)
        except IntegrityError:
            logger.debug("Insert race on %s/%s, retrying as update", user_id, section_id)
        try:
            return await self._merge_visit(user_id, section_id, dwell_seconds, required_dwell_seconds, allow_insert=False)
        except IntegrityError as exc:
            raise ConcurrencyConflictError(f"Conflicting write on {user_id!r}/{section_id!r}") from exc

    async def _merge_visit(
        self,
        user_id: str,
        section_id: str,
        dwell_seconds: int,
        required_dwell_seconds: int,
        allow_insert: bool,
    ) -> VisitRecord:
        now = self.clock()
        async with self._transaction() as db:
            user = await self._get_user(db, user_id)
            new_total = SectionVisit.cumulative_seconds + dwell_seconds
            result = await db.execute(
                update(SectionVisit)
                .where(SectionVisit.user_id == user.id, SectionVisit.section_id == section_id)
                .values(
                    cumulative_seconds=new_total,
                    # monotonic: a completed row is never cleared
                    completed=or_(SectionVisit.completed, new_total >= required_dwell_seconds),
                    last_visit=now,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                if not allow_insert:
                    raise ConcurrencyConflictError(f"Visit row for {user_id!r}/{section_id!r} vanished")
                db.add(
                    SectionVisit(
                        user_id=user.id,
                        section_id=section_id,
                        first_visit=now,
                        last_visit=now,
                        cumulative_seconds=dwell_seconds,
                        completed=dwell_seconds >= required_dwell_seconds,
                    )
                )
                await db.flush()

            await db.execute(
                update(User)
                .where(User.id == user.id)
                .values(last_active=now)
                .execution_options(synchronize_session=False)
            )

            row = await db.execute(
                select(SectionVisit).where(
                    SectionVisit.user_id == user.id,
                    SectionVisit.section_id == section_id,
                )
            )
            return _visit_record(row.scalar_one())

    async def mark_acknowledged(self, user_id: str) -> datetime | None:
        """Set the acknowledgement flag if it is not set yet.

        Returns the timestamp written, or None when the flag is already set or
        the user no longer holds a tracked position. The WHERE clause makes
        check-and-set one statement.
        """
        now = self.clock()
        async with self._transaction() as db:
            user = await self._get_user(db, user_id)
            result = await db.execute(
                update(User)
                .where(
                    User.id == user.id,
                    User.acknowledged == False,  # noqa: E712
                    User.position.in_(TRACKED_POSITIONS),
                )
                .values(acknowledged=True, acknowledged_at=now, last_active=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                return None
            return now
