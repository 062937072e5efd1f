"""Shared fixtures: a temporary SQLite database and a tracker with a controllable clock."""
from datetime import datetime, timedelta, timezone

import pytest

from training_portal.core.config import Settings
from training_portal.db.base import Base
from training_portal.db.session import build_engine, build_session_factory
from training_portal.services.tracker import TrainingTracker

START = datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'progress.db'}",
        default_required_dwell_seconds=30,
        visit_only_sections=["welcome", "faq", "resources"],
        hidden_accounts=["hidden@example.com"],
        seed_demo_data=False,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
async def engine(settings):
    engine = build_engine(settings.database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def tracker(engine, settings, clock):
    return TrainingTracker(build_session_factory(engine), settings, clock=clock)


@pytest.fixture
async def trainee(tracker):
    await tracker.store.register_user("trainee@example.com", name="Tara", position="Trainee")
    return "trainee@example.com"


@pytest.fixture
def complete_all(tracker):
    """Record a full-length visit of every section (minus `skip`) for a user."""

    async def _complete(user_id, skip=()):
        for section in tracker.catalog.sections:
            if section.id in skip:
                continue
            await tracker.ledger.record_visit(user_id, section.id, section.required_dwell_seconds)

    return _complete
