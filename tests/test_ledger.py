"""Tests for the visit ledger: accumulation, monotonic completion, concurrency."""
import asyncio

import pytest

from training_portal.core.exceptions import (
    InvalidDwellError,
    StoreUnavailableError,
    UnknownSectionError,
    UnknownUserError,
)
from training_portal.db.base import Base


class TestRecordVisit:
    async def test_first_visit_creates_record(self, tracker, trainee, clock):
        record = await tracker.ledger.record_visit(trainee, "training", 10)
        assert record.cumulative_seconds == 10
        assert not record.completed
        assert record.first_visit == clock.now
        assert record.last_visit == clock.now

    async def test_repeated_visits_accumulate(self, tracker, trainee, clock):
        await tracker.ledger.record_visit(trainee, "training", 10)
        first_seen = clock.now
        clock.advance(minutes=5)
        record = await tracker.ledger.record_visit(trainee, "training", 12)

        assert record.cumulative_seconds == 22
        assert record.first_visit == first_seen
        assert record.last_visit == clock.now
        assert record.first_visit <= record.last_visit

    async def test_dwell_threshold_section(self, tracker, trainee):
        record = await tracker.ledger.record_visit(trainee, "training", 10)
        assert not record.completed
        record = await tracker.ledger.record_visit(trainee, "training", 10)
        assert not record.completed
        record = await tracker.ledger.record_visit(trainee, "training", 10)
        assert record.completed
        assert record.cumulative_seconds == 30

    async def test_visit_only_section_completes_on_zero_dwell(self, tracker, trainee):
        record = await tracker.ledger.record_visit(trainee, "welcome", 0)
        assert record.completed
        assert record.cumulative_seconds == 0

    async def test_monotonic_over_a_sequence(self, tracker, trainee):
        previous_seconds = 0
        was_completed = False
        for dwell in [0, 5, 0, 40, 0, 3]:
            record = await tracker.ledger.record_visit(trainee, "policies", dwell)
            assert record.cumulative_seconds >= previous_seconds
            assert record.completed or not was_completed
            previous_seconds = record.cumulative_seconds
            was_completed = record.completed
        assert was_completed

    async def test_updates_last_active(self, tracker, trainee, clock):
        clock.advance(days=2)
        await tracker.ledger.record_visit(trainee, "faq", 0)
        state, _ = await tracker.store.get_user_progress(trainee)
        assert state.last_active == clock.now


class TestRecordVisitErrors:
    async def test_unknown_section(self, tracker, trainee):
        with pytest.raises(UnknownSectionError):
            await tracker.ledger.record_visit(trainee, "nope", 10)
        _, visits = await tracker.store.get_user_progress(trainee)
        assert visits == {}

    async def test_excluded_section_is_unknown(self, tracker, trainee):
        with pytest.raises(UnknownSectionError):
            await tracker.ledger.record_visit(trainee, "admin-panel", 10)

    async def test_unknown_user(self, tracker):
        with pytest.raises(UnknownUserError):
            await tracker.ledger.record_visit("ghost@example.com", "training", 10)

    async def test_negative_dwell(self, tracker, trainee):
        with pytest.raises(InvalidDwellError):
            await tracker.ledger.record_visit(trainee, "training", -1)

    async def test_store_failure_propagates(self, tracker, trainee, engine):
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        with pytest.raises(StoreUnavailableError):
            await tracker.ledger.record_visit(trainee, "training", 10)


class TestConcurrentVisits:
    async def test_no_lost_dwell(self, tracker, trainee):
        dwells = [3, 5, 7, 11, 13, 17, 19, 23]
        await asyncio.gather(*(tracker.ledger.record_visit(trainee, "cocktails", d) for d in dwells))

        _, visits = await tracker.store.get_user_progress(trainee)
        assert visits["cocktails"].cumulative_seconds == sum(dwells)
        assert visits["cocktails"].completed

    async def test_concurrent_sections_for_same_user(self, tracker, trainee):
        sections = ["training", "policies", "procedures", "cocktails"]
        await asyncio.gather(*(tracker.ledger.record_visit(trainee, s, 30) for s in sections))
        result = await tracker.aggregator.breakdown(trainee)
        assert result.sections_completed == 4


class TestAdminOverride:
    async def test_completes_section_with_missing_dwell(self, tracker, trainee):
        await tracker.ledger.record_visit(trainee, "aloha-pos", 12)
        record = await tracker.ledger.admin_override_visit(trainee, "aloha-pos")
        assert record.completed
        assert record.cumulative_seconds == 30

    async def test_never_lowers_time(self, tracker, trainee):
        await tracker.ledger.record_visit(trainee, "aloha-pos", 90)
        record = await tracker.ledger.admin_override_visit(trainee, "aloha-pos")
        assert record.cumulative_seconds == 90

    async def test_notifies(self, tracker, trainee):
        events = []
        tracker.notifier.subscribe(trainee, events.append)
        await tracker.ledger.admin_override_visit(trainee, "glassware-guide")
        assert len(events) == 1
        assert events[0].breakdown.sections_completed == 1


class TestQuizCredit:
    async def test_passing_score_completes_section(self, tracker, trainee):
        assert await tracker.ledger.credit_quiz(trainee, "cocktails", 0.8)
        assert await tracker.aggregator.is_section_completed(trainee, "cocktails")

    async def test_failing_score_writes_nothing(self, tracker, trainee):
        assert not await tracker.ledger.credit_quiz(trainee, "cocktails", 0.5)
        _, visits = await tracker.store.get_user_progress(trainee)
        assert "cocktails" not in visits
