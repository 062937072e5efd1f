"""Tests for the per-user change notifier."""
import asyncio

import pytest

from training_portal.schemas.progress import EventKind
from training_portal.schemas.user import Role
from training_portal.services.catalog import SectionCatalog
from training_portal.services.notifier import ChangeNotifier
from training_portal.services.progress import compute_breakdown


class CountingLoader:
    """Returns a breakdown whose percentage is the call number; first calls are slowest."""

    def __init__(self, delays=()):
        self.catalog = SectionCatalog.default()
        self.calls = 0
        self.delays = list(delays)

    async def __call__(self, user_id):
        self.calls += 1
        n = self.calls
        if self.delays:
            await asyncio.sleep(self.delays.pop(0))
        base = compute_breakdown(self.catalog, user_id, {}, Role.TRACKED, acknowledged=False)
        return base.model_copy(update={"percentage": n})


@pytest.fixture
def loader():
    return CountingLoader()


@pytest.fixture
def notifier(loader):
    return ChangeNotifier(loader)


class TestSubscribe:
    async def test_delivers_to_subscribers_of_that_user_only(self, notifier):
        alice, bob = [], []
        notifier.subscribe("alice", alice.append)
        notifier.subscribe("bob", bob.append)

        delivered = await notifier.publish("alice", EventKind.VISIT_RECORDED)
        assert delivered == 1
        assert len(alice) == 1
        assert alice[0].user_id == "alice"
        assert alice[0].kind is EventKind.VISIT_RECORDED
        assert bob == []

    async def test_no_subscribers_skips_loading(self, notifier, loader):
        assert await notifier.publish("nobody", EventKind.ACKNOWLEDGED) == 0
        assert loader.calls == 0

    async def test_breakdown_loaded_once_per_publish(self, notifier, loader):
        first, second = [], []
        notifier.subscribe("alice", first.append)
        notifier.subscribe("alice", second.append)

        assert await notifier.publish("alice", EventKind.VISIT_RECORDED) == 2
        assert loader.calls == 1
        assert first[0] is second[0]

    async def test_async_callbacks(self, notifier):
        seen = []

        async def callback(event):
            await asyncio.sleep(0)
            seen.append(event.kind)

        notifier.subscribe("alice", callback)
        await notifier.publish("alice", EventKind.ACKNOWLEDGED)
        assert seen == [EventKind.ACKNOWLEDGED]


class TestOrdering:
    async def test_fifo_per_user(self):
        loader = CountingLoader(delays=[0.05, 0.01, 0])
        notifier = ChangeNotifier(loader)
        seen = []
        notifier.subscribe("alice", lambda e: seen.append((e.breakdown.percentage, e.kind)))

        await asyncio.gather(
            notifier.publish("alice", EventKind.VISIT_RECORDED),
            notifier.publish("alice", EventKind.ACKNOWLEDGED),
            notifier.publish("alice", EventKind.VISIT_RECORDED),
        )
        assert seen == [
            (1, EventKind.VISIT_RECORDED),
            (2, EventKind.ACKNOWLEDGED),
            (3, EventKind.VISIT_RECORDED),
        ]


class TestUnsubscribe:
    async def test_unsubscribe_is_idempotent(self, notifier):
        seen = []
        sub = notifier.subscribe("alice", seen.append)
        sub.unsubscribe()
        sub.unsubscribe()

        assert notifier.subscriber_count("alice") == 0
        await notifier.publish("alice", EventKind.VISIT_RECORDED)
        assert seen == []

    async def test_unsubscribe_from_inside_callback(self, notifier):
        seen = []
        holder = {}

        def once(event):
            seen.append(event)
            holder["sub"].unsubscribe()
            holder["sub"].unsubscribe()

        holder["sub"] = notifier.subscribe("alice", once)
        other = []
        notifier.subscribe("alice", other.append)

        await notifier.publish("alice", EventKind.VISIT_RECORDED)
        await notifier.publish("alice", EventKind.VISIT_RECORDED)
        assert len(seen) == 1
        assert len(other) == 2

    async def test_callback_can_unsubscribe_a_later_subscriber(self, notifier):
        later_seen = []
        holder = {}
        notifier.subscribe("alice", lambda e: holder["later"].unsubscribe())
        holder["later"] = notifier.subscribe("alice", later_seen.append)

        await notifier.publish("alice", EventKind.VISIT_RECORDED)
        assert later_seen == []

    async def test_scoped_subscription(self, notifier):
        seen = []
        async with notifier.subscribe("alice", seen.append):
            assert notifier.subscriber_count("alice") == 1
            await notifier.publish("alice", EventKind.VISIT_RECORDED)
        assert notifier.subscriber_count("alice") == 0
        await notifier.publish("alice", EventKind.VISIT_RECORDED)
        assert len(seen) == 1


class TestFailingObserver:
    async def test_failure_does_not_stop_other_observers(self, notifier, caplog):
        seen = []

        def broken(event):
            raise RuntimeError("boom")

        notifier.subscribe("alice", broken)
        notifier.subscribe("alice", seen.append)

        assert await notifier.publish("alice", EventKind.VISIT_RECORDED) == 1
        assert len(seen) == 1
        assert "failed" in caplog.text


class TestReentrantPublish:
    async def test_callback_can_publish_for_same_user(self, notifier):
        seen = []

        async def echo(event):
            seen.append(event.breakdown.percentage)
            if len(seen) == 1:
                assert await notifier.publish("alice", EventKind.ACKNOWLEDGED) == 0

        notifier.subscribe("alice", echo)
        delivered = await asyncio.wait_for(notifier.publish("alice", EventKind.VISIT_RECORDED), 1)

        assert seen == [1, 2]
        assert delivered == 2

    async def test_subscriber_recording_a_visit_does_not_hang(self, tracker, trainee):
        events = []

        async def follow_up(event):
            events.append(event)
            if len(events) == 1:
                await tracker.ledger.record_visit(trainee, "faq", 0)

        async with tracker.notifier.subscribe(trainee, follow_up):
            await asyncio.wait_for(tracker.ledger.record_visit(trainee, "welcome", 0), 2)

        assert [e.breakdown.sections_completed for e in events] == [1, 2]
        breakdown = await tracker.aggregator.breakdown(trainee)
        assert breakdown.sections_completed == 2


class TestChannelCleanup:
    async def test_channel_dropped_after_last_subscriber_and_publish(self, notifier):
        sub = notifier.subscribe("alice", lambda e: None)
        await notifier.publish("alice", EventKind.VISIT_RECORDED)
        sub.unsubscribe()
        assert "alice" not in notifier._channels

    async def test_unsubscribe_during_publish_keeps_channel_until_done(self):
        loader = CountingLoader(delays=[0.05])
        notifier = ChangeNotifier(loader)
        sub = notifier.subscribe("alice", lambda e: None)

        task = asyncio.create_task(notifier.publish("alice", EventKind.VISIT_RECORDED))
        await asyncio.sleep(0.01)
        sub.unsubscribe()
        assert "alice" in notifier._channels

        assert await task == 0
        assert "alice" not in notifier._channels

    async def test_fifo_survives_resubscribe_while_publishes_wait(self):
        loader = CountingLoader(delays=[0.05, 0, 0])
        notifier = ChangeNotifier(loader)
        first = notifier.subscribe("alice", lambda e: None)

        publishes = [
            asyncio.create_task(notifier.publish("alice", EventKind.VISIT_RECORDED)),
            asyncio.create_task(notifier.publish("alice", EventKind.VISIT_RECORDED)),
        ]
        await asyncio.sleep(0.01)
        first.unsubscribe()

        seen = []
        notifier.subscribe("alice", lambda e: seen.append(e.breakdown.percentage))
        publishes.append(asyncio.create_task(notifier.publish("alice", EventKind.ACKNOWLEDGED)))
        await asyncio.gather(*publishes)

        assert seen == [1, 2, 3]

    async def test_mixed_case_ids_share_subscribers(self, notifier):
        seen = []
        notifier.subscribe("Alice@Example.com", seen.append)
        assert notifier.subscriber_count("alice@example.com") == 1

        await notifier.publish("alice@example.com", EventKind.VISIT_RECORDED)
        assert [e.user_id for e in seen] == ["alice@example.com"]


class TestLedgerIntegration:
    async def test_record_visit_pushes_refreshed_breakdown(self, tracker, trainee):
        events = []
        async with tracker.notifier.subscribe(trainee, events.append):
            await tracker.ledger.record_visit(trainee, "welcome", 0)
            await tracker.ledger.record_visit(trainee, "training", 30)

        assert [e.breakdown.sections_completed for e in events] == [1, 2]
        assert all(e.kind is EventKind.VISIT_RECORDED for e in events)
