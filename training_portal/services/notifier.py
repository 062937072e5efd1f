"""Per-user fan-out of progress changes to open sessions."""
import asyncio
import inspect
import itertools
import logging
from collections import deque
from typing import Awaitable, Callable, Union

from training_portal.schemas.progress import EventKind, ProgressBreakdown, ProgressEvent
from training_portal.services.store import Clock, user_key, utcnow

logger = logging.getLogger(__name__)

Callback = Callable[[ProgressEvent], Union[None, Awaitable[None]]]
BreakdownLoader = Callable[[str], Awaitable[ProgressBreakdown]]


class Subscription:
    """Handle returned by ChangeNotifier.subscribe.

    unsubscribe() may be called any number of times, including from inside
    the callback. Usable as an async context manager for scoped release.
    """

    def __init__(self, notifier: "ChangeNotifier", user_id: str, callback: Callback, sub_id: int):
        self._notifier = notifier
        self.user_id = user_id
        self.callback = callback
        self.id = sub_id
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self._notifier._remove(self)

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.unsubscribe()


class _Channel:
    """Per-user ordering state: loads are serialized by the lock, deliveries by one drainer."""

    def __init__(self):
        self.lock = asyncio.Lock()
        self.pending: deque[ProgressEvent] = deque()
        self.draining = False
        self.publishers = 0


class ChangeNotifier:
    """Delivers ProgressEvents to the subscribers of one user id.

    Events for one user are delivered in publish order. Each publish loads the
    refreshed breakdown under that user's lock (asyncio locks wake waiters
    FIFO) and queues the event. The lock is released before any callback
    runs, and whichever publish finds nobody delivering drains the queue.
    A callback may therefore write for the same user: its publish queues
    behind the current event and returns without waiting for delivery.
    Different users do not wait on each other.
    """

    def __init__(self, loader: BreakdownLoader, clock: Clock = utcnow):
        self._loader = loader
        self._clock = clock
        self._subscribers: dict[str, dict[int, Subscription]] = {}
        self._channels: dict[str, _Channel] = {}
        self._ids = itertools.count(1)

    def subscribe(self, user_id: str, callback: Callback) -> Subscription:
        sub = Subscription(self, user_key(user_id), callback, next(self._ids))
        self._subscribers.setdefault(sub.user_id, {})[sub.id] = sub
        logger.debug("Subscribed #%s to %s", sub.id, sub.user_id)
        return sub

    def subscriber_count(self, user_id: str) -> int:
        return len(self._subscribers.get(user_key(user_id), {}))

    def _remove(self, sub: Subscription) -> None:
        subs = self._subscribers.get(sub.user_id)
        if not subs:
            return
        subs.pop(sub.id, None)
        if not subs:
            del self._subscribers[sub.user_id]
            self._discard_idle(sub.user_id)
        logger.debug("Unsubscribed #%s from %s", sub.id, sub.user_id)

    def _discard_idle(self, user_id: str) -> None:
        # a channel with a publish in flight (loading, waiting or draining) stays
        channel = self._channels.get(user_id)
        if channel is None or channel.publishers or self._subscribers.get(user_id):
            return
        del self._channels[user_id]

    async def publish(self, user_id: str, kind: EventKind) -> int:
        """Queue a refreshed breakdown for every subscriber.

        Returns the deliveries made by this call. A publish that finds another
        one already delivering leaves its event to that one and returns 0.
        """
        user_id = user_key(user_id)
        if not self._subscribers.get(user_id):
            return 0

        channel = self._channels.setdefault(user_id, _Channel())
        channel.publishers += 1
        try:
            async with channel.lock:
                breakdown = await self._loader(user_id)
                channel.pending.append(
                    ProgressEvent(user_id=user_id, kind=kind, breakdown=breakdown, published_at=self._clock())
                )
            if channel.draining:
                return 0
            channel.draining = True
            try:
                return await self._drain(user_id, channel)
            finally:
                channel.draining = False
        finally:
            channel.publishers -= 1
            self._discard_idle(user_id)

    async def _drain(self, user_id: str, channel: _Channel) -> int:
        delivered = 0
        while channel.pending:
            event = channel.pending.popleft()
            for sub in list(self._subscribers.get(user_id, {}).values()):
                if not sub.active:
                    continue
                try:
                    result = sub.callback(event)
                    if inspect.isawaitable(result):
                        await result
                    delivered += 1
                except Exception:
                    logger.exception("Progress subscriber #%s for %s failed", sub.id, user_id)
        return delivered
