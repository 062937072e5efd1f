"""Acknowledgement gate: the one-way, one-time training sign-off."""
import logging

from training_portal.core.exceptions import (
    AlreadyAcknowledgedError,
    IncompleteProgressError,
    UntrackedRoleError,
)
from training_portal.schemas.progress import AcknowledgementOutSchema, EventKind
from training_portal.services.notifier import ChangeNotifier
from training_portal.services.progress import ProgressAggregator
from training_portal.services.store import ProgressStore

logger = logging.getLogger(__name__)


class AcknowledgementGate:
    def __init__(
        self,
        aggregator: ProgressAggregator,
        store: ProgressStore,
        notifier: ChangeNotifier | None = None,
    ):
        self.aggregator = aggregator
        self.store = store
        self.notifier = notifier

    async def submit_acknowledgement(self, user_id: str) -> AcknowledgementOutSchema:
        """Eligibility is recomputed from the store, never taken from the client.

        Progress cannot regress, but the position can change between the check
        and the write, so the conditional update re-checks both the flag and
        the tracked position. Exactly one concurrent caller wins.
        """
        breakdown = await self.aggregator.fresh_breakdown(user_id)
        if breakdown.acknowledged:
            raise AlreadyAcknowledgedError(user_id)
        if not breakdown.is_tracked:
            raise UntrackedRoleError(user_id)
        if breakdown.percentage < 100:
            raise IncompleteProgressError(user_id, breakdown.percentage)

        acknowledged_at = await self.store.mark_acknowledged(user_id)
        if acknowledged_at is None:
            state, _ = await self.store.get_user_progress(user_id)
            if state.acknowledged:
                raise AlreadyAcknowledgedError(user_id)
            raise UntrackedRoleError(user_id)

        logger.info("Acknowledgement submitted for %s", user_id)
        if self.notifier is not None:
            await self.notifier.publish(user_id, EventKind.ACKNOWLEDGED)
        return AcknowledgementOutSchema(user_id=breakdown.user_id, acknowledged=True, acknowledged_at=acknowledged_at)
