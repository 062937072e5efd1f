"""Admin rollup: fleet statistics and per-user bands. Read only."""
from datetime import datetime, timedelta
from typing import Iterable

from training_portal.schemas.admin import AdminSnapshotSchema, Band, FleetTotalsSchema, UserSnapshotSchema
from training_portal.schemas.progress import ProgressBreakdown
from training_portal.services.catalog import SectionCatalog
from training_portal.services.progress import breakdown_for_state
from training_portal.services.store import Clock, ProgressStore, as_utc, user_key, utcnow

INACTIVE_AFTER_DAYS = 7
GOOD_BAND_THRESHOLD = 70


def classify_band(
    percentage: int,
    acknowledged: bool,
    days_since_active: int,
    good_threshold: int = GOOD_BAND_THRESHOLD,
    inactive_after_days: int = INACTIVE_AFTER_DAYS,
) -> Band:
    """Progress is checked before recency: an idle user who finished is still Excellent."""
    if percentage == 100 and acknowledged:
        return Band.EXCELLENT
    if percentage >= good_threshold:
        return Band.GOOD
    if days_since_active > inactive_after_days:
        return Band.INACTIVE
    return Band.POOR


def days_since(last_active: datetime | None, now: datetime) -> int:
    if last_active is None:
        return 0
    return max(0, (now - as_utc(last_active)) // timedelta(days=1))


def time_since_label(last_active: datetime | None, now: datetime) -> str:
    if last_active is None:
        return "Never"
    minutes = int((now - as_utc(last_active)).total_seconds() // 60)
    hours = minutes // 60
    days = hours // 24
    if days > 0:
        return f"{days}d ago"
    if hours > 0:
        return f"{hours}h ago"
    if minutes > 0:
        return f"{minutes}m ago"
    return "Just now"


def resolve_exclusions(hidden_accounts: Iterable[str], requester: str | None) -> set[str]:
    """Hidden accounts are excluded unless the requester is one of them."""
    hidden = {user_key(u) for u in hidden_accounts}
    if requester is not None and user_key(requester) in hidden:
        return set()
    return hidden


class AdminRollup:
    def __init__(
        self,
        catalog: SectionCatalog,
        store: ProgressStore,
        clock: Clock = utcnow,
        good_threshold: int = GOOD_BAND_THRESHOLD,
        inactive_after_days: int = INACTIVE_AFTER_DAYS,
    ):
        self.catalog = catalog
        self.store = store
        self.clock = clock
        self.good_threshold = good_threshold
        self.inactive_after_days = inactive_after_days

    async def fleet_snapshot(self, excluded_user_ids: Iterable[str] = ()) -> AdminSnapshotSchema:
        """Project every non-excluded user into a band and sum the fleet totals.

        Store failures propagate: an admin report built on partial data would
        be wrong rather than stale.
        """
        excluded = {user_key(u) for u in excluded_user_ids}
        now = self.clock()
        rows: list[UserSnapshotSchema] = []

        for state, records in await self.store.list_user_progress():
            identity = state.identity
            if identity.user_id in excluded:
                continue
            breakdown = breakdown_for_state(self.catalog, state, records)
            # users who never visited anything count from registration
            reference = state.last_active or state.created_at
            rows.append(self._user_row(state, breakdown, now, reference))

        return AdminSnapshotSchema(generated_at=now, users=rows, totals=self._totals(rows))

    def _user_row(self, state, breakdown: ProgressBreakdown, now: datetime, reference: datetime | None) -> UserSnapshotSchema:
        days = days_since(reference, now)
        return UserSnapshotSchema(
            user_id=state.identity.user_id,
            name=state.identity.name,
            position=state.identity.position,
            status=state.identity.status,
            completed_sections=breakdown.sections_completed,
            total_sections=breakdown.total_sections,
            percentage=breakdown.percentage,
            acknowledged=state.acknowledged,
            last_active=state.last_active,
            days_since_active=days,
            time_since_active=time_since_label(state.last_active, now),
            band=classify_band(
                breakdown.percentage,
                state.acknowledged,
                days,
                good_threshold=self.good_threshold,
                inactive_after_days=self.inactive_after_days,
            ),
        )

    @staticmethod
    def _totals(rows: list[UserSnapshotSchema]) -> FleetTotalsSchema:
        totals = FleetTotalsSchema(total_users=len(rows))
        for row in rows:
            if row.status == "blocked":
                totals.blocked_users += 1
            else:
                totals.active_users += 1
            if row.acknowledged:
                totals.acknowledged_count += 1
            setattr(totals, row.band.value, getattr(totals, row.band.value) + 1)
        if rows:
            totals.average_percentage = round(sum(r.percentage for r in rows) / len(rows), 1)
        return totals
