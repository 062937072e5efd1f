"""Progress aggregation: the one place a completion percentage is computed."""
import logging
from typing import Mapping

from training_portal.core.exceptions import StoreUnavailableError, UnknownSectionError
from training_portal.schemas.progress import ProgressBreakdown, SectionDetail, VisitRecord
from training_portal.schemas.user import Role, UserState
from training_portal.services.catalog import SectionCatalog, round_half_up
from training_portal.services.store import ProgressStore, user_key

logger = logging.getLogger(__name__)


def compute_breakdown(
    catalog: SectionCatalog,
    user_id: str,
    records: Mapping[str, VisitRecord],
    role: Role,
    acknowledged: bool,
    acknowledged_at=None,
) -> ProgressBreakdown:
    """Pure function of stored state.

    A section counts only when its record is completed under the section's
    policy. Sections without a record count as zero dwell, not completed.
    """
    details = []
    for section in catalog.sections:
        record = records.get(section.id)
        spent = record.cumulative_seconds if record else 0
        completed = bool(record and record.completed)
        details.append(
            SectionDetail(
                id=section.id,
                label=section.label,
                completed=completed,
                seconds_spent=spent,
                seconds_required=section.required_dwell_seconds,
                progress=section.policy.section_progress(spent, completed),
            )
        )

    completed_count = sum(1 for d in details if d.completed)
    total = catalog.total
    percentage = max(0, min(100, round_half_up(completed_count * 100, total)))
    is_tracked = role is Role.TRACKED

    return ProgressBreakdown(
        user_id=user_id,
        percentage=percentage,
        section_details=details,
        sections_completed=completed_count,
        total_sections=total,
        can_acknowledge=percentage == 100 and is_tracked and not acknowledged,
        is_tracked=is_tracked,
        acknowledged=acknowledged,
        acknowledged_at=acknowledged_at,
    )


def breakdown_for_state(catalog: SectionCatalog, state: UserState, records: Mapping[str, VisitRecord]) -> ProgressBreakdown:
    return compute_breakdown(
        catalog,
        state.identity.user_id,
        records,
        state.identity.role,
        state.acknowledged,
        state.acknowledged_at,
    )


def empty_breakdown(catalog: SectionCatalog, user_id: str) -> ProgressBreakdown:
    return compute_breakdown(catalog, user_id, {}, Role.UNTRACKED, acknowledged=False)


class ProgressAggregator:
    """Reads stored state and turns it into a ProgressBreakdown.

    Reads never block the UI on a store failure: the last breakdown served
    for the user (or a zeroed one) comes back flagged as stale.
    """

    def __init__(self, catalog: SectionCatalog, store: ProgressStore):
        self.catalog = catalog
        self.store = store
        self._last_known: dict[str, ProgressBreakdown] = {}

    async def breakdown(self, user_id: str) -> ProgressBreakdown:
        try:
            state, records = await self.store.get_user_progress(user_id)
        except StoreUnavailableError:
            logger.warning("Serving stale progress for %s", user_id)
            key = user_key(user_id)
            cached = self._last_known.get(key) or empty_breakdown(self.catalog, key)
            return cached.model_copy(update={"stale": True})

        result = breakdown_for_state(self.catalog, state, records)
        self._last_known[result.user_id] = result
        return result

    async def fresh_breakdown(self, user_id: str) -> ProgressBreakdown:
        """Like breakdown() but store failures propagate; used before writes."""
        state, records = await self.store.get_user_progress(user_id)
        result = breakdown_for_state(self.catalog, state, records)
        self._last_known[result.user_id] = result
        return result

    async def section_detail(self, user_id: str, section_id: str) -> SectionDetail:
        if section_id not in self.catalog:
            raise UnknownSectionError(section_id)
        result = await self.breakdown(user_id)
        return next(d for d in result.section_details if d.id == section_id)

    async def completed_sections(self, user_id: str) -> list[str]:
        result = await self.breakdown(user_id)
        return [d.id for d in result.section_details if d.completed]

    async def is_section_completed(self, user_id: str, section_id: str) -> bool:
        return (await self.section_detail(user_id, section_id)).completed
