"""Visit ledger: records per-user, per-section visits and accumulated dwell time."""
import logging

from training_portal.core.exceptions import InvalidDwellError, UnknownSectionError
from training_portal.schemas.progress import EventKind, VisitRecord
from training_portal.services.catalog import SectionCatalog, SectionDefinition
from training_portal.services.notifier import ChangeNotifier
from training_portal.services.store import ProgressStore

logger = logging.getLogger(__name__)

QUIZ_PASS_SCORE = 0.7


class VisitLedger:
    """Merges visits into the store and announces them.

    Dwell reported by a caller is trusted once; callers must not resubmit the
    same interval. Completion is monotonic: it is an OR over the stored flag.
    """

    def __init__(
        self,
        catalog: SectionCatalog,
        store: ProgressStore,
        notifier: ChangeNotifier | None = None,
        quiz_pass_score: float = QUIZ_PASS_SCORE,
    ):
        self.catalog = catalog
        self.store = store
        self.notifier = notifier
        self.quiz_pass_score = quiz_pass_score

    def _section(self, user_id: str, section_id: str) -> SectionDefinition:
        section = self.catalog.get(section_id)
        if section is None or not self.catalog.is_tracked(section_id):
            logger.warning("Ignoring visit by %s to unknown section %r", user_id, section_id)
            raise UnknownSectionError(section_id)
        return section

    async def record_visit(self, user_id: str, section_id: str, dwell_seconds: int = 0) -> VisitRecord:
        if dwell_seconds < 0:
            raise InvalidDwellError(dwell_seconds)
        section = self._section(user_id, section_id)

        record = await self.store.upsert_visit(
            user_id,
            section_id,
            dwell_seconds,
            section.required_dwell_seconds,
        )
        logger.debug(
            "Visit %s/%s: %ss/%ss completed=%s",
            user_id,
            section_id,
            record.cumulative_seconds,
            section.required_dwell_seconds,
            record.completed,
        )
        await self._announce(user_id)
        return record

    async def admin_override_visit(self, user_id: str, section_id: str) -> VisitRecord:
        """Force a section complete by crediting the dwell still missing.

        Goes through the same atomic merge as a normal visit, so the stored
        time never drops and the notification still fires.
        """
        section = self._section(user_id, section_id)
        _, visits = await self.store.get_user_progress(user_id)
        current = visits.get(section_id)
        spent = current.cumulative_seconds if current else 0
        missing = max(0, section.required_dwell_seconds - spent)

        logger.info("Admin override: completing %s for %s (+%ss)", section_id, user_id, missing)
        return await self.record_visit(user_id, section_id, missing)

    async def credit_quiz(self, user_id: str, section_id: str, score: float) -> bool:
        """A passing quiz score counts as a full-length visit of the section."""
        section = self._section(user_id, section_id)
        if score < self.quiz_pass_score:
            logger.info("Quiz for %s by %s not passed (%.2f)", section_id, user_id, score)
            return False
        await self.record_visit(user_id, section_id, section.required_dwell_seconds)
        return True

    async def _announce(self, user_id: str) -> None:
        if self.notifier is not None:
            await self.notifier.publish(user_id, EventKind.VISIT_RECORDED)
