"""Composition root: wires the tracking components around one store handle."""
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from training_portal.core.config import Settings
from training_portal.services.catalog import SectionCatalog
from training_portal.services.gate import AcknowledgementGate
from training_portal.services.ledger import VisitLedger
from training_portal.services.notifier import ChangeNotifier
from training_portal.services.progress import ProgressAggregator
from training_portal.services.rollup import AdminRollup
from training_portal.services.store import Clock, ProgressStore, utcnow


class TrainingTracker:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings,
        catalog: SectionCatalog | None = None,
        clock: Clock = utcnow,
    ):
        self.settings = settings
        self.catalog = catalog or SectionCatalog.default(
            required_dwell_seconds=settings.default_required_dwell_seconds,
            visit_only=settings.visit_only_sections,
        )
        self.store = ProgressStore(session_factory, clock=clock)
        self.aggregator = ProgressAggregator(self.catalog, self.store)
        self.notifier = ChangeNotifier(self.aggregator.breakdown, clock=clock)
        self.ledger = VisitLedger(
            self.catalog,
            self.store,
            self.notifier,
            quiz_pass_score=settings.quiz_pass_score,
        )
        self.gate = AcknowledgementGate(self.aggregator, self.store, self.notifier)
        self.rollup = AdminRollup(
            self.catalog,
            self.store,
            clock=clock,
            good_threshold=settings.good_band_threshold,
            inactive_after_days=settings.inactive_after_days,
        )
