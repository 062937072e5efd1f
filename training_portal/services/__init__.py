from training_portal.services.catalog import SectionCatalog, SectionDefinition
from training_portal.services.gate import AcknowledgementGate
from training_portal.services.ledger import VisitLedger
from training_portal.services.notifier import ChangeNotifier, Subscription
from training_portal.services.progress import ProgressAggregator, compute_breakdown
from training_portal.services.rollup import AdminRollup, classify_band, resolve_exclusions
from training_portal.services.seeding import seed_demo_users
from training_portal.services.store import ProgressStore
from training_portal.services.tracker import TrainingTracker

__all__ = [
    "AcknowledgementGate",
    "AdminRollup",
    "ChangeNotifier",
    "ProgressAggregator",
    "ProgressStore",
    "SectionCatalog",
    "SectionDefinition",
    "Subscription",
    "TrainingTracker",
    "VisitLedger",
    "classify_band",
    "compute_breakdown",
    "resolve_exclusions",
    "seed_demo_users",
]
