"""Trackable training sections and their completion policies."""
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

DEFAULT_REQUIRED_DWELL_SECONDS = 60

# Ordered: this is the order sections appear in every breakdown
SECTION_LABELS = [
    ("welcome", "Welcome & Introduction"),
    ("training", "Training Program"),
    ("uniform-guide", "Uniform Guide"),
    ("social-media", "Social Media Policy"),
    ("resources", "Resources"),
    ("procedures", "Procedures"),
    ("policies", "Policies"),
    ("glassware-guide", "Glassware Guide"),
    ("faq", "FAQ"),
    ("drinks-specials", "Drinks & Specials"),
    ("comps-voids", "Comps & Voids"),
    ("cocktails", "Cocktails"),
    ("aloha-pos", "Aloha POS System"),
    ("bar-cleanings", "Bar Cleaning Procedures"),
]

# Portal sections that are never tracked for progress
EXCLUDED_SECTIONS = [
    "admin-panel",
    "employee-counselings",
    "schedule-report",
    "special-events",
]


class PolicyKind(str, Enum):
    VISIT_ONLY = "visit_only"
    DWELL_THRESHOLD = "dwell_threshold"


@dataclass(frozen=True)
class SectionDefinition:
    id: str
    label: str
    required_dwell_seconds: int = 0  # 0 = visit-only

    @property
    def policy(self) -> "SectionPolicy":
        return SectionPolicy(self.required_dwell_seconds)


@dataclass(frozen=True)
class SectionPolicy:
    required_dwell_seconds: int

    @property
    def kind(self) -> PolicyKind:
        if self.required_dwell_seconds <= 0:
            return PolicyKind.VISIT_ONLY
        return PolicyKind.DWELL_THRESHOLD

    def is_complete(self, cumulative_seconds: int) -> bool:
        """Visit-only sections complete on any recorded visit."""
        return cumulative_seconds >= self.required_dwell_seconds

    def section_progress(self, cumulative_seconds: int, completed: bool) -> int:
        """Per-section percentage, 0-100."""
        if completed:
            return 100
        if self.kind is PolicyKind.VISIT_ONLY:
            return 0
        return min(100, round_half_up(cumulative_seconds * 100, self.required_dwell_seconds))


def round_half_up(numerator: int, denominator: int) -> int:
    """Integer round-half-up of numerator / denominator (both >= 0)."""
    if denominator <= 0:
        return 0
    return (2 * numerator + denominator) // (2 * denominator)


class SectionCatalog:
    """Immutable, ordered set of trackable sections."""

    def __init__(self, sections: Iterable[SectionDefinition]):
        self._sections = tuple(sections)
        self._by_id = {s.id: s for s in self._sections}
        if len(self._by_id) != len(self._sections):
            raise ValueError("Duplicate section ids in catalog")

    @classmethod
    def default(
        cls,
        required_dwell_seconds: int = DEFAULT_REQUIRED_DWELL_SECONDS,
        visit_only: Iterable[str] = (),
    ) -> "SectionCatalog":
        visit_only = set(visit_only)
        return cls(
            SectionDefinition(
                id=section_id,
                label=label,
                required_dwell_seconds=0 if section_id in visit_only else required_dwell_seconds,
            )
            for section_id, label in SECTION_LABELS
        )

    @property
    def sections(self) -> tuple[SectionDefinition, ...]:
        return self._sections

    @property
    def total(self) -> int:
        return len(self._sections)

    def get(self, section_id: str) -> SectionDefinition | None:
        return self._by_id.get(section_id)

    def policy_for(self, section_id: str) -> SectionPolicy | None:
        section = self._by_id.get(section_id)
        return section.policy if section else None

    def is_tracked(self, section_id: str) -> bool:
        return section_id in self._by_id and section_id not in EXCLUDED_SECTIONS

    def __contains__(self, section_id: str) -> bool:
        return section_id in self._by_id
