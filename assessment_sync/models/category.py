from enum import Enum
from typing import Dict, Iterable, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from assessment_sync.core.constants import SENTINEL_CATEGORIES


class Pillar(str, Enum):
    RELIABILITY = "Reliability"
    COST_OPTIMIZATION = "Cost Optimization"
    OPERATIONAL_EXCELLENCE = "Operational Excellence"
    PERFORMANCE_EFFICIENCY = "Performance Efficiency"
    SECURITY = "Security"
    OTHER = "Other"


class PillarRef(BaseModel):
    """
    A pillar label from an export: one of the known pillars, or OTHER
    carrying the raw label unchanged.
    """

    model_config = ConfigDict(frozen=True)

    kind: Pillar
    name: str

    @classmethod
    def parse(cls, label: str) -> "PillarRef":
        label = (label or "").strip()
        for pillar in Pillar:
            if pillar is not Pillar.OTHER and pillar.value.lower() == label.lower():
                return cls(kind=pillar, name=pillar.value)
        return cls(kind=Pillar.OTHER, name=label)

    @property
    def is_known(self) -> bool:
        return self.kind is not Pillar.OTHER


class AssessmentSource(str, Enum):
    """Tool that produced the export; decides the default reporting category."""

    WELL_ARCHITECTED = "wellarchitected"
    ADVISOR = "advisor"
    DEFENDER = "defender"

    @property
    def sentinel_category(self) -> str:
        return SENTINEL_CATEGORIES[self.value]


class CategoryCaption(BaseModel):
    """One row of the category caption lookup file."""

    model_config = ConfigDict(frozen=True)

    pillar: str
    category: str = Field(..., description="Category code or prefix, e.g. 'SE:01'")
    caption: str
    description: str = ""


class CategoryCaptionTable:
    """
    Ordered, read-only lookup of category captions.

    Built once at load time and shared by reference; there is no way to
    add or change entries after construction.
    """

    def __init__(self, entries: Iterable[CategoryCaption] = ()):
        self._entries: Tuple[CategoryCaption, ...] = tuple(entries)
        self._by_pillar: Dict[str, Tuple[CategoryCaption, ...]] = {}
        for entry in self._entries:
            key = entry.pillar.lower()
            self._by_pillar[key] = self._by_pillar.get(key, ()) + (entry,)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    def lookup(self, pillar: str, reporting_category: str) -> Optional[CategoryCaption]:
        """
        First entry of ``pillar`` whose category starts with
        ``reporting_category``, or None.
        """
        if not reporting_category:
            return None
        for entry in self._by_pillar.get((pillar or "").lower(), ()):
            if entry.category.startswith(reporting_category):
                return entry
        return None

    def caption_for(self, pillar: str, reporting_category: str) -> str:
        """Display caption, or the reporting category itself when unmapped."""
        entry = self.lookup(pillar, reporting_category)
        return entry.caption if entry else reporting_category
