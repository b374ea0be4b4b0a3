"""
Category normalization.

Fills in the default reporting category, resolves display captions through
the caption lookup table and builds each recommendation's description.
"""

import csv
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from assessment_sync.models.category import (
    AssessmentSource,
    CategoryCaption,
    CategoryCaptionTable,
)
from assessment_sync.models.recommendation import Recommendation
from assessment_sync.services.extractor import InputError
from assessment_sync.services.templates import get_issue_description

logger = logging.getLogger(__name__)

CAPTION_COLUMNS = ("Pillar", "Category", "Caption")
KNOWLEDGE_BASE_COLUMNS = ("Title", "Description")


class LookupFileError(InputError):
    """A caption or knowledge base file is missing or malformed."""


def _read_lookup_rows(path: Union[str, Path], required: Iterable[str]) -> List[Dict[str, str]]:
    try:
        with open(path, "r", encoding="utf-8-sig", newline="") as f:
            reader = csv.DictReader(f)
            missing = [c for c in required if c not in (reader.fieldnames or [])]
            if missing:
                raise LookupFileError(f"{path} is missing columns: {', '.join(missing)}")
            return list(reader)
    except OSError as e:
        raise LookupFileError(f"Cannot read {path}: {e}") from e


def load_caption_table(path: Union[str, Path]) -> CategoryCaptionTable:
    """Load a ``Pillar,Category,Caption,Description`` lookup file."""
    entries = []
    for row in _read_lookup_rows(path, CAPTION_COLUMNS):
        pillar = (row.get("Pillar") or "").strip()
        category = (row.get("Category") or "").strip()
        if not pillar or not category:
            continue
        entries.append(
            CategoryCaption(
                pillar=pillar,
                category=category,
                caption=(row.get("Caption") or "").strip() or category,
                description=(row.get("Description") or "").strip(),
            )
        )
    logger.info(f"Loaded {len(entries)} category captions from {path}")
    return CategoryCaptionTable(entries)


class KnowledgeBase:
    """Extra description text for recommendations, keyed by title."""

    def __init__(self, entries: Optional[Dict[str, str]] = None):
        self._entries = {k.strip().casefold(): v for k, v in (entries or {}).items()}

    def __len__(self) -> int:
        return len(self._entries)

    def lookup(self, title: str) -> Optional[str]:
        return self._entries.get((title or "").strip().casefold())


def load_knowledge_base(path: Union[str, Path]) -> KnowledgeBase:
    """Load a ``Title,Description`` knowledge base file."""
    entries = {}
    for row in _read_lookup_rows(path, KNOWLEDGE_BASE_COLUMNS):
        title = (row.get("Title") or "").strip()
        description = (row.get("Description") or "").strip()
        if title and description:
            entries[title] = description
    logger.info(f"Loaded {len(entries)} knowledge base entries from {path}")
    return KnowledgeBase(entries)


class CategoryNormalizer:
    """
    Normalizes parsed recommendations in place.

    Running ``normalize`` twice over the same recommendations gives the same
    result as running it once.
    """

    def __init__(
        self,
        sentinel: str = AssessmentSource.WELL_ARCHITECTED.sentinel_category,
        captions: Optional[CategoryCaptionTable] = None,
        knowledge_base: Optional[KnowledgeBase] = None,
    ):
        self.sentinel = sentinel
        self.captions = captions if captions is not None else CategoryCaptionTable()
        self.knowledge_base = knowledge_base

    @classmethod
    def for_source(cls, source: AssessmentSource, **kwargs) -> "CategoryNormalizer":
        return cls(sentinel=source.sentinel_category, **kwargs)

    def caption_for(self, pillar: str, reporting_category: str) -> str:
        return self.captions.caption_for(pillar, reporting_category)

    def normalize_one(self, rec: Recommendation) -> Recommendation:
        if not rec.reporting_category:
            rec.reporting_category = self.sentinel

        rec.category_caption = self.caption_for(rec.category, rec.reporting_category)

        knowledge = ""
        if self.knowledge_base is not None:
            knowledge = self.knowledge_base.lookup(rec.link_text) or ""
        rec.description = get_issue_description(rec.link, rec.link_text, knowledge)
        return rec

    def normalize(self, recommendations: Iterable[Recommendation]) -> List[Recommendation]:
        normalized = [self.normalize_one(rec) for rec in recommendations]
        defaulted = sum(1 for rec in normalized if rec.reporting_category == self.sentinel)
        logger.info(
            f"Normalized {len(normalized)} recommendations "
            f"({defaulted} in default category '{self.sentinel}')"
        )
        return normalized
