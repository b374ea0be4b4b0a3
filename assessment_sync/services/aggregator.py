from typing import Dict, Iterable, List, Optional, Tuple

from assessment_sync.core.constants import (
    CONTAINER_TITLE_SEPARATOR,
    DEFAULT_MINIMUM_REPORT_LEVEL,
)
from assessment_sync.models.aggregate import CategoryAggregate, SortOrder
from assessment_sync.models.recommendation import Recommendation


def score_of(weights: List[int]) -> float:
    """Mean weight; 0.0 for an empty list."""
    if not weights:
        return 0.0
    return sum(weights) / len(weights)


def container_title(rec: Recommendation, by_pillar: bool = False) -> str:
    """Title of the tracker container a recommendation belongs to."""
    category = rec.display_category
    if by_pillar and rec.category:
        return f"{rec.category}{CONTAINER_TITLE_SEPARATOR}{category}"
    return category


def group_by_container(
    recommendations: Iterable[Recommendation], by_pillar: bool = False
) -> Dict[str, List[Recommendation]]:
    """Container title -> recommendations, in order of first appearance."""
    groups: Dict[str, List[Recommendation]] = {}
    for rec in recommendations:
        title = container_title(rec, by_pillar)
        if title:
            groups.setdefault(title, []).append(rec)
    return groups


class ScoreAggregator:
    """
    Groups normalized recommendations by reporting category and computes
    the per-category scores used by the report and the reconciler.
    """

    def __init__(
        self,
        minimum_report_level: int = DEFAULT_MINIMUM_REPORT_LEVEL,
        by_pillar: bool = False,
    ):
        self.minimum_report_level = minimum_report_level
        self.by_pillar = by_pillar

    def _partition_key(self, rec: Recommendation) -> Tuple[Optional[str], str]:
        pillar = rec.category if self.by_pillar else None
        return pillar, rec.reporting_category

    def partition(
        self, recommendations: Iterable[Recommendation]
    ) -> Dict[Tuple[Optional[str], str], List[Recommendation]]:
        partitions: Dict[Tuple[Optional[str], str], List[Recommendation]] = {}
        for rec in recommendations:
            partitions.setdefault(self._partition_key(rec), []).append(rec)
        return partitions

    def aggregate(self, recommendations: Iterable[Recommendation]) -> List[CategoryAggregate]:
        """One CategoryAggregate per partition, in order of first appearance."""
        aggregates = []
        for (pillar, category), members in self.partition(recommendations).items():
            if not members:
                continue
            weights = [rec.weight for rec in members]
            aggregates.append(
                CategoryAggregate(
                    pillar=pillar,
                    category=category,
                    caption=members[0].display_category,
                    score=score_of(weights),
                    high_severity_count=sum(1 for w in weights if w >= self.minimum_report_level),
                    recommendation_count=len(members),
                )
            )
        return aggregates

    def group_by_container(self, recommendations: Iterable[Recommendation]) -> Dict[str, List[Recommendation]]:
        return group_by_container(recommendations, self.by_pillar)


def sort_aggregates(
    aggregates: Iterable[CategoryAggregate],
    order: SortOrder = SortOrder.SCORE,
) -> List[CategoryAggregate]:
    if order == SortOrder.CATEGORY:
        return sorted(aggregates, key=lambda a: ((a.pillar or ""), a.category.lower()))
    return sorted(aggregates, key=lambda a: (-a.score, a.category.lower()))


def top_recommendations(
    recommendations: Iterable[Recommendation],
    limit: int,
    reporting_category: Optional[str] = None,
    pillar: Optional[str] = None,
) -> List[Recommendation]:
    """
    Highest-weight recommendations, optionally restricted to one category.

    Ties keep insertion order; repeated titles are kept only once.
    """
    if limit <= 0:
        return []
    candidates = [
        rec
        for rec in recommendations
        if (reporting_category is None or rec.reporting_category == reporting_category)
        and (pillar is None or rec.category == pillar)
    ]
    # sorted() is stable, so equal weights stay in insertion order
    ranked = sorted(candidates, key=lambda rec: -rec.weight)

    seen = set()
    top = []
    for rec in ranked:
        if rec.link_text in seen:
            continue
        seen.add(rec.link_text)
        top.append(rec)
        if len(top) >= limit:
            break
    return top
