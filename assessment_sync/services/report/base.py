from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Union

from pydantic import BaseModel, Field

from assessment_sync.models.aggregate import CategoryAggregate, SortOrder
from assessment_sync.models.recommendation import Assessment, PillarScore, Recommendation
from assessment_sync.services.aggregator import (
    ScoreAggregator,
    sort_aggregates,
    top_recommendations,
)


class CategorySection(BaseModel):
    """One category of the report with its highest-weight recommendations."""

    aggregate: CategoryAggregate
    recommendations: List[Recommendation] = Field(default_factory=list)


class ReportContext(BaseModel):
    """Everything a renderer needs; renderers do no aggregation of their own."""

    title: str
    pillar_scores: List[PillarScore] = Field(default_factory=list)
    sections: List[CategorySection] = Field(default_factory=list)
    minimum_report_level: int
    total_recommendations: int = 0
    omitted_categories: int = 0


def build_report_context(
    assessment: Assessment,
    aggregator: ScoreAggregator,
    order: SortOrder = SortOrder.SCORE,
    top_n: int = 5,
    max_sections: Optional[int] = None,
) -> ReportContext:
    """Aggregate, sort and cap the categories of a normalized assessment."""
    recommendations = assessment.recommendations
    aggregates = sort_aggregates(aggregator.aggregate(recommendations), order)

    omitted = 0
    if max_sections is not None and len(aggregates) > max_sections:
        omitted = len(aggregates) - max_sections
        aggregates = aggregates[:max_sections]

    sections = [
        CategorySection(
            aggregate=aggregate,
            recommendations=top_recommendations(
                recommendations,
                top_n,
                reporting_category=aggregate.category,
                pillar=aggregate.pillar,
            ),
        )
        for aggregate in aggregates
    ]
    return ReportContext(
        title=assessment.name,
        pillar_scores=assessment.pillar_scores,
        sections=sections,
        minimum_report_level=aggregator.minimum_report_level,
        total_recommendations=len(recommendations),
        omitted_categories=omitted,
    )


class ReportRenderer(ABC):
    """Writes a report file from a ReportContext."""

    extension: str = ""

    @abstractmethod
    def render(self, context: ReportContext, output_path: Union[str, Path]) -> Path:
        """
        Render the report.
        :param context: Aggregated report content
        :param output_path: File to write
        :return: Path of the written file
        """
        pass
