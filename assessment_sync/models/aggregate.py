from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from assessment_sync.core.constants import classify_score_bucket


class SortOrder(str, Enum):
    SCORE = "score"  # descending score
    CATEGORY = "category"  # alphabetical, keeps numbered category codes in order


class CategoryAggregate(BaseModel):
    """Score summary of one reporting category (optionally within a pillar)."""

    pillar: Optional[str] = None
    category: str
    caption: str = ""
    score: float = Field(0.0, description="Mean weight of the category's recommendations")
    high_severity_count: int = Field(0, description="Recommendations at or above the report level")
    recommendation_count: int = 0

    @property
    def display_name(self) -> str:
        return self.caption or self.category

    @property
    def bucket(self) -> str:
        return classify_score_bucket(self.score)
