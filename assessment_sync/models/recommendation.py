from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from assessment_sync.core.constants import MAX_WEIGHT

# CSV column name -> model field name
CSV_COLUMNS: Dict[str, str] = {
    "Category": "category",
    "Link-Text": "link_text",
    "Link": "link",
    "Priority": "priority",
    "ReportingCategory": "reporting_category",
    "ReportingSubcategory": "reporting_subcategory",
    "Weight": "weight",
    "Context": "context",
    "CompleteY/N": "complete",
    "Note": "note",
}


class Recommendation(BaseModel):
    """One row of the recommendation table in an assessment export."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    category: str = Field("", alias="Category", description="Pillar, e.g. 'Security'")
    link_text: str = Field("", alias="Link-Text", description="Recommendation title")
    link: str = Field("", alias="Link")
    priority: str = Field("", alias="Priority", description="Only used as a tiebreak")
    reporting_category: str = Field("", alias="ReportingCategory")
    reporting_subcategory: str = Field("", alias="ReportingSubcategory")
    weight: int = Field(0, alias="Weight", description="Severity/importance score, 0-100")
    context: str = Field("", alias="Context")
    complete: Optional[str] = Field(None, alias="CompleteY/N")
    note: Optional[str] = Field(None, alias="Note")

    # Derived during normalization
    category_caption: Optional[str] = None
    description: str = ""

    @field_validator(
        "category",
        "link_text",
        "link",
        "priority",
        "reporting_category",
        "reporting_subcategory",
        "context",
        mode="before",
    )
    @classmethod
    def strip_text(cls, v: Any) -> str:
        if v is None:
            return ""
        return str(v).strip()

    @field_validator("weight", mode="before")
    @classmethod
    def coerce_weight(cls, v: Any) -> int:
        """Blank, missing or non-numeric weights count as 0."""
        if v is None:
            return 0
        if isinstance(v, str):
            v = v.strip()
            if not v:
                return 0
        try:
            weight = int(float(v))
        except (TypeError, ValueError):
            return 0
        return max(0, min(MAX_WEIGHT, weight))

    @property
    def display_category(self) -> str:
        """Caption for presentation, falling back to the raw reporting category."""
        return self.category_caption or self.reporting_category

    def to_row(self) -> Dict[str, str]:
        """Serialize back to the export's column names."""
        row = self.model_dump(by_alias=True, exclude={"category_caption", "description"})
        return {k: "" if v is None else str(v) for k, v in row.items()}


class PillarScore(BaseModel):
    """Summary score line from the export header, e.g. ``Security,...,'62/100'``."""

    pillar: str
    description: str = ""
    score: int


class Assessment(BaseModel):
    """A parsed assessment export."""

    name: str
    pillar_scores: List[PillarScore] = Field(default_factory=list)
    recommendations: List[Recommendation] = Field(default_factory=list)
    columns: List[str] = Field(default_factory=list, description="Header row as found in the export")

    def pillars(self) -> List[str]:
        """Distinct pillars in order of first appearance."""
        seen: List[str] = []
        for rec in self.recommendations:
            if rec.category and rec.category not in seen:
                seen.append(rec.category)
        return seen
