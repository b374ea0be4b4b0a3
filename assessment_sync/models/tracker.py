from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from assessment_sync.core.constants import PRIORITY_LABEL_FORMAT, RISK_LABEL_FORMAT


class TrackerContainer(BaseModel):
    """A milestone/epic grouping the issues of one category."""

    title: str
    remote_id: Optional[str] = None
    url: Optional[str] = None
    description: str = ""


class TrackerIssue(BaseModel):
    """An issue as listed by the remote tracker."""

    title: str
    labels: List[str] = Field(default_factory=list)
    url: Optional[str] = None
    container_id: Optional[str] = None


class IssueDraft(BaseModel):
    """An issue the reconciler intends to create."""

    title: str
    body: str = ""
    labels: List[str] = Field(default_factory=list)
    container_title: Optional[str] = None
    container_id: Optional[str] = None
    priority: int = 4
    risk: str = "Low"

    def payload_labels(self) -> List[str]:
        """Labels to send: the matching labels plus priority and risk."""
        extra = [
            PRIORITY_LABEL_FORMAT.format(priority=self.priority),
            RISK_LABEL_FORMAT.format(risk=self.risk),
        ]
        return self.labels + [label for label in extra if label not in self.labels]


class SyncOutcome(str, Enum):
    CREATED = "created"
    SKIPPED_DUPLICATE = "skipped_duplicate"
    FAILED = "failed"
    PLANNED = "planned"


class ItemResult(BaseModel):
    """Outcome of one container or issue in a sync run."""

    kind: str  # "container" or "issue"
    title: str
    outcome: SyncOutcome
    url: Optional[str] = None
    error: Optional[str] = None
    retryable: bool = False


class SyncReport(BaseModel):
    """Summary of one reconcile run."""

    to_import: int = 0
    planned: int = 0
    skipped_duplicate: int = 0
    created: int = 0
    failed: int = 0
    containers_existing: int = 0
    containers_created: int = 0
    containers_failed: int = 0
    containers_planned: int = 0
    dry_run: bool = False
    results: List[ItemResult] = Field(default_factory=list)

    def record(self, result: ItemResult) -> None:
        self.results.append(result)
        if result.kind == "container":
            if result.outcome == SyncOutcome.CREATED:
                self.containers_created += 1
            elif result.outcome == SyncOutcome.FAILED:
                self.containers_failed += 1
            elif result.outcome == SyncOutcome.PLANNED:
                self.containers_planned += 1
            return
        if result.outcome == SyncOutcome.CREATED:
            self.created += 1
        elif result.outcome == SyncOutcome.SKIPPED_DUPLICATE:
            self.skipped_duplicate += 1
        elif result.outcome == SyncOutcome.FAILED:
            self.failed += 1
        elif result.outcome == SyncOutcome.PLANNED:
            self.planned += 1

    @property
    def has_failures(self) -> bool:
        return self.failed > 0 or self.containers_failed > 0

    def summary(self) -> str:
        if self.dry_run:
            return (
                f"Plan: {self.to_import} to import, {self.planned} new, "
                f"{self.skipped_duplicate} duplicate; containers: "
                f"{self.containers_existing} existing, {self.containers_planned} new"
            )
        return (
            f"Imported: {self.to_import} to import, {self.created} created, "
            f"{self.skipped_duplicate} skipped as duplicate, {self.failed} failed; "
            f"containers: {self.containers_existing} existing, "
            f"{self.containers_created} created, {self.containers_failed} failed"
        )
