"""
Tracker reconciliation.

Brings a remote tracker in line with a set of normalized recommendations:
one container per category grouping and one issue per recommendation,
without creating anything that already exists.

Reconciliation is not safe against concurrent runs: two runs against the
same tracker at the same time can both decide a container or issue is
missing and both create it.
"""

import logging
from typing import Dict, List, Optional, Set

from assessment_sync.core.constants import DEFAULT_MAX_LABEL_LENGTH, derive_priority_risk
from assessment_sync.core.http_utils import HTTPRequestError
from assessment_sync.core.metrics import sync_containers_total, sync_items_total
from assessment_sync.models.category import CategoryCaptionTable
from assessment_sync.models.recommendation import Recommendation
from assessment_sync.models.tracker import (
    IssueDraft,
    ItemResult,
    SyncOutcome,
    SyncReport,
    TrackerContainer,
    TrackerIssue,
)
from assessment_sync.services.aggregator import container_title, group_by_container
from assessment_sync.services.templates import get_container_description
from assessment_sync.services.trackers.base import IssueTracker

logger = logging.getLogger(__name__)


class TrackerStateError(Exception):
    """Existing containers or issues could not be listed; duplicates cannot be ruled out."""


def truncate_label(label: str, max_length: int = DEFAULT_MAX_LABEL_LENGTH) -> str:
    """Cut a label to at most ``max_length`` characters, without edge whitespace."""
    return (label or "").strip()[:max_length].rstrip()


class TrackerReconciler:
    """
    Usage:
        reconciler = TrackerReconciler(tracker, tag="WAF-2024")
        plan = reconciler.plan(recommendations)     # optional, no writes
        report = reconciler.sync(recommendations)
    """

    def __init__(
        self,
        tracker: IssueTracker,
        tag: str,
        by_pillar: bool = False,
        max_label_length: int = DEFAULT_MAX_LABEL_LENGTH,
        captions: Optional[CategoryCaptionTable] = None,
    ):
        self.tracker = tracker
        self.tag = tag
        self.by_pillar = by_pillar
        self.max_label_length = max_label_length
        self.captions = captions

        self._containers: Optional[Dict[str, TrackerContainer]] = None
        # issue title -> label sets of open issues with that title
        self._issues: Optional[Dict[str, List[Set[str]]]] = None

    # ── remote state ────────────────────────────────────────────────

    def _fetch_containers(self) -> Dict[str, TrackerContainer]:
        try:
            containers = self.tracker.list_containers()
        except (HTTPRequestError, ValueError) as e:
            raise TrackerStateError(f"Cannot list containers in {self.tracker.project}: {e}") from e
        logger.info(f"Found {len(containers)} existing containers in {self.tracker.project}")
        return {c.title: c for c in containers}

    def _fetch_issues(self) -> Dict[str, List[Set[str]]]:
        try:
            issues = self.tracker.list_open_issues()
        except (HTTPRequestError, ValueError) as e:
            raise TrackerStateError(f"Cannot list issues in {self.tracker.project}: {e}") from e
        logger.info(f"Found {len(issues)} open issues in {self.tracker.project}")
        index: Dict[str, List[Set[str]]] = {}
        for issue in issues:
            self._index_issue(index, issue)
        return index

    @staticmethod
    def _index_issue(index: Dict[str, List[Set[str]]], issue: TrackerIssue) -> None:
        index.setdefault(issue.title, []).append(set(issue.labels))

    def load_state(self) -> None:
        """Fetch existing containers and open issues. Raises TrackerStateError."""
        self._containers = self._fetch_containers()
        self._issues = self._fetch_issues()

    # ── pure helpers ────────────────────────────────────────────────

    def label(self, value: str) -> str:
        return self.tracker.normalize_label(truncate_label(value, self.max_label_length))

    def build_labels(self, rec: Recommendation) -> List[str]:
        """Tag, pillar, reporting category and subcategory, each truncated."""
        labels: List[str] = []
        for value in (self.tag, rec.category, rec.reporting_category, rec.reporting_subcategory):
            label = self.label(value)
            if label and label not in labels:
                labels.append(label)
        return labels

    def category_label(self, rec: Recommendation) -> str:
        return self.label(rec.reporting_category)

    def is_duplicate(self, rec: Recommendation, index: Dict[str, List[Set[str]]]) -> bool:
        """Same title AND the category label present; the title alone is not enough."""
        category = self.category_label(rec)
        return any(category in labels for labels in index.get(rec.link_text, []))

    def required_containers(self, recommendations: List[Recommendation]) -> List[str]:
        return list(group_by_container(recommendations, self.by_pillar))

    def _container_description(self, title: str, rec: Recommendation) -> str:
        caption_description = ""
        if self.captions is not None:
            entry = self.captions.lookup(rec.category, rec.reporting_category)
            if entry:
                caption_description = entry.description
        return get_container_description(title, self.tag, caption_description)

    def build_draft(self, rec: Recommendation) -> IssueDraft:
        priority, risk = derive_priority_risk(rec.weight)
        title = container_title(rec, self.by_pillar)
        container = (self._containers or {}).get(title)
        return IssueDraft(
            title=rec.link_text,
            body=rec.description,
            labels=self.build_labels(rec),
            container_title=title,
            container_id=container.remote_id if container else None,
            priority=priority,
            risk=risk,
        )

    # ── run ─────────────────────────────────────────────────────────

    def _record(self, report: SyncReport, result: ItemResult) -> None:
        report.record(result)
        if result.kind == "container":
            sync_containers_total.labels(outcome=result.outcome.value).inc()
        else:
            sync_items_total.labels(outcome=result.outcome.value).inc()

    def plan(self, recommendations: List[Recommendation]) -> SyncReport:
        """Decide what ``sync`` would create, without writing anything."""
        if self._containers is None or self._issues is None:
            self.load_state()
        containers = self._containers or {}

        report = SyncReport(
            dry_run=True,
            to_import=len(recommendations),
            containers_existing=len(containers),
        )
        for title in self.required_containers(recommendations):
            if title not in containers:
                report.record(ItemResult(kind="container", title=title, outcome=SyncOutcome.PLANNED))

        index = {title: list(label_sets) for title, label_sets in (self._issues or {}).items()}
        for rec in recommendations:
            if self.is_duplicate(rec, index):
                report.record(ItemResult(kind="issue", title=rec.link_text, outcome=SyncOutcome.SKIPPED_DUPLICATE))
                continue
            draft = self.build_draft(rec)
            report.record(ItemResult(kind="issue", title=draft.title, outcome=SyncOutcome.PLANNED))
            index.setdefault(rec.link_text, []).append(set(draft.labels))
        return report

    def _create_containers(self, recommendations: List[Recommendation], report: SyncReport) -> None:
        containers = self._containers
        for title, members in group_by_container(recommendations, self.by_pillar).items():
            if title in containers:
                continue
            try:
                container = self.tracker.create_container(title, self._container_description(title, members[0]))
            except (HTTPRequestError, ValueError) as e:
                logger.error(f"Failed to create container '{title}': {e}")
                self._record(
                    report,
                    ItemResult(
                        kind="container",
                        title=title,
                        outcome=SyncOutcome.FAILED,
                        error=str(e),
                        retryable=getattr(e, "retryable", False),
                    ),
                )
                continue
            containers[title] = container
            logger.info(f"Created container '{title}' ({container.url})")
            self._record(
                report,
                ItemResult(kind="container", title=title, outcome=SyncOutcome.CREATED, url=container.url),
            )

    def _create_issue(self, rec: Recommendation, report: SyncReport) -> None:
        draft = self.build_draft(rec)
        if draft.container_id is None:
            logger.warning(f"No container '{draft.container_title}' for '{draft.title}', creating it unlinked")
        try:
            issue = self.tracker.create_issue(draft)
        except (HTTPRequestError, ValueError) as e:
            logger.error(f"Failed to create issue '{draft.title}': {e}")
            self._record(
                report,
                ItemResult(
                    kind="issue",
                    title=draft.title,
                    outcome=SyncOutcome.FAILED,
                    error=str(e),
                    retryable=getattr(e, "retryable", False),
                ),
            )
            return
        # Labels as sent, so a repeated row in the same export is caught
        self._index_issue(self._issues, issue.model_copy(update={"labels": draft.labels}))
        logger.info(f"Created issue '{draft.title}' (priority {draft.priority}, risk {draft.risk})")
        self._record(
            report,
            ItemResult(kind="issue", title=draft.title, outcome=SyncOutcome.CREATED, url=issue.url),
        )

    def sync(self, recommendations: List[Recommendation]) -> SyncReport:
        """
        Create missing containers and issues.

        Existing containers and open issues are listed in full before the
        first write. Raises TrackerStateError if either cannot be listed.
        Failed creates are recorded in the report and do not stop the run.
        """
        if self._containers is None or self._issues is None:
            self.load_state()

        report = SyncReport(to_import=len(recommendations), containers_existing=len(self._containers))
        self._create_containers(recommendations, report)

        for rec in recommendations:
            if self.is_duplicate(rec, self._issues):
                logger.info(f"Skipping '{rec.link_text}' ({rec.reporting_category}): already in {self.tracker.project}")
                self._record(
                    report,
                    ItemResult(kind="issue", title=rec.link_text, outcome=SyncOutcome.SKIPPED_DUPLICATE),
                )
                continue
            self._create_issue(rec, report)

        logger.info(report.summary())
        return report
