import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from assessment_sync.core.constants import GITLAB_RATE_LIMIT_HEADER
from assessment_sync.core.http_utils import HTTPRequestError, RateLimitedClient
from assessment_sync.models.tracker import IssueDraft, TrackerContainer, TrackerIssue
from assessment_sync.services.trackers.base import IssueTracker

logger = logging.getLogger(__name__)


class GitLabTracker(IssueTracker):
    """
    GitLab project as a tracker: project milestones are containers and
    issues are linked to them through ``milestone_id``.
    """

    name = "gitlab"

    def __init__(
        self,
        project: str,
        token: str,
        url: str = "https://gitlab.com",
        client: Optional[RateLimitedClient] = None,
        **client_kwargs,
    ):
        if not project:
            raise ValueError("GitLab project path or id is required")
        if not token:
            raise ValueError("No access token configured for GitLab")
        self.project_path = project
        self.base_url = url.rstrip("/")
        self.api_url = f"{self.base_url}/api/v4"
        super().__init__(
            client
            or RateLimitedClient(
                "GitLab API",
                base_url=self.api_url,
                headers={"PRIVATE-TOKEN": token},
                rate_limit_header=GITLAB_RATE_LIMIT_HEADER,
                **client_kwargs,
            )
        )

    @property
    def project(self) -> str:
        return self.project_path

    def normalize_label(self, label: str) -> str:
        return label.replace(",", " ").strip()

    def _endpoint(self, suffix: str) -> str:
        return f"/projects/{quote(self.project_path, safe='')}/{suffix}"

    @staticmethod
    def _to_container(item: Dict[str, Any]) -> TrackerContainer:
        return TrackerContainer(
            title=item.get("title", ""),
            remote_id=str(item.get("id")),
            url=item.get("web_url"),
            description=item.get("description") or "",
        )

    def list_containers(self) -> List[TrackerContainer]:
        milestones = self.client.paginate(self._endpoint("milestones"))
        return [self._to_container(m) for m in milestones]

    def create_container(self, title: str, description: str = "") -> TrackerContainer:
        try:
            created = self.client.post_json(
                self._endpoint("milestones"),
                {"title": title, "description": description},
            )
        except HTTPRequestError as e:
            # 400/409 when the milestone title is already taken
            if e.status_code not in (400, 409):
                raise
            existing = self.find_container(title)
            if existing is None:
                raise
            logger.info(f"Milestone '{title}' already exists in {self.project}")
            return existing
        return self._to_container(created)

    def list_open_issues(self) -> List[TrackerIssue]:
        items = self.client.paginate(self._endpoint("issues"), {"state": "opened"})
        issues = []
        for item in items:
            milestone = item.get("milestone") or {}
            issues.append(
                TrackerIssue(
                    title=item.get("title", ""),
                    labels=list(item.get("labels", [])),
                    url=item.get("web_url"),
                    container_id=str(milestone["id"]) if milestone.get("id") is not None else None,
                )
            )
        return issues

    def create_issue(self, draft: IssueDraft) -> TrackerIssue:
        payload: Dict[str, Any] = {
            "title": draft.title,
            "description": draft.body,
            # GitLab takes labels as one comma-separated string
            "labels": ",".join(draft.payload_labels()),
        }
        if draft.container_id:
            payload["milestone_id"] = int(draft.container_id)
        created = self.client.post_json(self._endpoint("issues"), payload)
        return TrackerIssue(
            title=created.get("title", draft.title),
            labels=list(created.get("labels", draft.payload_labels())),
            url=created.get("web_url"),
            container_id=draft.container_id,
        )
