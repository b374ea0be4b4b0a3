import logging
from typing import Any, Dict, List, Optional

from assessment_sync.core.constants import GITHUB_RATE_LIMIT_HEADER
from assessment_sync.core.http_utils import HTTPRequestError, RateLimitedClient
from assessment_sync.models.tracker import IssueDraft, TrackerContainer, TrackerIssue
from assessment_sync.services.trackers.base import IssueTracker

logger = logging.getLogger(__name__)

_GITHUB_COM_API = "https://api.github.com"


def github_api_url(url: str) -> str:
    """
    Derive the REST API root from a GitHub URL.

    github.com -> https://api.github.com, GHES -> https://{host}/api/v3
    """
    url = (url or "").rstrip("/")
    if not url or "github.com" in url:
        return _GITHUB_COM_API
    if url.endswith("/api/v3"):
        return url
    return f"{url}/api/v3"


class GitHubTracker(IssueTracker):
    """
    GitHub repository as a tracker: milestones are containers and issues
    are linked to them through the ``milestone`` number.
    """

    name = "github"

    def __init__(
        self,
        repository: str,
        token: str,
        url: str = _GITHUB_COM_API,
        client: Optional[RateLimitedClient] = None,
        **client_kwargs,
    ):
        if "/" not in repository:
            raise ValueError(f"GitHub repository must be 'owner/repo', got '{repository}'")
        if not token:
            raise ValueError("No access token configured for GitHub")
        self.owner, self.repo = repository.split("/", 1)
        self.api_url = github_api_url(url)
        super().__init__(
            client
            or RateLimitedClient(
                "GitHub API",
                base_url=self.api_url,
                headers=self._get_auth_headers(token),
                rate_limit_header=GITHUB_RATE_LIMIT_HEADER,
                **client_kwargs,
            )
        )

    @staticmethod
    def _get_auth_headers(token: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    @property
    def project(self) -> str:
        return f"{self.owner}/{self.repo}"

    def _endpoint(self, suffix: str) -> str:
        return f"/repos/{self.owner}/{self.repo}/{suffix}"

    @staticmethod
    def _to_container(item: Dict[str, Any]) -> TrackerContainer:
        return TrackerContainer(
            title=item.get("title", ""),
            remote_id=str(item.get("number")),
            url=item.get("html_url"),
            description=item.get("description") or "",
        )

    def list_containers(self) -> List[TrackerContainer]:
        milestones = self.client.paginate(self._endpoint("milestones"), {"state": "all"})
        return [self._to_container(m) for m in milestones]

    def create_container(self, title: str, description: str = "") -> TrackerContainer:
        try:
            created = self.client.post_json(
                self._endpoint("milestones"),
                {"title": title, "description": description},
            )
        except HTTPRequestError as e:
            # 422 "already_exists" when a milestone with this title exists
            if e.status_code != 422:
                raise
            existing = self.find_container(title)
            if existing is None:
                raise
            logger.info(f"Milestone '{title}' already exists in {self.project}")
            return existing
        return self._to_container(created)

    def list_open_issues(self) -> List[TrackerIssue]:
        items = self.client.paginate(self._endpoint("issues"), {"state": "open"})
        issues = []
        for item in items:
            # The issues endpoint also returns pull requests
            if "pull_request" in item:
                continue
            milestone = item.get("milestone") or {}
            issues.append(
                TrackerIssue(
                    title=item.get("title", ""),
                    labels=[label["name"] if isinstance(label, dict) else str(label) for label in item.get("labels", [])],
                    url=item.get("html_url"),
                    container_id=str(milestone["number"]) if milestone.get("number") is not None else None,
                )
            )
        return issues

    def create_issue(self, draft: IssueDraft) -> TrackerIssue:
        payload: Dict[str, Any] = {
            "title": draft.title,
            "body": draft.body,
            "labels": draft.payload_labels(),
        }
        if draft.container_id:
            payload["milestone"] = int(draft.container_id)
        created = self.client.post_json(self._endpoint("issues"), payload)
        return TrackerIssue(
            title=created.get("title", draft.title),
            labels=[label["name"] if isinstance(label, dict) else str(label) for label in created.get("labels", [])],
            url=created.get("html_url"),
            container_id=draft.container_id,
        )
