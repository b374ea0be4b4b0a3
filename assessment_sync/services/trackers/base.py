from abc import ABC, abstractmethod
from typing import List, Optional

from assessment_sync.core.http_utils import RateLimitedClient
from assessment_sync.models.tracker import IssueDraft, TrackerContainer, TrackerIssue


class IssueTracker(ABC):
    """
    A remote tracker holding containers (milestones/epics) and issues.

    Implementations make their calls through a RateLimitedClient and let
    HTTPRequestError propagate; the reconciler decides whether a failure
    skips one item or aborts the run.
    """

    name: str = "tracker"

    def __init__(self, client: RateLimitedClient):
        self.client = client

    @property
    @abstractmethod
    def project(self) -> str:
        """Human-readable identifier of the target project/repository."""

    @abstractmethod
    def list_containers(self) -> List[TrackerContainer]:
        """All containers of the project, following pagination."""

    @abstractmethod
    def create_container(self, title: str, description: str = "") -> TrackerContainer:
        """Create a container; returns the existing one if the title is taken."""

    @abstractmethod
    def list_open_issues(self) -> List[TrackerIssue]:
        """All open issues of the project, following pagination."""

    @abstractmethod
    def create_issue(self, draft: IssueDraft) -> TrackerIssue:
        """Create one issue linked to ``draft.container_id``."""

    def normalize_label(self, label: str) -> str:
        """Adjust a label to what the tracker stores; identity by default."""
        return label

    def find_container(self, title: str) -> Optional[TrackerContainer]:
        for container in self.list_containers():
            if container.title == title:
                return container
        return None

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "IssueTracker":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
