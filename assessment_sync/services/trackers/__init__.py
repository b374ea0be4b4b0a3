from assessment_sync.core.constants import TRACKER_GITHUB, TRACKER_GITLAB
from .base import IssueTracker
from .github import GitHubTracker
from .gitlab import GitLabTracker

__all__ = ["IssueTracker", "GitHubTracker", "GitLabTracker", "create_tracker"]


def create_tracker(kind: str, url: str, project: str, token: str, **client_kwargs) -> IssueTracker:
    """Build the tracker client for ``kind`` ("github" or "gitlab")."""
    kind = (kind or "").lower()
    if kind == TRACKER_GITHUB:
        return GitHubTracker(project, token, url=url, **client_kwargs)
    if kind == TRACKER_GITLAB:
        return GitLabTracker(project, token, url=url, **client_kwargs)
    raise ValueError(f"Unsupported tracker type: {kind}")
