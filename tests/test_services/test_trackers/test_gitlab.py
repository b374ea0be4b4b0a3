"""Tests for GitLabTracker against a mocked REST API."""

import json
from unittest.mock import patch

import pytest

from assessment_sync.core.http_utils import HTTPRequestError
from assessment_sync.models.tracker import IssueDraft
from assessment_sync.services.trackers import create_tracker
from assessment_sync.services.trackers.gitlab import GitLabTracker
from tests.mocks.trackers import json_response, make_client

SLEEP = "assessment_sync.core.http_utils.time.sleep"


def make_tracker(handler):
    return GitLabTracker("acme/infra", "glpat-token", client=make_client(handler))


class TestGitLabTrackerInit:
    def test_requires_project(self):
        with pytest.raises(ValueError):
            GitLabTracker("", "glpat-token")

    def test_requires_token(self):
        with pytest.raises(ValueError):
            GitLabTracker("acme/infra", "")

    def test_api_url(self):
        tracker = GitLabTracker("acme/infra", "glpat-token", url="https://gitlab.example.com/")
        assert tracker.api_url == "https://gitlab.example.com/api/v4"
        tracker.close()

    def test_factory(self):
        tracker = create_tracker("gitlab", "https://gitlab.com", "acme/infra", "glpat-token")
        assert isinstance(tracker, GitLabTracker)
        tracker.close()

    def test_factory_rejects_unknown(self):
        with pytest.raises(ValueError, match="Unsupported"):
            create_tracker("jira", "https://jira.example.com", "ACME", "token")


class TestGitLabLabels:
    def test_commas_replaced(self):
        tracker = make_tracker(lambda request: json_response(200, []))
        assert tracker.normalize_label("Identity, access") == "Identity  access"


class TestGitLabMilestones:
    def test_project_path_encoded(self):
        seen = []

        def handler(request):
            seen.append(request)
            return json_response(200, [{"title": "Networking", "id": 31, "web_url": "https://gl/m/31"}])

        with patch(SLEEP):
            containers = make_tracker(handler).list_containers()

        assert seen[0].url.raw_path.decode().startswith("/projects/acme%2Finfra/milestones")
        assert containers[0].remote_id == "31"

    def test_create_conflict_returns_existing(self):
        def handler(request):
            if request.method == "POST":
                return json_response(400, {"message": "Milestone title already exists"})
            return json_response(200, [{"title": "Identity", "id": 12}])

        with patch(SLEEP):
            container = make_tracker(handler).create_container("Identity")

        assert container.remote_id == "12"

    def test_create_conflict_without_match_propagates(self):
        def handler(request):
            if request.method == "POST":
                return json_response(409, {"message": "conflict"})
            return json_response(200, [])

        with patch(SLEEP):
            with pytest.raises(HTTPRequestError):
                make_tracker(handler).create_container("Identity")


class TestGitLabIssues:
    def test_list_opened_issues(self):
        def handler(request):
            assert request.url.params["state"] == "opened"
            return json_response(
                200,
                [{"title": "Restrict public IPs", "labels": ["WAF", "SE:06"], "milestone": {"id": 31}}],
            )

        with patch(SLEEP):
            issues = make_tracker(handler).list_open_issues()

        assert issues[0].labels == ["WAF", "SE:06"]
        assert issues[0].container_id == "31"

    def test_create_issue_payload(self):
        sent = {}

        def handler(request):
            sent.update(json.loads(request.content))
            return json_response(201, {"title": sent["title"], "labels": ["WAF", "SE:06"], "web_url": "https://gl/i/3"})

        draft = IssueDraft(
            title="Restrict public IPs", body="desc", labels=["WAF", "SE:06"], container_id="31", priority=3, risk="Medium"
        )
        with patch(SLEEP):
            issue = make_tracker(handler).create_issue(draft)

        assert sent == {
            "title": "Restrict public IPs",
            "description": "desc",
            "labels": "WAF,SE:06,Priority 3,Risk: Medium",
            "milestone_id": 31,
        }
        assert issue.labels == ["WAF", "SE:06"]
