"""Tests for TrackerReconciler: idempotence, duplicate detection and partial failures.

Uses the in-memory FakeTracker so every decision can be asserted on the
tracker's state rather than on HTTP calls.
"""

from unittest.mock import patch

import pytest

from assessment_sync.models.tracker import SyncOutcome, TrackerContainer, TrackerIssue
from assessment_sync.services.reconciler import (
    TrackerReconciler,
    TrackerStateError,
    truncate_label,
)
from assessment_sync.services.trackers.github import GitHubTracker
from tests.mocks.assessment import make_recommendation
from tests.mocks.trackers import FakeTracker, json_response, make_client


class TestTruncateLabel:
    def test_long_label_cut_to_exact_limit(self):
        label = "x" * 80
        assert len(truncate_label(label, 50)) == 50

    def test_short_label_unchanged(self):
        assert truncate_label("Security", 50) == "Security"

    def test_label_at_limit_unchanged(self):
        label = "y" * 50
        assert truncate_label(label, 50) == label

    def test_whitespace_stripped(self):
        assert truncate_label("  Security ", 50) == "Security"

    def test_cut_on_space_leaves_no_trailing_blank(self):
        label = "a" * 49 + " tail"
        assert truncate_label(label, 50) == "a" * 49


class TestBuildLabels:
    def test_tag_pillar_category_subcategory(self):
        reconciler = TrackerReconciler(FakeTracker(), tag="WAF-2024")
        rec = make_recommendation(category="Security", reporting_category="SE:06", reporting_subcategory="Firewalls")
        assert reconciler.build_labels(rec) == ["WAF-2024", "Security", "SE:06", "Firewalls"]

    def test_empty_and_repeated_values_skipped(self):
        reconciler = TrackerReconciler(FakeTracker(), tag="Security")
        rec = make_recommendation(category="Security", reporting_category="SE:06", reporting_subcategory="")
        assert reconciler.build_labels(rec) == ["Security", "SE:06"]

    def test_labels_truncated(self):
        reconciler = TrackerReconciler(FakeTracker(), tag="WAF", max_label_length=50)
        rec = make_recommendation(reporting_category="C" * 70)
        labels = reconciler.build_labels(rec)
        assert "C" * 50 in labels
        assert all(len(label) <= 50 for label in labels)


class TestBuildDraft:
    def test_priority_and_risk_from_weight(self):
        reconciler = TrackerReconciler(FakeTracker(), tag="WAF")
        draft = reconciler.build_draft(make_recommendation(weight=85))
        assert (draft.priority, draft.risk) == (1, "High")

    def test_links_existing_container(self):
        tracker = FakeTracker(containers=[TrackerContainer(title="RE:05", remote_id="7")])
        reconciler = TrackerReconciler(tracker, tag="WAF")
        reconciler.load_state()
        draft = reconciler.build_draft(make_recommendation(reporting_category="RE:05"))
        assert draft.container_id == "7"
        assert draft.container_title == "RE:05"


class TestDuplicateDetection:
    def test_same_title_and_category_is_duplicate(self):
        existing = TrackerIssue(title="Enable zone redundancy", labels=["WAF", "RE:05"])
        tracker = FakeTracker(issues=[existing])
        reconciler = TrackerReconciler(tracker, tag="WAF")

        report = reconciler.sync([make_recommendation("Enable zone redundancy", reporting_category="RE:05")])

        assert report.skipped_duplicate == 1
        assert report.created == 0
        assert tracker.created_issues == []

    def test_same_title_other_category_is_not_duplicate(self):
        existing = TrackerIssue(title="Enable zone redundancy", labels=["WAF", "RE:04"])
        tracker = FakeTracker(issues=[existing])
        reconciler = TrackerReconciler(tracker, tag="WAF")

        report = reconciler.sync([make_recommendation("Enable zone redundancy", reporting_category="RE:05")])

        assert report.created == 1
        assert report.skipped_duplicate == 0

    def test_truncated_category_label_matches(self):
        long_category = "Operational Excellence: Deployment and testing practices"
        existing = TrackerIssue(title="Use blue-green deployments", labels=[long_category[:50]])
        reconciler = TrackerReconciler(FakeTracker(issues=[existing]), tag="WAF", max_label_length=50)

        report = reconciler.sync([make_recommendation("Use blue-green deployments", reporting_category=long_category)])

        assert report.skipped_duplicate == 1

    def test_repeated_row_in_same_export_created_once(self):
        tracker = FakeTracker()
        reconciler = TrackerReconciler(tracker, tag="WAF")
        recs = [make_recommendation("Enable zone redundancy"), make_recommendation("Enable zone redundancy")]

        report = reconciler.sync(recs)

        assert report.created == 1
        assert report.skipped_duplicate == 1


class TestSync:
    def test_creates_containers_then_issues(self, recommendations):
        tracker = FakeTracker()
        report = TrackerReconciler(tracker, tag="WAF").sync(recommendations)

        assert tracker.created_containers == ["Resiliency", "Networking"]
        assert report.containers_created == 2
        assert report.created == 3
        assert all(draft.container_id is not None for draft in tracker.created_issues)

    def test_existing_container_reused(self, recommendations):
        tracker = FakeTracker(containers=[TrackerContainer(title="Resiliency", remote_id="42")])
        report = TrackerReconciler(tracker, tag="WAF").sync(recommendations)

        assert tracker.created_containers == ["Networking"]
        assert report.containers_existing == 1
        assert tracker.created_issues[0].container_id == "42"

    def test_by_pillar_container_titles(self, recommendations):
        tracker = FakeTracker()
        TrackerReconciler(tracker, tag="WAF", by_pillar=True).sync(recommendations)
        assert tracker.created_containers == ["Reliability - Resiliency", "Security - Networking"]

    def test_second_run_creates_nothing(self, recommendations):
        tracker = FakeTracker()
        TrackerReconciler(tracker, tag="WAF").sync(recommendations)
        issues_after_first = len(tracker.issues)
        containers_after_first = len(tracker.containers)

        second = TrackerReconciler(tracker, tag="WAF").sync(recommendations)

        assert second.created == 0
        assert second.containers_created == 0
        assert second.skipped_duplicate == len(recommendations)
        assert len(tracker.issues) == issues_after_first
        assert len(tracker.containers) == containers_after_first

    def test_failed_issue_does_not_stop_run(self, recommendations):
        tracker = FakeTracker(fail_issue_titles={"Use availability sets"})
        report = TrackerReconciler(tracker, tag="WAF").sync(recommendations)

        assert report.created == 2
        assert report.failed == 1
        assert report.has_failures
        failed = [r for r in report.results if r.outcome == SyncOutcome.FAILED]
        assert failed[0].title == "Use availability sets"
        assert "502" in failed[0].error

    def test_failed_issue_not_indexed(self):
        tracker = FakeTracker(fail_issue_titles={"Flaky"})
        reconciler = TrackerReconciler(tracker, tag="WAF")
        report = reconciler.sync([make_recommendation("Flaky")])
        assert report.failed == 1
        assert reconciler.is_duplicate(make_recommendation("Flaky"), reconciler._issues) is False

    def test_failed_container_creates_issue_unlinked(self, recommendations):
        tracker = FakeTracker(fail_container_titles={"Networking"})
        report = TrackerReconciler(tracker, tag="WAF").sync(recommendations)

        assert report.containers_failed == 1
        assert report.created == 3
        unlinked = [d for d in tracker.created_issues if d.title == "Restrict public IPs"]
        assert unlinked[0].container_id is None

    def test_listing_failure_is_fatal(self, recommendations):
        tracker = FakeTracker(fail_listing=True)
        with pytest.raises(TrackerStateError):
            TrackerReconciler(tracker, tag="WAF").sync(recommendations)
        assert tracker.created_issues == []
        assert tracker.created_containers == []

    def test_container_description_uses_caption(self, caption_table):
        tracker = FakeTracker()
        rec = make_recommendation(category="Reliability", reporting_category="RE:05")
        rec.category_caption = "Redundancy"
        TrackerReconciler(tracker, tag="WAF", captions=caption_table).sync([rec])
        assert tracker.containers[0].title == "Redundancy"
        assert "Build redundancy into every tier." in tracker.containers[0].description
        assert "WAF" in tracker.containers[0].description


class TestPlan:
    def test_plan_writes_nothing(self, recommendations):
        tracker = FakeTracker()
        plan = TrackerReconciler(tracker, tag="WAF").plan(recommendations)

        assert plan.dry_run
        assert plan.planned == 3
        assert plan.containers_planned == 2
        assert tracker.created_issues == []
        assert tracker.created_containers == []

    def test_plan_matches_sync(self, recommendations):
        existing = TrackerIssue(title="Enable zone redundancy", labels=["Resiliency"])
        tracker = FakeTracker(issues=[existing])
        reconciler = TrackerReconciler(tracker, tag="WAF")

        plan = reconciler.plan(recommendations)
        report = reconciler.sync(recommendations)

        assert plan.planned == report.created == 2
        assert plan.skipped_duplicate == report.skipped_duplicate == 1

    def test_plan_does_not_mutate_index(self, recommendations):
        reconciler = TrackerReconciler(FakeTracker(), tag="WAF")
        reconciler.plan(recommendations)
        assert reconciler._issues == {}


class TestIncompleteListing:
    """A listing cut off by the page cap must abort the run, not look complete."""

    @staticmethod
    def make_tracker(posts):
        pages = {
            "1": [{"title": "Unrelated", "labels": [{"name": "SE:06"}]}],
            "2": [{"title": "Also unrelated", "labels": [{"name": "SE:06"}]}],
            "3": [{"title": "Enable zone redundancy", "labels": [{"name": "RE:05"}]}],
        }

        def handler(request):
            if request.method == "POST":
                posts.append(request.url.path)
                return json_response(201, {"title": "x", "number": 1})
            if request.url.path.endswith("/milestones"):
                return json_response(200, [])
            page = request.url.params.get("page", "1")
            headers = {}
            if page != "3":
                next_url = f"https://api.example.com/repos/acme/infra/issues?page={int(page) + 1}"
                headers["Link"] = f'<{next_url}>; rel="next"'
            return json_response(200, pages[page], headers=headers)

        return GitHubTracker("acme/infra", "ghp_token", client=make_client(handler, max_pages=2))

    def test_capped_issue_listing_aborts_before_any_create(self):
        posts = []
        reconciler = TrackerReconciler(self.make_tracker(posts), tag="WAF")

        with patch("assessment_sync.core.http_utils.time.sleep"):
            with pytest.raises(TrackerStateError):
                reconciler.sync([make_recommendation("Enable zone redundancy", reporting_category="RE:05")])

        assert posts == []

    def test_capped_issue_listing_aborts_plan(self):
        posts = []
        reconciler = TrackerReconciler(self.make_tracker(posts), tag="WAF")

        with patch("assessment_sync.core.http_utils.time.sleep"):
            with pytest.raises(TrackerStateError):
                reconciler.plan([make_recommendation("Enable zone redundancy", reporting_category="RE:05")])


class TestPriorityRiskLabels:
    def test_created_issue_carries_priority_and_risk(self):
        tracker = FakeTracker()
        TrackerReconciler(tracker, tag="WAF").sync([make_recommendation(weight=85, reporting_category="RE:05")])

        labels = tracker.issues[0].labels
        assert "Priority 1" in labels
        assert "Risk: High" in labels

    def test_extra_labels_do_not_affect_duplicate_check(self):
        existing = TrackerIssue(title="Enable zone redundancy", labels=["Priority 1", "Risk: High"])
        tracker = FakeTracker(issues=[existing])

        report = TrackerReconciler(tracker, tag="WAF").sync(
            [make_recommendation("Enable zone redundancy", weight=85, reporting_category="RE:05")]
        )

        assert report.created == 1
        assert report.skipped_duplicate == 0

    def test_second_run_with_priority_labels_creates_nothing(self, recommendations):
        tracker = FakeTracker()
        TrackerReconciler(tracker, tag="WAF").sync(recommendations)

        second = TrackerReconciler(tracker, tag="WAF").sync(recommendations)

        assert second.created == 0
        assert second.skipped_duplicate == len(recommendations)
