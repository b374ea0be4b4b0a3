"""
Shared test fixtures and configuration.

Environment variables are set BEFORE any app imports so tests never pick up
a real tracker token or long rate-limit sleeps.
"""

import os
import sys

# Ensure the package is importable without installation
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Override settings before any app code imports the settings singleton
os.environ["TRACKER_TOKEN"] = ""
os.environ["TRACKER_PROJECT"] = ""
os.environ["MIN_REQUEST_INTERVAL_SECONDS"] = "0"
os.environ["RATE_LIMIT_COOLDOWN_SECONDS"] = "0"
os.environ["THROTTLE_BACKOFF_SECONDS"] = "0"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest  # noqa: E402

from tests.mocks.assessment import (  # noqa: E402
    SAMPLE_EXPORT_LINES,
    make_caption_table,
    make_recommendation,
)
from tests.mocks.trackers import FakeTracker  # noqa: E402


@pytest.fixture
def export_lines():
    """A small but complete assessment export, split into lines."""
    return list(SAMPLE_EXPORT_LINES)


@pytest.fixture
def export_file(tmp_path, export_lines):
    path = tmp_path / "content.csv"
    path.write_text("\n".join(export_lines) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def caption_table():
    return make_caption_table()


@pytest.fixture
def recommendations():
    """Normalized-looking recommendations across two categories."""
    return [
        make_recommendation("Enable zone redundancy", weight=90, reporting_category="Resiliency"),
        make_recommendation("Use availability sets", weight=70, reporting_category="Resiliency"),
        make_recommendation("Restrict public IPs", weight=40, category="Security", reporting_category="Networking"),
    ]


@pytest.fixture
def fake_tracker():
    """In-memory tracker with no existing state."""
    return FakeTracker()
