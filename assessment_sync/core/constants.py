"""
Shared Constants

Centralized constants used across the application to ensure consistency.
"""

from typing import Dict, Tuple

# =============================================================================
# Content export format
# =============================================================================

# Header row of the recommendation table. Export variants append
# ",CompleteY/N,Note", so the header is matched by prefix.
HEADER_SIGNATURE = (
    "Category,Link-Text,Link,Priority,ReportingCategory,"
    "ReportingSubcategory,Weight,Context"
)
TABLE_TERMINATOR = "--,,"

# Line range (1-based, inclusive) holding the per-pillar summary scores
METADATA_SCORE_LINES: Tuple[int, int] = (3, 8)

KNOWN_PILLARS = [
    "Reliability",
    "Cost Optimization",
    "Operational Excellence",
    "Performance Efficiency",
    "Security",
]

# Default reporting category per assessment source
SENTINEL_CATEGORIES: Dict[str, str] = {
    "wellarchitected": "Uncategorized",
    "advisor": "Azure Advisor",
    "defender": "Defender for Cloud",
}

# =============================================================================
# Scoring
# =============================================================================

DEFAULT_MINIMUM_REPORT_LEVEL: int = 65
MAX_WEIGHT: int = 100

SCORE_LOW_THRESHOLD: float = 33  # below -> green
SCORE_HIGH_THRESHOLD: float = 67  # above -> red

SCORE_BUCKET_GREEN = "green"
SCORE_BUCKET_YELLOW = "yellow"
SCORE_BUCKET_RED = "red"

SCORE_BUCKET_COLORS: Dict[str, str] = {
    SCORE_BUCKET_GREEN: "00B050",
    SCORE_BUCKET_YELLOW: "FFC000",
    SCORE_BUCKET_RED: "C00000",
}


def classify_score_bucket(score: float) -> str:
    """
    Classify a category score into a presentation bucket.

    Exactly 33 and exactly 67 are neither below the low threshold nor above
    the high threshold and fall back to yellow.
    """
    if score < SCORE_LOW_THRESHOLD:
        return SCORE_BUCKET_GREEN
    if score > SCORE_HIGH_THRESHOLD:
        return SCORE_BUCKET_RED
    return SCORE_BUCKET_YELLOW


# (exclusive lower bound, upper bound, upper inclusive, priority, risk)
PRIORITY_RISK_BANDS = [
    (80, MAX_WEIGHT, True, 1, "High"),
    (60, 80, False, 2, "High"),
    (30, 60, True, 3, "Medium"),
]
DEFAULT_PRIORITY_RISK: Tuple[int, str] = (4, "Low")


def derive_priority_risk(weight: int) -> Tuple[int, str]:
    """
    Map a recommendation weight to a tracker priority (1 = highest) and risk.

    Lower bounds are strict. A weight of exactly 80 lies outside every band
    and takes the default (4, "Low").
    """
    for low, high, high_inclusive, priority, risk in PRIORITY_RISK_BANDS:
        below_high = weight <= high if high_inclusive else weight < high
        if weight > low and below_high:
            return priority, risk
    return DEFAULT_PRIORITY_RISK


# =============================================================================
# Tracker
# =============================================================================

DEFAULT_MAX_LABEL_LENGTH: int = 50
CONTAINER_TITLE_SEPARATOR = " - "

TRACKER_GITHUB = "github"
TRACKER_GITLAB = "gitlab"
SUPPORTED_TRACKERS = [TRACKER_GITHUB, TRACKER_GITLAB]

GITHUB_RATE_LIMIT_HEADER = "X-RateLimit-Remaining"
GITLAB_RATE_LIMIT_HEADER = "RateLimit-Remaining"

# Throttling responses that trigger the extended backoff
THROTTLE_STATUS_CODES = (403, 429)

# Labels carrying the derived priority and risk of a created issue
PRIORITY_LABEL_FORMAT = "Priority {priority}"
RISK_LABEL_FORMAT = "Risk: {risk}"
