"""
Scoring Helper Functions and Constants

Industry benchmarks, rule thresholds, score curve constants and the small
numeric utilities shared by the score calculator, rule engine and prompt.
"""

import math
from enum import Enum
from typing import Dict, Iterable, Optional, Union

Number = Union[int, float]


# ============================================================================
# INDUSTRY BENCHMARKS (dental clinic reference values)
# ============================================================================

BENCHMARKS: Dict[str, Dict[str, float]] = {
    "sessions": {"poor": 500, "average": 1500, "good": 3000, "excellent": 5000},
    # Lower is better for bounce rate
    "bounce_rate": {"excellent": 30, "good": 45, "average": 55, "poor": 70},
    "avg_duration": {"poor": 60, "average": 120, "good": 180, "excellent": 300},
    "reviews": {"poor": 10, "average": 30, "good": 50, "excellent": 100},
    "rating": {"poor": 3.0, "average": 3.8, "good": 4.2, "excellent": 4.5},
}


class BenchmarkLevel(Enum):
    """Where a metric sits against the benchmarks."""
    NEEDS_IMPROVEMENT = "要改善"
    BELOW_AVERAGE = "平均以下"
    AVERAGE = "平均的"
    GOOD = "良好"

    @property
    def is_weak(self) -> bool:
        return self in (BenchmarkLevel.NEEDS_IMPROVEMENT, BenchmarkLevel.BELOW_AVERAGE)


def level_higher_is_better(value: Number, benchmark: Dict[str, float]) -> BenchmarkLevel:
    """Level for sessions, duration, review count and rating."""
    if value < benchmark["poor"]:
        return BenchmarkLevel.NEEDS_IMPROVEMENT
    if value < benchmark["average"]:
        return BenchmarkLevel.BELOW_AVERAGE
    if value < benchmark["good"]:
        return BenchmarkLevel.AVERAGE
    return BenchmarkLevel.GOOD


def level_lower_is_better(value: Number, benchmark: Dict[str, float]) -> BenchmarkLevel:
    """Level for bounce rate."""
    if value > benchmark["poor"]:
        return BenchmarkLevel.NEEDS_IMPROVEMENT
    if value > benchmark["average"]:
        return BenchmarkLevel.BELOW_AVERAGE
    if value > benchmark["good"]:
        return BenchmarkLevel.AVERAGE
    return BenchmarkLevel.GOOD


# ============================================================================
# RULE THRESHOLDS
# ============================================================================

MIN_REVIEW_COUNT = 30
MIN_REVIEW_RATING = 3.5
MIN_MONTHLY_SESSIONS = 500
MIN_SESSION_DURATION = 60       # seconds
MAX_PAID_BOUNCE_RATE = 70       # percent
COMPETITOR_REVIEW_RATIO = 0.7   # own reviews vs competitor mean
MIN_LOCAL_TRAFFIC_RATE = 30     # percent


# ============================================================================
# SCORE CURVES
# ============================================================================

# Review score: 2.5 stars = 0, each star above = 40 points
REVIEW_BASELINE_RATING = 2.5
REVIEW_POINTS_PER_STAR = 40
COMPETITOR_POINTS_PER_STAR = 10

# Traffic score: 500 sessions = 30 points, 5000 = 100 points
TRAFFIC_KNEE_SESSIONS = 500
TRAFFIC_FULL_SESSIONS = 5000
TRAFFIC_KNEE_POINTS = 30

# Engagement score: 60s = 30 points, 420s (7 min) = 100 points
ENGAGEMENT_KNEE_SECONDS = 60
ENGAGEMENT_FULL_SECONDS = 420
ENGAGEMENT_KNEE_POINTS = 30

# Bounce penalty: half a point per percent above 40%
BOUNCE_PENALTY_FLOOR = 40
BOUNCE_PENALTY_PER_POINT = 0.5


# ============================================================================
# NUMERIC UTILITIES
# ============================================================================

def clamp(value: Number, low: Number = 0, high: Number = 100) -> Number:
    """Clamp value into [low, high]."""
    return max(low, min(high, value))


def round_half_up(value: Number) -> int:
    """
    Round half away from zero.

    Python's round() uses banker's rounding (round(52.5) == 52); scores
    must round 52.5 to 53.
    """
    if value >= 0:
        return int(math.floor(value + 0.5))
    return -int(math.floor(-value + 0.5))


def mean(values: Iterable[Number]) -> Optional[float]:
    """Arithmetic mean, None for an empty input."""
    items = list(values)
    if not items:
        return None
    return sum(items) / len(items)


def format_number(value: Number) -> str:
    """
    Render a number the way it is displayed in messages.

    Whole floats drop their decimal part (90.0 -> "90"), others keep up to
    two decimals with trailing zeros removed (85.25 -> "85.25").
    """
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return f"{value:.2f}".rstrip("0").rstrip(".")
    return str(value)


def format_duration(seconds: Number) -> str:
    """Render seconds as 「X分Y秒」."""
    whole = int(math.floor(seconds))
    return f"{whole // 60}分{whole % 60}秒"
