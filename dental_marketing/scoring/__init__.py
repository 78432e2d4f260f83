"""
Scoring Module for Dental Marketing Analyzer

Two pure functions over a MetricSnapshot:

1. **compute_scores** - review, traffic, engagement and overall scores (0-100)
2. **evaluate_issues** - ordered list of threshold-rule issues

Example Usage:
    from dental_marketing.scoring import compute_scores, evaluate_issues

    scores = compute_scores(snapshot)
    print(f"Overall: {scores.overall_score}")

    for issue in evaluate_issues(snapshot):
        print(issue.severity.value, issue.message)
"""

from .helpers import (
    BENCHMARKS,
    BenchmarkLevel,
    clamp,
    format_duration,
    format_number,
    level_higher_is_better,
    level_lower_is_better,
    mean,
    round_half_up,
)
from .scores import (
    bounce_rate_penalty,
    calculate_engagement_score,
    calculate_overall_score,
    calculate_review_score,
    calculate_traffic_score,
    competitor_adjustment,
    compute_scores,
)
from .issues import RULES, evaluate_issues

__all__ = [
    # Helpers
    "BENCHMARKS",
    "BenchmarkLevel",
    "clamp",
    "format_duration",
    "format_number",
    "level_higher_is_better",
    "level_lower_is_better",
    "mean",
    "round_half_up",
    # Scores
    "bounce_rate_penalty",
    "calculate_engagement_score",
    "calculate_overall_score",
    "calculate_review_score",
    "calculate_traffic_score",
    "competitor_adjustment",
    "compute_scores",
    # Issues
    "RULES",
    "evaluate_issues",
]
