"""
Clinic Score Calculator

Computes four 0-100 scores from a MetricSnapshot:

1. **Review Score** - rating on a linear curve (2.5 stars = 0, 5 stars = 100),
   shifted by +/-10 points per star of gap to the competitor average rating.
2. **Traffic Score** - piecewise-linear on monthly sessions (500 = 30,
   5000 = 100), minus a bounce-rate penalty above 40%.
3. **Engagement Score** - piecewise-linear on average session duration
   (60s = 30, 7min = 100).
4. **Overall Score** - unweighted mean of whichever of the above exist.

A score is None when its source data is absent. Each component is clamped
before it is adjusted or combined.
"""

import logging
from typing import List, Optional

from ..models import AnalyticsMetrics, CompetitorMetrics, MetricSnapshot, ReviewMetrics, Scores
from .helpers import (
    BOUNCE_PENALTY_FLOOR,
    BOUNCE_PENALTY_PER_POINT,
    COMPETITOR_POINTS_PER_STAR,
    ENGAGEMENT_FULL_SECONDS,
    ENGAGEMENT_KNEE_POINTS,
    ENGAGEMENT_KNEE_SECONDS,
    REVIEW_BASELINE_RATING,
    REVIEW_POINTS_PER_STAR,
    TRAFFIC_FULL_SESSIONS,
    TRAFFIC_KNEE_POINTS,
    TRAFFIC_KNEE_SESSIONS,
    clamp,
    mean,
    round_half_up,
)

logger = logging.getLogger(__name__)


def _piecewise(value: float, knee: float, full: float, knee_points: float) -> float:
    """Linear 0..knee_points below the knee, knee_points..100 from knee to full."""
    if value < knee:
        return value / knee * knee_points
    return knee_points + (value - knee) / (full - knee) * (100 - knee_points)


# ============================================================================
# COMPONENTS
# ============================================================================

def competitor_adjustment(review: ReviewMetrics, competitors: List[CompetitorMetrics]) -> float:
    """
    Points to add to the review score for the gap to the competitor average.

    Returns 0 when there are no competitors or their mean rating is 0.
    """
    mean_rating = mean(c.average_rating for c in competitors)
    if not mean_rating:
        return 0.0
    return (review.average_rating - mean_rating) * COMPETITOR_POINTS_PER_STAR


def bounce_rate_penalty(bounce_rate: Optional[float]) -> float:
    """Penalty subtracted from the traffic score; 0 at or below a 40% bounce rate."""
    if not bounce_rate:
        return 0.0
    return max(0.0, (bounce_rate - BOUNCE_PENALTY_FLOOR) * BOUNCE_PENALTY_PER_POINT)


def calculate_review_score(
    review: Optional[ReviewMetrics],
    competitors: List[CompetitorMetrics],
) -> Optional[int]:
    """
    Review score with competitor-relative adjustment.

    Examples (no competitors):
        4.5 stars -> 80
        4.0 stars -> 60
        2.5 stars -> 0
    """
    if review is None:
        return None

    base = clamp(round_half_up((review.average_rating - REVIEW_BASELINE_RATING) * REVIEW_POINTS_PER_STAR))
    adjusted = clamp(base + competitor_adjustment(review, competitors))
    return round_half_up(adjusted)


def calculate_traffic_score(analytics: Optional[AnalyticsMetrics]) -> Optional[int]:
    """
    Traffic score with bounce-rate penalty.

    Examples:
        500 sessions, 40% bounce -> 30
        5000 sessions, 80% bounce -> 100 - 20 = 80
    """
    if analytics is None:
        return None

    base = clamp(round_half_up(clamp(_piecewise(
        analytics.total_sessions,
        TRAFFIC_KNEE_SESSIONS,
        TRAFFIC_FULL_SESSIONS,
        TRAFFIC_KNEE_POINTS,
    ))))
    return round_half_up(clamp(base - bounce_rate_penalty(analytics.bounce_rate)))


def calculate_engagement_score(analytics: Optional[AnalyticsMetrics]) -> Optional[int]:
    """Engagement score from average session duration. Not penalized by bounce rate."""
    if analytics is None:
        return None

    return round_half_up(clamp(_piecewise(
        analytics.avg_session_duration,
        ENGAGEMENT_KNEE_SECONDS,
        ENGAGEMENT_FULL_SECONDS,
        ENGAGEMENT_KNEE_POINTS,
    )))


def calculate_overall_score(*scores: Optional[int]) -> Optional[int]:
    """Rounded mean of the non-null scores; None when all are null."""
    available = [s for s in scores if s is not None]
    if not available:
        return None
    return round_half_up(mean(available))


# ============================================================================
# SNAPSHOT SCORING
# ============================================================================

def compute_scores(snapshot: MetricSnapshot) -> Scores:
    """
    Compute all scores for a snapshot.

    Args:
        snapshot: Assembled clinic metrics

    Returns:
        Scores with None for every component whose source is absent
    """
    review_score = calculate_review_score(snapshot.review, list(snapshot.competitors))
    traffic_score = calculate_traffic_score(snapshot.analytics)
    engagement_score = calculate_engagement_score(snapshot.analytics)
    overall_score = calculate_overall_score(review_score, traffic_score, engagement_score)

    logger.debug(
        f"Scores for {snapshot.clinic.id}: review={review_score}, traffic={traffic_score}, "
        f"engagement={engagement_score}, overall={overall_score}"
    )

    return Scores(
        traffic_score=traffic_score,
        engagement_score=engagement_score,
        review_score=review_score,
        overall_score=overall_score,
    )
