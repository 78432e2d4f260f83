"""
Issue Detection Rules

Threshold rules evaluated against a MetricSnapshot. Rules run in a fixed
order and independently of each other; a rule whose input is missing is
skipped. The order of the returned list is part of the contract (reports
and tests rely on it).
"""

import logging
import math
from typing import Callable, List, Optional

from ..models import Issue, IssueType, MetricSnapshot, Severity
from .helpers import (
    COMPETITOR_REVIEW_RATIO,
    MAX_PAID_BOUNCE_RATE,
    MIN_LOCAL_TRAFFIC_RATE,
    MIN_MONTHLY_SESSIONS,
    MIN_REVIEW_COUNT,
    MIN_REVIEW_RATING,
    MIN_SESSION_DURATION,
    format_number,
    mean,
    round_half_up,
)

logger = logging.getLogger(__name__)

Rule = Callable[[MetricSnapshot], Optional[Issue]]


# ============================================================================
# RULES
# ============================================================================

def check_review_count(snapshot: MetricSnapshot) -> Optional[Issue]:
    review = snapshot.review
    if review is None or review.total_reviews >= MIN_REVIEW_COUNT:
        return None
    return Issue(
        type=IssueType.LOW_REVIEW_COUNT,
        severity=Severity.MEDIUM,
        message=f"口コミ数が{review.total_reviews}件と少ないため、比較検討時に不利になる可能性があります。",
    )


def check_review_rating(snapshot: MetricSnapshot) -> Optional[Issue]:
    review = snapshot.review
    if review is None or review.average_rating >= MIN_REVIEW_RATING:
        return None
    return Issue(
        type=IssueType.LOW_REVIEW_SCORE,
        severity=Severity.HIGH,
        message=f"口コミ評価が{review.average_rating:.1f}点と低めです。評価改善が必要です。",
    )


def check_traffic(snapshot: MetricSnapshot) -> Optional[Issue]:
    analytics = snapshot.analytics
    if analytics is None or analytics.total_sessions >= MIN_MONTHLY_SESSIONS:
        return None
    return Issue(
        type=IssueType.LOW_TRAFFIC,
        severity=Severity.HIGH,
        message=f"月間流入数が{analytics.total_sessions}件と少なめです。広告やSEO対策で集客強化が必要です。",
    )


def check_engagement(snapshot: MetricSnapshot) -> Optional[Issue]:
    analytics = snapshot.analytics
    if analytics is None or analytics.avg_session_duration >= MIN_SESSION_DURATION:
        return None
    seconds = int(math.floor(analytics.avg_session_duration))
    return Issue(
        type=IssueType.LOW_ENGAGEMENT,
        severity=Severity.MEDIUM,
        message=f"平均滞在時間が{seconds}秒と短いため、HPに魅力が少ない可能性があります。",
    )


def check_ad_efficiency(snapshot: MetricSnapshot) -> Optional[Issue]:
    analytics = snapshot.analytics
    if analytics is None or analytics.paid_bounce_rate is None:
        return None
    if analytics.paid_bounce_rate <= MAX_PAID_BOUNCE_RATE:
        return None
    return Issue(
        type=IssueType.AD_INEFFICIENCY,
        severity=Severity.HIGH,
        message=(
            f"広告経由の直帰率が{format_number(analytics.paid_bounce_rate)}%と高く、"
            f"広告がうまくいっていない可能性があります。"
        ),
    )


def check_competitor_review_gap(snapshot: MetricSnapshot) -> Optional[Issue]:
    review = snapshot.review
    if review is None or not snapshot.competitors:
        return None
    competitor_mean = mean(c.total_reviews for c in snapshot.competitors)
    if review.total_reviews >= competitor_mean * COMPETITOR_REVIEW_RATIO:
        return None
    return Issue(
        type=IssueType.COMPETITOR_REVIEW_GAP,
        severity=Severity.HIGH,
        message=f"口コミ数が競合平均（{round_half_up(competitor_mean)}件）より少ない状況です。",
    )


def check_local_traffic(snapshot: MetricSnapshot) -> Optional[Issue]:
    analytics = snapshot.analytics
    if analytics is None or analytics.local_traffic_rate is None:
        return None
    if analytics.local_traffic_rate >= MIN_LOCAL_TRAFFIC_RATE:
        return None
    return Issue(
        type=IssueType.LOW_LOCAL_TRAFFIC,
        severity=Severity.HIGH,
        message=(
            f"地域からの流入が{format_number(analytics.local_traffic_rate)}%と低く、"
            f"全国向けSEOに偏っている可能性があります。"
        ),
    )


# Evaluation order. New rules go at the end so existing positions hold.
RULES: List[Rule] = [
    check_review_count,
    check_review_rating,
    check_traffic,
    check_engagement,
    check_ad_efficiency,
    check_competitor_review_gap,
    check_local_traffic,
]


def evaluate_issues(snapshot: MetricSnapshot) -> List[Issue]:
    """
    Evaluate every rule against the snapshot.

    Args:
        snapshot: Assembled clinic metrics

    Returns:
        Issues in rule order; empty when no rule fires
    """
    issues = []
    for rule in RULES:
        issue = rule(snapshot)
        if issue is not None:
            issues.append(issue)

    logger.debug(f"Detected {len(issues)} issues for {snapshot.clinic.id}")
    return issues
