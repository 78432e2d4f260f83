"""
Test Suite: Score Calculator

Tests the four clinic scores:
- Review Score (with competitor adjustment)
- Traffic Score (with bounce-rate penalty)
- Engagement Score
- Overall Score
"""

import pytest

from dental_marketing.models import CompetitorMetrics, ReviewMetrics
from dental_marketing.scoring import (
    bounce_rate_penalty,
    calculate_engagement_score,
    calculate_overall_score,
    calculate_review_score,
    calculate_traffic_score,
    clamp,
    competitor_adjustment,
    compute_scores,
    format_duration,
    format_number,
    round_half_up,
)

from conftest import make_analytics, make_snapshot


def review(rating: float, total: int = 50) -> ReviewMetrics:
    return ReviewMetrics(average_rating=rating, total_reviews=total)


def competitor(rating: float, total: int = 50, name: str = "競合") -> CompetitorMetrics:
    return CompetitorMetrics(name=name, average_rating=rating, total_reviews=total)


class TestRounding:
    """Rounding is half away from zero, not banker's rounding."""

    @pytest.mark.parametrize("value,expected", [
        (52.5, 53),
        (47.5, 48),
        (0.5, 1),
        (2.4999, 2),
        (-2.5, -3),
        (53.333, 53),
    ])
    def test_round_half_up(self, value, expected):
        assert round_half_up(value) == expected

    def test_clamp_bounds(self):
        assert clamp(-5) == 0
        assert clamp(120) == 100
        assert clamp(42) == 42


class TestReviewScore:
    """Test Review Score calculation."""

    @pytest.mark.parametrize("rating,expected", [
        (4.5, 80),
        (4.0, 60),
        (2.5, 0),
        (5.0, 100),
        (1.0, 0),
        (0.0, 0),
    ])
    def test_rating_curve_without_competitors(self, rating, expected):
        assert calculate_review_score(review(rating), []) == expected

    def test_absent_review_is_none(self):
        assert calculate_review_score(None, [competitor(4.0)]) is None

    def test_above_competitor_average_adds_points(self):
        # base 60, competitors average 3.5 -> +5
        score = calculate_review_score(review(4.0), [competitor(3.0), competitor(4.0)])
        assert score == 65

    def test_below_competitor_average_subtracts_points(self):
        # base 60, competitor 4.5 -> -5
        assert calculate_review_score(review(4.0), [competitor(4.5)]) == 55

    def test_adjustment_is_reclamped(self):
        # base 100, +20 adjustment still caps at 100
        assert calculate_review_score(review(5.0), [competitor(3.0)]) == 100
        # base 0, -20 adjustment floors at 0
        assert calculate_review_score(review(2.5), [competitor(4.5)]) == 0

    def test_zero_competitor_mean_gives_no_adjustment(self):
        assert competitor_adjustment(review(4.0), [competitor(0.0)]) == 0.0
        assert competitor_adjustment(review(4.0), []) == 0.0


class TestTrafficScore:
    """Test Traffic Score calculation."""

    def test_knee_with_bounce_at_floor(self):
        """500 sessions at exactly 40% bounce has no penalty."""
        analytics = make_analytics(total_sessions=500, bounce_rate=40)
        assert calculate_traffic_score(analytics) == 30

    def test_full_sessions_with_high_bounce(self):
        """5000 sessions -> base 100, 80% bounce -> penalty 20."""
        analytics = make_analytics(total_sessions=5000, bounce_rate=80)
        assert calculate_traffic_score(analytics) == 80

    def test_below_knee_is_linear(self):
        analytics = make_analytics(total_sessions=250, bounce_rate=30)
        assert calculate_traffic_score(analytics) == 15

    def test_sessions_above_full_cap_at_100(self):
        analytics = make_analytics(total_sessions=20000, bounce_rate=20)
        assert calculate_traffic_score(analytics) == 100

    def test_penalty_applies_after_base_rounding(self):
        # base round(53.33) = 53, penalty (50 - 40) * 0.5 = 5
        analytics = make_analytics(total_sessions=2000, bounce_rate=50)
        assert calculate_traffic_score(analytics) == 48

    def test_penalty_never_negative(self):
        assert bounce_rate_penalty(10) == 0.0
        assert bounce_rate_penalty(40) == 0.0
        assert bounce_rate_penalty(70) == 15.0

    def test_penalty_cannot_push_below_zero(self):
        analytics = make_analytics(total_sessions=0, bounce_rate=100)
        assert calculate_traffic_score(analytics) == 0

    def test_absent_analytics_is_none(self):
        assert calculate_traffic_score(None) is None


class TestEngagementScore:
    """Test Engagement Score calculation."""

    @pytest.mark.parametrize("duration,expected", [
        (0, 0),
        (30, 15),
        (60, 30),
        (150, 48),
        (420, 100),
        (900, 100),
    ])
    def test_duration_curve(self, duration, expected):
        analytics = make_analytics(avg_session_duration=duration)
        assert calculate_engagement_score(analytics) == expected

    def test_not_penalized_by_bounce_rate(self):
        low = make_analytics(avg_session_duration=150, bounce_rate=10)
        high = make_analytics(avg_session_duration=150, bounce_rate=95)
        assert calculate_engagement_score(low) == calculate_engagement_score(high)


class TestOverallScore:
    """Test Overall Score calculation."""

    def test_mean_of_available_scores(self):
        assert calculate_overall_score(60, 48, 48) == 52

    def test_ignores_missing_scores(self):
        assert calculate_overall_score(None, 40, 61) == 51  # 50.5 rounds up

    def test_all_missing_is_none(self):
        assert calculate_overall_score(None, None, None) is None


class TestComputeScores:
    """Test snapshot-level scoring."""

    def test_empty_snapshot_has_no_scores(self):
        scores = compute_scores(make_snapshot())

        assert scores.review_score is None
        assert scores.traffic_score is None
        assert scores.engagement_score is None
        assert scores.overall_score is None

    def test_end_to_end_scenario(self, healthy_snapshot):
        """Rating 4.0, 2000 sessions, 150s, 50% bounce, no competitors."""
        scores = compute_scores(healthy_snapshot)

        assert scores.review_score == 60
        assert scores.traffic_score == 48
        assert scores.engagement_score == 48
        assert scores.overall_score == 52

    def test_review_only(self):
        scores = compute_scores(make_snapshot(review=review(4.5)))

        assert scores.review_score == 80
        assert scores.traffic_score is None
        assert scores.overall_score == 80

    def test_scores_serialize_camel_case(self, healthy_snapshot):
        data = compute_scores(healthy_snapshot).to_dict()
        assert data == {
            "trafficScore": 48,
            "engagementScore": 48,
            "reviewScore": 60,
            "overallScore": 52,
        }


class TestFormatting:
    """Number rendering used in messages and prompts."""

    def test_format_number(self):
        assert format_number(90.0) == "90"
        assert format_number(85.25) == "85.25"
        assert format_number(72.5) == "72.5"
        assert format_number(12) == "12"

    def test_format_duration(self):
        assert format_duration(95) == "1分35秒"
        assert format_duration(59.9) == "0分59秒"
