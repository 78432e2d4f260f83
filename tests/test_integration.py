"""
Integration Tests for the Analysis Run

Tests the full pipeline with an in-memory store and fake models:
- Scores and issues are always persisted
- Model failures, timeouts and unparseable replies degrade the AI output only
- Unknown clinics abort before anything is saved
"""

import asyncio
from datetime import datetime
from unittest.mock import patch

import pytest

from dental_marketing.analyzer import CallableModel, ClinicAnalyzer, one_month_before
from dental_marketing.collector import AnalyticsRecord
from dental_marketing.errors import ClinicNotFoundError, ModelCallError
from dental_marketing.models import AnalysisStatus, IssueType, ReviewMetrics

FIXED_NOW = datetime(2024, 3, 31, 9, 30)


def fixed_clock():
    return FIXED_NOW


def populate(store):
    store.reviews["clinic-1"] = ReviewMetrics(average_rating=4.0, total_reviews=50)
    store.analytics["clinic-1"] = AnalyticsRecord(
        total_sessions=2000,
        total_users=1500,
        avg_session_duration=150,
        bounce_rate=50,
    )


def reply_with(text):
    async def model(prompt: str) -> str:
        return text
    return CallableModel(model)


class TestAnalysisRun:
    """Happy path."""

    @pytest.mark.asyncio
    async def test_run_persists_scores_issues_and_ai(self, fake_store, scope, valid_ai_reply):
        populate(fake_store)
        analyzer = ClinicAnalyzer(fake_store, reply_with(valid_ai_reply), clock=fixed_clock)

        result = await analyzer.run(scope, "clinic-1")

        assert result.id == "analysis-1"
        assert fake_store.saved == [result]
        assert result.scores.review_score == 60
        assert result.scores.traffic_score == 48
        assert result.scores.engagement_score == 48
        assert result.scores.overall_score == 52
        assert result.issues == []
        assert result.status == AnalysisStatus.COMPLETED
        assert result.analyzed_by_id == "user-1"
        assert result.ai_analysis.current_analysis == "Web集客は平均的な水準です。"
        assert result.ai_analyzed_at == FIXED_NOW

    @pytest.mark.asyncio
    async def test_period_is_previous_month(self, fake_store, scope, valid_ai_reply):
        analyzer = ClinicAnalyzer(fake_store, reply_with(valid_ai_reply), clock=fixed_clock)
        result = await analyzer.run(scope, "clinic-1")

        assert result.analyzed_at == FIXED_NOW
        assert result.period_end == FIXED_NOW
        assert result.period_start == datetime(2024, 2, 29, 9, 30)

    @pytest.mark.asyncio
    async def test_prompt_includes_detected_issues(self, fake_store, scope):
        fake_store.reviews["clinic-1"] = ReviewMetrics(average_rating=3.0, total_reviews=10)
        prompts = []

        async def model(prompt: str) -> str:
            prompts.append(prompt)
            return "{}"

        result = await ClinicAnalyzer(fake_store, CallableModel(model)).run(scope, "clinic-1")

        assert [i.type for i in result.issues] == [IssueType.LOW_REVIEW_COUNT, IssueType.LOW_REVIEW_SCORE]
        assert len(prompts) == 1
        assert "口コミ数が10件と少ない" in prompts[0]

    @pytest.mark.asyncio
    async def test_serialized_result(self, fake_store, scope, valid_ai_reply):
        populate(fake_store)
        analyzer = ClinicAnalyzer(fake_store, reply_with(valid_ai_reply), clock=fixed_clock)

        data = (await analyzer.run(scope, "clinic-1")).to_dict()

        assert data["clinicId"] == "clinic-1"
        assert data["overallScore"] == 52
        assert data["analyzedAt"] == "2024-03-31T09:30:00"
        assert data["aiAnalysis"]["mainIssues"] == ["口コミ数が少ない", "広告の直帰率が高い"]
        assert data["status"] == "COMPLETED"


class TestModelFailures:
    """The model step never fails the run."""

    @pytest.mark.asyncio
    async def test_model_exception(self, fake_store, scope):
        populate(fake_store)

        async def failing(prompt: str) -> str:
            raise ModelCallError("OpenRouter API error: 503", status_code=503)

        result = await ClinicAnalyzer(fake_store, CallableModel(failing)).run(scope, "clinic-1")

        assert result.ai_analysis is None
        assert result.ai_analyzed_at is None
        assert result.scores.overall_score == 52
        assert result.status == AnalysisStatus.COMPLETED
        assert len(fake_store.saved) == 1

    @pytest.mark.asyncio
    async def test_unexpected_exception(self, fake_store, scope):
        async def broken(prompt: str) -> str:
            raise RuntimeError("boom")

        result = await ClinicAnalyzer(fake_store, CallableModel(broken)).run(scope, "clinic-1")
        assert result.ai_analysis is None

    @pytest.mark.asyncio
    async def test_model_timeout(self, fake_store, scope):
        populate(fake_store)

        async def slow(prompt: str) -> str:
            await asyncio.sleep(5)
            return "{}"

        analyzer = ClinicAnalyzer(fake_store, CallableModel(slow), ai_timeout=0.05)
        result = await analyzer.run(scope, "clinic-1")

        assert result.ai_analysis is None
        assert result.scores.review_score == 60
        assert len(fake_store.saved) == 1

    @pytest.mark.asyncio
    async def test_unparseable_reply_is_degraded(self, fake_store, scope):
        result = await ClinicAnalyzer(fake_store, reply_with("申し訳ありません")).run(scope, "clinic-1")

        assert result.ai_analysis.current_analysis == "申し訳ありません"
        assert result.ai_analysis.main_issues == []
        assert result.ai_analyzed_at is not None

    @pytest.mark.asyncio
    async def test_deeply_nested_reply_still_persists(self, fake_store, scope):
        populate(fake_store)
        raw = "[" * 100000 + "]" * 100000

        result = await ClinicAnalyzer(fake_store, reply_with(raw)).run(scope, "clinic-1")

        assert fake_store.saved == [result]
        assert result.ai_analysis.current_analysis == raw
        assert result.scores.overall_score == 52

    @pytest.mark.asyncio
    async def test_normalizer_failure_drops_ai_analysis(self, fake_store, scope, valid_ai_reply):
        populate(fake_store)
        analyzer = ClinicAnalyzer(fake_store, reply_with(valid_ai_reply))

        with patch("dental_marketing.analyzer.engine.normalize_ai_response", side_effect=RecursionError("too deep")):
            result = await analyzer.run(scope, "clinic-1")

        assert result.ai_analysis is None
        assert result.ai_analyzed_at is None
        assert result.status == AnalysisStatus.COMPLETED
        assert len(fake_store.saved) == 1


class TestNotFound:
    """Unknown clinics abort the run."""

    @pytest.mark.asyncio
    async def test_unknown_clinic(self, fake_store, scope, valid_ai_reply):
        calls = []

        async def model(prompt: str) -> str:
            calls.append(prompt)
            return valid_ai_reply

        with pytest.raises(ClinicNotFoundError):
            await ClinicAnalyzer(fake_store, CallableModel(model)).run(scope, "missing")

        assert calls == []
        assert fake_store.saved == []


class TestOneMonthBefore:
    """Period start calculation."""

    @pytest.mark.parametrize("moment,expected", [
        (datetime(2024, 5, 15), datetime(2024, 4, 15)),
        (datetime(2024, 1, 10), datetime(2023, 12, 10)),
        (datetime(2023, 3, 31), datetime(2023, 2, 28)),
        (datetime(2024, 7, 31, 12, 0), datetime(2024, 6, 30, 12, 0)),
    ])
    def test_one_month_before(self, moment, expected):
        assert one_month_before(moment) == expected
