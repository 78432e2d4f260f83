"""
Pytest Configuration and Shared Fixtures

Provides snapshot builders, an in-memory MetricStore and a SQLite-backed
store for the test modules.
"""

import json
from typing import Dict, List, Optional

import pytest

from dental_marketing.collector.store import AnalyticsRecord, CompetitorRecord
from dental_marketing.database import (
    SqlMetricStore,
    create_db_engine,
    create_session_factory,
    init_db,
)
from dental_marketing.models import (
    ActiveMeasure,
    AnalysisResult,
    AnalyticsMetrics,
    ClinicProfile,
    CompetitorMetrics,
    MetricSnapshot,
    PatientMetrics,
    ReviewMetrics,
    TenantScope,
)


# ============================================================================
# Snapshot Builders
# ============================================================================

def make_clinic(**overrides) -> ClinicProfile:
    values = dict(
        id="clinic-1",
        name="さくら歯科クリニック",
        prefecture="東京都",
        city="世田谷区",
        specialties=("一般歯科", "小児歯科"),
    )
    values.update(overrides)
    return ClinicProfile(**values)


def make_analytics(**overrides) -> AnalyticsMetrics:
    values = dict(
        total_sessions=2000,
        total_users=1500,
        avg_session_duration=150,
        bounce_rate=50,
    )
    values.update(overrides)
    return AnalyticsMetrics(**values)


def make_snapshot(
    review: Optional[ReviewMetrics] = None,
    analytics: Optional[AnalyticsMetrics] = None,
    competitors: List[CompetitorMetrics] = (),
    patient_data: Optional[PatientMetrics] = None,
    active_measures: List[ActiveMeasure] = (),
    clinic: Optional[ClinicProfile] = None,
) -> MetricSnapshot:
    return MetricSnapshot(
        clinic=clinic or make_clinic(),
        review=review,
        analytics=analytics,
        competitors=tuple(competitors),
        patient_data=patient_data,
        active_measures=tuple(active_measures),
    )


@pytest.fixture
def scope() -> TenantScope:
    return TenantScope(organization_id="org-1", user_id="user-1")


@pytest.fixture
def healthy_snapshot() -> MetricSnapshot:
    """Snapshot that triggers no rule."""
    return make_snapshot(
        review=ReviewMetrics(average_rating=4.0, total_reviews=50),
        analytics=make_analytics(),
    )


@pytest.fixture
def valid_ai_reply() -> str:
    return json.dumps({
        "currentAnalysis": "Web集客は平均的な水準です。",
        "mainIssues": ["口コミ数が少ない", "広告の直帰率が高い"],
        "webAnalysis": "流入数は平均的です。",
        "recommendations": ["口コミ依頼カードを配布する"],
        "proposedServices": [
            {
                "name": "MEO対策（Googleビジネスプロフィール最適化）",
                "description": "プロフィールの充実と投稿の定期化",
                "priority": "HIGH",
                "estimatedCost": "月額3万円〜5万円",
                "expectedEffect": "口コミ+5件/月",
                "reason": "口コミ数が業界平均を下回るため",
            }
        ],
        "expectedEffects": "3ヶ月後に新規患者+10人/月を見込みます。",
    }, ensure_ascii=False)


# ============================================================================
# In-memory Store
# ============================================================================

class FakeStore:
    """MetricStore holding one organization's data in dicts."""

    def __init__(self, organization_id: str = "org-1"):
        self.organization_id = organization_id
        self.clinics: Dict[str, ClinicProfile] = {}
        self.reviews: Dict[str, ReviewMetrics] = {}
        self.analytics: Dict[str, AnalyticsRecord] = {}
        self.competitors: Dict[str, List[CompetitorRecord]] = {}
        self.patients: Dict[str, PatientMetrics] = {}
        self.measures: Dict[str, List[ActiveMeasure]] = {}
        self.saved: List[AnalysisResult] = []
        self.calls: List[str] = []

    def add_clinic(self, clinic: ClinicProfile) -> None:
        self.clinics[clinic.id] = clinic

    def get_clinic(self, scope: TenantScope, clinic_id: str) -> Optional[ClinicProfile]:
        self.calls.append("get_clinic")
        if scope.organization_id != self.organization_id:
            return None
        return self.clinics.get(clinic_id)

    def latest_review(self, clinic_id: str) -> Optional[ReviewMetrics]:
        self.calls.append("latest_review")
        return self.reviews.get(clinic_id)

    def latest_analytics(self, clinic_id: str) -> Optional[AnalyticsRecord]:
        self.calls.append("latest_analytics")
        return self.analytics.get(clinic_id)

    def active_competitors(self, clinic_id: str) -> List[CompetitorRecord]:
        self.calls.append("active_competitors")
        return self.competitors.get(clinic_id, [])

    def latest_patient_data(self, clinic_id: str) -> Optional[PatientMetrics]:
        self.calls.append("latest_patient_data")
        return self.patients.get(clinic_id)

    def active_measures(self, clinic_id: str) -> List[ActiveMeasure]:
        self.calls.append("active_measures")
        return self.measures.get(clinic_id, [])

    def save_analysis_result(self, scope: TenantScope, result: AnalysisResult) -> str:
        self.saved.append(result)
        return f"analysis-{len(self.saved)}"


@pytest.fixture
def fake_store() -> FakeStore:
    store = FakeStore()
    store.add_clinic(make_clinic())
    return store


# ============================================================================
# SQLite Store
# ============================================================================

@pytest.fixture
def sql_store(tmp_path) -> SqlMetricStore:
    """SqlMetricStore on a fresh SQLite file with complaint masters seeded."""
    engine = create_db_engine(f"sqlite:///{tmp_path}/test.db")
    init_db(engine)
    store = SqlMetricStore(create_session_factory(engine))
    store.seed_complaint_masters()
    yield store
    engine.dispose()
