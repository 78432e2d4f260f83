"""
Test Suite: HTTP API

Tests the analysis, report and measure effect endpoints with the store and model
dependencies overridden.
"""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from api.analyze import app
from api.dependencies import UnconfiguredModel, get_metric_store, get_model_client
from dental_marketing.analyzer import CallableModel
from dental_marketing.database import MeasureCategory
from dental_marketing.errors import ModelCallError

from conftest import FakeStore, make_clinic

HEADERS = {"X-Organization-Id": "org-1", "X-User-Id": "user-1"}


@pytest.fixture
def seeded(sql_store):
    sql_store.create_organization("テスト医療法人", organization_id="org-1")
    clinic_id = sql_store.create_clinic("org-1", "さくら歯科クリニック", prefecture="東京都", city="世田谷区")
    sql_store.record_review(clinic_id, 12, 4.2)
    return sql_store, clinic_id


@pytest.fixture
def client_for():
    def build(store, reply="{}"):
        async def model(prompt: str) -> str:
            if isinstance(reply, Exception):
                raise reply
            return reply

        async def model_dependency():
            return CallableModel(model)

        app.dependency_overrides[get_metric_store] = lambda: store
        app.dependency_overrides[get_model_client] = model_dependency
        return TestClient(app)

    yield build
    app.dependency_overrides.clear()


class TestHealth:
    """Health endpoints."""

    def test_root(self):
        response = TestClient(app).get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_health_reports_database(self):
        with patch("api.analyze.check_db_connection", return_value=False):
            response = TestClient(app).get("/api/health")

        assert response.status_code == 200
        assert response.json()["database"] == "disconnected"
        assert response.json()["version"] == "0.1.0"


class TestAnalyzeEndpoint:
    """POST /api/clinics/{clinic_id}/analyze"""

    def test_requires_organization_header(self, client_for, seeded):
        store, clinic_id = seeded
        response = client_for(store).post(f"/api/clinics/{clinic_id}/analyze")

        assert response.status_code == 401

    def test_unknown_clinic(self, client_for, seeded):
        store, _ = seeded
        response = client_for(store).post("/api/clinics/missing/analyze", headers=HEADERS)

        assert response.status_code == 404
        assert response.json()["detail"] == "医院が見つかりません"

    def test_clinic_in_other_organization(self, client_for, seeded):
        store, clinic_id = seeded
        response = client_for(store).post(
            f"/api/clinics/{clinic_id}/analyze",
            headers={"X-Organization-Id": "org-2"},
        )
        assert response.status_code == 404

    def test_analysis_completes(self, client_for, seeded, valid_ai_reply):
        store, clinic_id = seeded
        response = client_for(store, valid_ai_reply).post(f"/api/clinics/{clinic_id}/analyze", headers=HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "分析が完了しました"

        data = body["data"]
        assert data["id"]
        assert data["clinicId"] == clinic_id
        assert data["analyzedById"] == "user-1"
        assert data["reviewScore"] == 68
        assert data["trafficScore"] is None
        assert data["overallScore"] == 68
        assert [i["type"] for i in data["issues"]] == ["LOW_REVIEW_COUNT"]
        assert data["aiAnalysis"]["currentAnalysis"] == "Web集客は平均的な水準です。"

    def test_model_failure_still_succeeds(self, client_for, seeded):
        store, clinic_id = seeded
        client = client_for(store, ModelCallError("OPENROUTER_API_KEY is not configured"))
        response = client.post(f"/api/clinics/{clinic_id}/analyze", headers=HEADERS)

        assert response.status_code == 200
        assert response.json()["data"]["aiAnalysis"] is None
        assert response.json()["data"]["status"] == "COMPLETED"

    def test_with_in_memory_store(self, client_for):
        store = FakeStore()
        store.add_clinic(make_clinic())
        response = client_for(store).post("/api/clinics/clinic-1/analyze", headers=HEADERS)

        assert response.status_code == 200
        assert store.saved[0].clinic_id == "clinic-1"


class TestReportEndpoints:
    """Stored report reads."""

    def run_analysis(self, client, clinic_id):
        response = client.post(f"/api/clinics/{clinic_id}/analyze", headers=HEADERS)
        assert response.status_code == 200
        return response.json()["data"]["id"]

    def test_list_reports(self, client_for, seeded):
        store, clinic_id = seeded
        client = client_for(store)
        analysis_id = self.run_analysis(client, clinic_id)

        response = client.get("/api/reports", headers=HEADERS)

        assert response.status_code == 200
        rows = response.json()
        assert [r["id"] for r in rows] == [analysis_id]
        assert rows[0]["issueCount"] == 1
        assert rows[0]["clinic"]["name"] == "さくら歯科クリニック"

    def test_reports_scoped_to_organization(self, client_for, seeded):
        store, clinic_id = seeded
        client = client_for(store)
        self.run_analysis(client, clinic_id)

        response = client.get("/api/reports", headers={"X-Organization-Id": "org-2"})
        assert response.json() == []

    def test_clinic_history(self, client_for, seeded):
        store, clinic_id = seeded
        client = client_for(store)
        self.run_analysis(client, clinic_id)
        self.run_analysis(client, clinic_id)

        response = client.get(f"/api/clinics/{clinic_id}/analyses", headers=HEADERS)
        assert response.status_code == 200
        assert len(response.json()) == 2

        assert client.get("/api/clinics/missing/analyses", headers=HEADERS).status_code == 404

    def test_get_analysis(self, client_for, seeded, valid_ai_reply):
        store, clinic_id = seeded
        client = client_for(store, valid_ai_reply)
        analysis_id = self.run_analysis(client, clinic_id)

        response = client.get(f"/api/clinics/{clinic_id}/analyses/{analysis_id}", headers=HEADERS)

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == analysis_id
        assert data["aiAnalysis"]["mainIssues"] == ["口コミ数が少ない", "広告の直帰率が高い"]

        missing = client.get(f"/api/clinics/{clinic_id}/analyses/missing", headers=HEADERS)
        assert missing.status_code == 404
        assert missing.json()["detail"] == "分析結果が見つかりません"

    def test_limit_validation(self, client_for, seeded):
        store, _ = seeded
        response = client_for(store).get("/api/reports?limit=0", headers=HEADERS)
        assert response.status_code == 422


class TestMeasureEffectEndpoint:
    """POST /api/clinics/{clinic_id}/measures/{measure_id}/effect"""

    BODY = {
        "before": {"sessions": 1000, "patients": 10, "reviews": 20},
        "after": {"sessions": 1500, "patients": 20, "reviews": 25},
    }

    @pytest.fixture
    def measure(self, seeded):
        store, clinic_id = seeded
        measure_id = store.add_measure(clinic_id, "リスティング広告", MeasureCategory.ADVERTISING, cost=100000)
        return store, clinic_id, measure_id

    def test_effect_is_evaluated_and_stored(self, client_for, measure):
        store, clinic_id, measure_id = measure
        client = client_for(store, "効果が出ています。")

        response = client.post(
            f"/api/clinics/{clinic_id}/measures/{measure_id}/effect", json=self.BODY, headers=HEADERS,
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["roi"] == 200.0
        assert data["patientIncrease"] == 10
        assert data["estimatedRevenue"] == 300000
        assert data["aiEvaluation"] == "効果が出ています。"
        assert [m.roi for m in store.active_measures(clinic_id)] == [200.0]

    def test_model_failure_still_stores_roi(self, client_for, measure):
        store, clinic_id, measure_id = measure
        client = client_for(store, ModelCallError("OpenRouter API error: 503", status_code=503))

        response = client.post(
            f"/api/clinics/{clinic_id}/measures/{measure_id}/effect", json=self.BODY, headers=HEADERS,
        )

        assert response.status_code == 200
        assert response.json()["data"]["aiEvaluation"] is None
        assert [m.roi for m in store.active_measures(clinic_id)] == [200.0]

    def test_unknown_measure(self, client_for, measure):
        store, clinic_id, _ = measure
        response = client_for(store).post(
            f"/api/clinics/{clinic_id}/measures/missing/effect", json=self.BODY, headers=HEADERS,
        )

        assert response.status_code == 404
        assert response.json()["detail"] == "施策が見つかりません"

    def test_measure_in_other_organization(self, client_for, measure):
        store, clinic_id, measure_id = measure
        response = client_for(store).post(
            f"/api/clinics/{clinic_id}/measures/{measure_id}/effect",
            json=self.BODY,
            headers={"X-Organization-Id": "org-2"},
        )
        assert response.status_code == 404

    def test_negative_figures_rejected(self, client_for, measure):
        store, clinic_id, measure_id = measure
        body = {"before": {"sessions": -1, "patients": 0, "reviews": 0}, "after": self.BODY["after"]}

        response = client_for(store).post(
            f"/api/clinics/{clinic_id}/measures/{measure_id}/effect", json=body, headers=HEADERS,
        )
        assert response.status_code == 422


class TestUnconfiguredModel:
    """Fallback used when no API key is set."""

    @pytest.mark.asyncio
    async def test_complete_raises(self):
        with pytest.raises(ModelCallError, match="not configured"):
            await UnconfiguredModel("OPENROUTER_API_KEY is not configured").complete("prompt")
