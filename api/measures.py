"""
Measures API

Before/after evaluation of a clinic's marketing measure:
- ROI and percent changes from the submitted monthly figures
- A short model-written evaluation (omitted when the model call fails)
- The effect is stored and feeds the measure's ROI in later analysis runs
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from dental_marketing.analyzer import PeriodMetrics, analyze_measure_effect, calculate_measure_roi
from dental_marketing.errors import ModelCallError
from dental_marketing.models import TenantScope
from api.dependencies import get_metric_store, get_model_client, get_tenant_scope

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/api/clinics/{clinic_id}/measures",
    tags=["Measures"],
)


# =============================================================================
# REQUEST MODELS
# =============================================================================

class PeriodFigures(BaseModel):
    """One month of results."""
    sessions: int = Field(ge=0)
    patients: int = Field(ge=0)
    reviews: int = Field(ge=0)

    def to_metrics(self) -> PeriodMetrics:
        return PeriodMetrics(sessions=self.sessions, patients=self.patients, reviews=self.reviews)


class MeasureEffectRequest(BaseModel):
    """Figures for the month before and the month after a measure."""
    before: PeriodFigures
    after: PeriodFigures


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("/{measure_id}/effect")
async def evaluate_measure_effect(
    clinic_id: str,
    measure_id: str,
    request: MeasureEffectRequest,
    scope: TenantScope = Depends(get_tenant_scope),
    store=Depends(get_metric_store),
    model=Depends(get_model_client),
) -> Dict[str, Any]:
    """Compute, evaluate and store the effect of one measure."""
    measure = await asyncio.to_thread(store.get_measure, scope, clinic_id, measure_id)
    if measure is None:
        raise HTTPException(status_code=404, detail="施策が見つかりません")

    before = request.before.to_metrics()
    after = request.after.to_metrics()
    roi = calculate_measure_roi(measure["cost"], before, after)

    evaluation: Optional[str] = None
    try:
        evaluation = await analyze_measure_effect(
            model, measure["name"], measure["category"], measure["cost"], before, after,
        )
    except ModelCallError as e:
        logger.warning(f"Measure evaluation failed for measure {measure_id}: {e}")

    effect_id = await asyncio.to_thread(
        store.record_measure_effect,
        measure_id,
        roi.roi,
        request.before.model_dump(),
        request.after.model_dump(),
        evaluation,
    )
    logger.info(f"Saved effect {effect_id} for measure {measure_id} (roi={roi.roi})")

    return {
        "message": "施策効果を分析しました",
        "data": {
            "id": effect_id,
            "measureId": measure_id,
            "roi": roi.roi,
            "patientIncrease": roi.patient_increase,
            "estimatedRevenue": roi.estimated_revenue,
            "sessionsChange": roi.sessions_change,
            "patientsChange": roi.patients_change,
            "reviewsChange": roi.reviews_change,
            "aiEvaluation": evaluation,
        },
    }
