"""
Reports API

Read endpoints over stored analysis results:
- Organization-wide report list (with issue counts)
- Analysis history for one clinic
- A single analysis with its normalized aiAnalysis
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from dental_marketing.models import TenantScope
from api.dependencies import get_metric_store, get_tenant_scope

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/api",
    tags=["Reports"],
)


@router.get("/reports")
def list_reports(
    clinic_id: Optional[str] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    scope: TenantScope = Depends(get_tenant_scope),
    store=Depends(get_metric_store),
) -> List[Dict[str, Any]]:
    """All analysis results in the organization, newest first."""
    return store.list_analysis_results(scope, clinic_id=clinic_id, limit=limit)


@router.get("/clinics/{clinic_id}/analyses")
def clinic_analysis_history(
    clinic_id: str,
    limit: int = Query(default=50, ge=1, le=500),
    scope: TenantScope = Depends(get_tenant_scope),
    store=Depends(get_metric_store),
) -> List[Dict[str, Any]]:
    """Analysis history for one clinic, newest first."""
    if store.get_clinic(scope, clinic_id) is None:
        raise HTTPException(status_code=404, detail="医院が見つかりません")
    return store.list_analysis_results(scope, clinic_id=clinic_id, limit=limit)


@router.get("/clinics/{clinic_id}/analyses/{analysis_id}")
def get_analysis(
    clinic_id: str,
    analysis_id: str,
    scope: TenantScope = Depends(get_tenant_scope),
    store=Depends(get_metric_store),
) -> Dict[str, Any]:
    """One analysis result; legacy aiAnalysis strings are normalized on read."""
    result = store.get_analysis_result(scope, clinic_id, analysis_id)
    if result is None:
        raise HTTPException(status_code=404, detail="分析結果が見つかりません")
    return result.to_dict()
