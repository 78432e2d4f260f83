"""
API Endpoint for Clinic Analysis

FastAPI application that:
1. Runs an analysis for a clinic (scores, issues, AI proposals)
2. Persists the result and returns it
3. Serves stored reports (see api/reports.py)
"""

import logging
import sys
from datetime import datetime

from fastapi import Depends, FastAPI, HTTPException

from dental_marketing import __version__
from dental_marketing.analyzer import ClinicAnalyzer
from dental_marketing.database import check_db_connection, init_db
from dental_marketing.errors import ClinicNotFoundError
from dental_marketing.models import TenantScope
from dental_marketing.utils import get_settings
from api.dependencies import get_metric_store, get_model_client, get_tenant_scope
from api.measures import router as measures_router
from api.reports import router as reports_router

# Configure logging to stdout
logging.basicConfig(
    level=get_settings().LOG_LEVEL.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,  # Explicitly use stdout
    force=True,  # Override any existing config
)
logger = logging.getLogger(__name__)

# Quiet down chatty loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

# Create FastAPI app
app = FastAPI(
    title="Dental Marketing Analyzer",
    description="Clinic marketing scores, issue detection and AI improvement proposals",
    version=__version__,
)
app.include_router(reports_router)
app.include_router(measures_router)


# ============================================================================
# STARTUP - Initialize Database
# ============================================================================

@app.on_event("startup")
async def startup_event():
    """Initialize database on startup."""
    logger.info("Initializing database...")
    try:
        init_db()
        if check_db_connection():
            logger.info("Database connection verified")
        else:
            logger.warning("Database connection check failed - continuing anyway")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")


# ============================================================================
# API ENDPOINTS
# ============================================================================

@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "Dental Marketing Analyzer"}


@app.get("/api/health")
async def health():
    """Detailed health check including database status."""
    db_connected = check_db_connection()

    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "version": __version__,
        "database": "connected" if db_connected else "disconnected",
    }


@app.post("/api/clinics/{clinic_id}/analyze")
async def analyze_clinic(
    clinic_id: str,
    scope: TenantScope = Depends(get_tenant_scope),
    store=Depends(get_metric_store),
    model=Depends(get_model_client),
):
    """
    Run an analysis for a clinic.

    The run completes even when the model call fails; aiAnalysis is then null.
    """
    analyzer = ClinicAnalyzer(store, model, ai_timeout=get_settings().AI_TIMEOUT)

    try:
        result = await analyzer.run(scope, clinic_id)
    except ClinicNotFoundError:
        raise HTTPException(status_code=404, detail="医院が見つかりません")

    return {
        "message": "分析が完了しました",
        "data": result.to_dict(),
    }
