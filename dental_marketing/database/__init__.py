"""
Dental Marketing Database Layer

Usage:
    from dental_marketing.database import (
        # Session management
        init_db, get_session_factory,

        # Repository
        SqlMetricStore,
    )

    # Initialize database
    init_db()

    # Store and read metrics
    store = SqlMetricStore(get_session_factory())
    clinic_id = store.create_clinic(org_id, "さくら歯科", prefecture="東京都", city="渋谷区")
    store.record_review(clinic_id, total_reviews=42, average_rating=4.1)
"""

# Models
from .models import (
    Base,
    # Tenancy
    Organization,
    DentalClinic,
    # Metric sources
    ReviewData,
    AnalyticsData,
    Competitor,
    CompetitorReviewData,
    # Patients
    ChiefComplaintMaster,
    MonthlyPatientData,
    PatientByComplaint,
    # Measures
    Measure,
    MeasureEffect,
    # Results
    AnalysisResultRecord,
    # Enums
    MeasureCategory,
    MeasureStatus,
)

# Session management
from .session import (
    get_database_url,
    create_db_engine,
    create_session_factory,
    get_engine,
    get_session_factory,
    init_db,
    check_db_connection,
)

# Repository
from .repository import DEFAULT_CHIEF_COMPLAINTS, SqlMetricStore

__all__ = [
    # Models
    "Base",
    "Organization",
    "DentalClinic",
    "ReviewData",
    "AnalyticsData",
    "Competitor",
    "CompetitorReviewData",
    "ChiefComplaintMaster",
    "MonthlyPatientData",
    "PatientByComplaint",
    "Measure",
    "MeasureEffect",
    "AnalysisResultRecord",
    "MeasureCategory",
    "MeasureStatus",

    # Session
    "get_database_url",
    "create_db_engine",
    "create_session_factory",
    "get_engine",
    "get_session_factory",
    "init_db",
    "check_db_connection",

    # Repository
    "DEFAULT_CHIEF_COMPLAINTS",
    "SqlMetricStore",
]
