"""
SQLAlchemy Models for Dental Marketing Analyzer

Design Principles:
1. Every clinic belongs to exactly one organization (tenant)
2. Metric sources are append-only snapshots; "latest" is a query, not a flag
3. Analysis results are never updated after they are written
4. Portable column types so the same models run on PostgreSQL and SQLite
"""

import enum
from datetime import datetime
from uuid import uuid4

from sqlalchemy import (
    Column, String, Integer, Float, Boolean, DateTime, Text,
    ForeignKey, Enum, Index, UniqueConstraint, JSON
)
from sqlalchemy.orm import declarative_base, relationship

from ..models import AnalysisStatus

Base = declarative_base()


def _uuid() -> str:
    return str(uuid4())


# =============================================================================
# ENUMS
# =============================================================================

class MeasureStatus(enum.Enum):
    """Lifecycle of a marketing measure"""
    PLANNED = "PLANNED"
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"


class MeasureCategory(enum.Enum):
    """Kind of marketing measure"""
    ADVERTISING = "ADVERTISING"    # Listing / SNS ads
    SEO = "SEO"
    DIRECT_MAIL = "DIRECT_MAIL"    # Posting, flyers
    SNS = "SNS"
    MEO = "MEO"                    # Google Business Profile
    OTHER = "OTHER"


# =============================================================================
# TENANCY
# =============================================================================

class Organization(Base):
    """Clinic management organization (tenant)"""
    __tablename__ = "organizations"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(255), nullable=False)
    plan = Column(String(50), default="standard")

    created_at = Column(DateTime, default=datetime.utcnow)

    clinics = relationship("DentalClinic", back_populates="organization")


class DentalClinic(Base):
    """Clinic under management. Soft-deleted via deleted_at."""
    __tablename__ = "dental_clinics"

    id = Column(String(36), primary_key=True, default=_uuid)
    organization_id = Column(String(36), ForeignKey("organizations.id"), nullable=False)

    name = Column(String(255), nullable=False)
    prefecture = Column(String(20), default="")
    city = Column(String(100), default="")
    address = Column(String(500))
    specialties = Column(JSON, default=list)  # List of specialty names

    # Data source identifiers
    google_place_id = Column(String(255))
    ga4_property_id = Column(String(100))

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime)

    organization = relationship("Organization", back_populates="clinics")
    review_data = relationship("ReviewData", back_populates="clinic", cascade="all, delete-orphan")
    analytics_data = relationship("AnalyticsData", back_populates="clinic", cascade="all, delete-orphan")
    competitors = relationship("Competitor", back_populates="clinic", cascade="all, delete-orphan")
    monthly_patient_data = relationship("MonthlyPatientData", back_populates="clinic", cascade="all, delete-orphan")
    measures = relationship("Measure", back_populates="clinic", cascade="all, delete-orphan")
    analysis_results = relationship("AnalysisResultRecord", back_populates="clinic", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_clinic_org", "organization_id"),
    )


# =============================================================================
# METRIC SOURCES
# =============================================================================

class ReviewData(Base):
    """Google Places review snapshot"""
    __tablename__ = "review_data"

    id = Column(String(36), primary_key=True, default=_uuid)
    clinic_id = Column(String(36), ForeignKey("dental_clinics.id", ondelete="CASCADE"), nullable=False)

    total_reviews = Column(Integer, nullable=False, default=0)
    average_rating = Column(Float, nullable=False, default=0.0)

    fetched_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    clinic = relationship("DentalClinic", back_populates="review_data")

    __table_args__ = (
        Index("idx_review_clinic_fetched", "clinic_id", "fetched_at"),
    )


class AnalyticsData(Base):
    """GA4 metrics for one period"""
    __tablename__ = "analytics_data"

    id = Column(String(36), primary_key=True, default=_uuid)
    clinic_id = Column(String(36), ForeignKey("dental_clinics.id", ondelete="CASCADE"), nullable=False)

    period_start = Column(DateTime, nullable=False)
    period_end = Column(DateTime, nullable=False)

    total_sessions = Column(Integer, nullable=False, default=0)
    total_users = Column(Integer, nullable=False, default=0)
    avg_session_duration = Column(Float, nullable=False, default=0.0)  # seconds
    bounce_rate = Column(Float, nullable=False, default=0.0)           # percent

    paid_sessions = Column(Integer)
    paid_bounce_rate = Column(Float)

    # Breakdowns: {name: sessions}
    region_data = Column(JSON, default=dict)
    city_data = Column(JSON, default=dict)
    channel_data = Column(JSON, default=dict)

    fetched_at = Column(DateTime, default=datetime.utcnow)

    clinic = relationship("DentalClinic", back_populates="analytics_data")

    __table_args__ = (
        Index("idx_analytics_clinic_period", "clinic_id", "period_end"),
    )


class Competitor(Base):
    """Competing clinic tracked for review comparison"""
    __tablename__ = "competitors"

    id = Column(String(36), primary_key=True, default=_uuid)
    clinic_id = Column(String(36), ForeignKey("dental_clinics.id", ondelete="CASCADE"), nullable=False)

    name = Column(String(255), nullable=False)
    google_place_id = Column(String(255))
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    clinic = relationship("DentalClinic", back_populates="competitors")
    review_data = relationship("CompetitorReviewData", back_populates="competitor", cascade="all, delete-orphan")


class CompetitorReviewData(Base):
    """Review snapshot for a competitor"""
    __tablename__ = "competitor_review_data"

    id = Column(String(36), primary_key=True, default=_uuid)
    competitor_id = Column(String(36), ForeignKey("competitors.id", ondelete="CASCADE"), nullable=False)

    total_reviews = Column(Integer, nullable=False, default=0)
    average_rating = Column(Float, nullable=False, default=0.0)

    fetched_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    competitor = relationship("Competitor", back_populates="review_data")


# =============================================================================
# PATIENTS
# =============================================================================

class ChiefComplaintMaster(Base):
    """Chief complaint (主訴) master list"""
    __tablename__ = "chief_complaint_masters"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(100), unique=True, nullable=False)
    icon = Column(String(20))
    description = Column(String(255))
    sort_order = Column(Integer, default=0)
    is_active = Column(Boolean, default=True)


class MonthlyPatientData(Base):
    """Manually entered new-patient count for one month"""
    __tablename__ = "monthly_patient_data"

    id = Column(String(36), primary_key=True, default=_uuid)
    clinic_id = Column(String(36), ForeignKey("dental_clinics.id", ondelete="CASCADE"), nullable=False)

    year = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)
    total_new_patients = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    clinic = relationship("DentalClinic", back_populates="monthly_patient_data")
    patients_by_complaint = relationship(
        "PatientByComplaint", back_populates="monthly_data", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("clinic_id", "year", "month", name="uq_clinic_year_month"),
    )


class PatientByComplaint(Base):
    """New patients for one chief complaint within a month"""
    __tablename__ = "patients_by_complaint"

    id = Column(String(36), primary_key=True, default=_uuid)
    monthly_data_id = Column(String(36), ForeignKey("monthly_patient_data.id", ondelete="CASCADE"), nullable=False)
    chief_complaint_id = Column(String(36), ForeignKey("chief_complaint_masters.id"), nullable=False)

    patient_count = Column(Integer, nullable=False, default=0)

    monthly_data = relationship("MonthlyPatientData", back_populates="patients_by_complaint")
    chief_complaint = relationship("ChiefComplaintMaster")


# =============================================================================
# MEASURES
# =============================================================================

class Measure(Base):
    """Marketing measure run for a clinic"""
    __tablename__ = "measures"

    id = Column(String(36), primary_key=True, default=_uuid)
    clinic_id = Column(String(36), ForeignKey("dental_clinics.id", ondelete="CASCADE"), nullable=False)

    name = Column(String(255), nullable=False)
    category = Column(Enum(MeasureCategory), nullable=False, default=MeasureCategory.OTHER)
    status = Column(Enum(MeasureStatus), nullable=False, default=MeasureStatus.ACTIVE)
    description = Column(Text)
    cost = Column(Integer, default=0)  # yen per month

    start_date = Column(DateTime)
    end_date = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)

    clinic = relationship("DentalClinic", back_populates="measures")
    effects = relationship("MeasureEffect", back_populates="measure", cascade="all, delete-orphan")


class MeasureEffect(Base):
    """Before/after evaluation of a measure"""
    __tablename__ = "measure_effects"

    id = Column(String(36), primary_key=True, default=_uuid)
    measure_id = Column(String(36), ForeignKey("measures.id", ondelete="CASCADE"), nullable=False)

    before_sessions = Column(Integer)
    after_sessions = Column(Integer)
    before_patients = Column(Integer)
    after_patients = Column(Integer)
    before_reviews = Column(Integer)
    after_reviews = Column(Integer)

    roi = Column(Float)  # percent; NULL = not measured
    ai_evaluation = Column(Text)

    analyzed_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    measure = relationship("Measure", back_populates="effects")


# =============================================================================
# ANALYSIS RESULTS
# =============================================================================

class AnalysisResultRecord(Base):
    """One persisted analysis run (append-only)"""
    __tablename__ = "analysis_results"

    id = Column(String(36), primary_key=True, default=_uuid)
    clinic_id = Column(String(36), ForeignKey("dental_clinics.id", ondelete="CASCADE"), nullable=False)
    analyzed_by_id = Column(String(36))

    analyzed_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    period_start = Column(DateTime, nullable=False)
    period_end = Column(DateTime, nullable=False)

    traffic_score = Column(Integer)
    engagement_score = Column(Integer)
    review_score = Column(Integer)
    overall_score = Column(Integer)

    issues = Column(JSON, default=list)
    # Normalized dict; rows written by older versions hold a JSON string
    ai_analysis = Column(JSON)
    ai_analyzed_at = Column(DateTime)

    status = Column(Enum(AnalysisStatus), nullable=False, default=AnalysisStatus.COMPLETED)

    clinic = relationship("DentalClinic", back_populates="analysis_results")

    __table_args__ = (
        Index("idx_analysis_clinic_date", "clinic_id", "analyzed_at"),
    )
