"""
Repository Layer - Clean Interface for Data Operations

SqlMetricStore implements the MetricStore interface used by the analysis
engine, plus the read paths behind the reports API and the ingest helpers
used by scripts and tests.

Each call opens its own session, so the assembler can run the reads
concurrently on worker threads.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Generator, List, Optional

from sqlalchemy.orm import Session, sessionmaker

from ..collector.store import AnalyticsRecord, CompetitorRecord
from ..models import (
    ActiveMeasure,
    AnalysisResult,
    ClinicProfile,
    ComplaintCount,
    Issue,
    PatientMetrics,
    ReviewMetrics,
    Scores,
    TenantScope,
)
from ..output.parser import load_stored_analysis
from .models import (
    AnalysisResultRecord,
    AnalyticsData,
    ChiefComplaintMaster,
    Competitor,
    CompetitorReviewData,
    DentalClinic,
    Measure,
    MeasureCategory,
    MeasureEffect,
    MeasureStatus,
    MonthlyPatientData,
    Organization,
    PatientByComplaint,
    ReviewData,
)

logger = logging.getLogger(__name__)


# Chief complaint masters seeded for every installation
DEFAULT_CHIEF_COMPLAINTS = [
    {"name": "虫歯治療", "icon": "🦷", "description": "虫歯の治療、詰め物・被せ物"},
    {"name": "矯正歯科", "icon": "😁", "description": "歯列矯正、マウスピース矯正"},
    {"name": "インプラント", "icon": "🔩", "description": "インプラント治療"},
    {"name": "ホワイトニング", "icon": "✨", "description": "歯のホワイトニング"},
    {"name": "クリーニング・予防", "icon": "🧹", "description": "定期クリーニング、予防歯科"},
    {"name": "歯周病治療", "icon": "🏥", "description": "歯周病・歯肉炎の治療"},
    {"name": "小児歯科", "icon": "👶", "description": "子供の歯科治療"},
    {"name": "緊急・痛み", "icon": "🆘", "description": "急な痛み、緊急対応"},
    {"name": "入れ歯・義歯", "icon": "🦴", "description": "入れ歯の作成・調整"},
    {"name": "審美歯科", "icon": "💎", "description": "セラミック、ラミネートベニア"},
    {"name": "根管治療", "icon": "🔬", "description": "根管治療（神経の治療）"},
    {"name": "親知らず", "icon": "🦷", "description": "親知らずの抜歯・相談"},
    {"name": "その他", "icon": "📋", "description": "その他の相談・治療"},
]


class SqlMetricStore:
    """
    SQLAlchemy-backed MetricStore.

    Usage:
        store = SqlMetricStore(get_session_factory())
        clinic = store.get_clinic(TenantScope("org-1"), "clinic-1")
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    @contextmanager
    def _session(self) -> Generator[Session, None, None]:
        db = self.session_factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _scoped_clinic(self, db: Session, scope: TenantScope, clinic_id: str) -> Optional[DentalClinic]:
        return (
            db.query(DentalClinic)
            .filter(
                DentalClinic.id == clinic_id,
                DentalClinic.organization_id == scope.organization_id,
                DentalClinic.deleted_at.is_(None),
            )
            .first()
        )

    # =========================================================================
    # METRIC STORE
    # =========================================================================

    def get_clinic(self, scope: TenantScope, clinic_id: str) -> Optional[ClinicProfile]:
        with self._session() as db:
            clinic = self._scoped_clinic(db, scope, clinic_id)
            if clinic is None:
                return None
            return ClinicProfile(
                id=clinic.id,
                name=clinic.name,
                prefecture=clinic.prefecture or "",
                city=clinic.city or "",
                specialties=tuple(clinic.specialties or ()),
            )

    def latest_review(self, clinic_id: str) -> Optional[ReviewMetrics]:
        with self._session() as db:
            review = (
                db.query(ReviewData)
                .filter(ReviewData.clinic_id == clinic_id)
                .order_by(ReviewData.fetched_at.desc())
                .first()
            )
            if review is None:
                return None
            return ReviewMetrics(
                average_rating=review.average_rating,
                total_reviews=review.total_reviews,
            )

    def latest_analytics(self, clinic_id: str) -> Optional[AnalyticsRecord]:
        with self._session() as db:
            row = (
                db.query(AnalyticsData)
                .filter(AnalyticsData.clinic_id == clinic_id)
                .order_by(AnalyticsData.period_end.desc())
                .first()
            )
            if row is None:
                return None
            return AnalyticsRecord(
                total_sessions=row.total_sessions,
                total_users=row.total_users,
                avg_session_duration=row.avg_session_duration,
                bounce_rate=row.bounce_rate,
                paid_sessions=row.paid_sessions,
                paid_bounce_rate=row.paid_bounce_rate,
                region_data=dict(row.region_data or {}),
            )

    def active_competitors(self, clinic_id: str) -> List[CompetitorRecord]:
        with self._session() as db:
            competitors = (
                db.query(Competitor)
                .filter(Competitor.clinic_id == clinic_id, Competitor.is_active.is_(True))
                .order_by(Competitor.created_at)
                .all()
            )

            records = []
            for competitor in competitors:
                review = (
                    db.query(CompetitorReviewData)
                    .filter(CompetitorReviewData.competitor_id == competitor.id)
                    .order_by(CompetitorReviewData.fetched_at.desc())
                    .first()
                )
                records.append(CompetitorRecord(
                    name=competitor.name,
                    latest_review=ReviewMetrics(
                        average_rating=review.average_rating,
                        total_reviews=review.total_reviews,
                    ) if review else None,
                ))
            return records

    def latest_patient_data(self, clinic_id: str) -> Optional[PatientMetrics]:
        with self._session() as db:
            month = (
                db.query(MonthlyPatientData)
                .filter(MonthlyPatientData.clinic_id == clinic_id)
                .order_by(MonthlyPatientData.year.desc(), MonthlyPatientData.month.desc())
                .first()
            )
            if month is None:
                return None

            rows = (
                db.query(PatientByComplaint, ChiefComplaintMaster)
                .join(ChiefComplaintMaster, PatientByComplaint.chief_complaint_id == ChiefComplaintMaster.id)
                .filter(PatientByComplaint.monthly_data_id == month.id)
                .order_by(ChiefComplaintMaster.sort_order)
                .all()
            )
            return PatientMetrics(
                year=month.year,
                month=month.month,
                total_new_patients=month.total_new_patients,
                by_complaint=tuple(
                    ComplaintCount(complaint_name=master.name, count=entry.patient_count)
                    for entry, master in rows
                ),
            )

    def active_measures(self, clinic_id: str) -> List[ActiveMeasure]:
        with self._session() as db:
            measures = (
                db.query(Measure)
                .filter(Measure.clinic_id == clinic_id, Measure.status == MeasureStatus.ACTIVE)
                .order_by(Measure.created_at)
                .all()
            )

            result = []
            for measure in measures:
                effect = (
                    db.query(MeasureEffect)
                    .filter(MeasureEffect.measure_id == measure.id)
                    .order_by(MeasureEffect.analyzed_at.desc())
                    .first()
                )
                result.append(ActiveMeasure(
                    name=measure.name,
                    category=measure.category.value,
                    cost=measure.cost or 0,
                    roi=effect.roi if effect else None,
                ))
            return result

    def save_analysis_result(self, scope: TenantScope, result: AnalysisResult) -> str:
        """Persist a run; the clinic must be visible in the scope."""
        with self._session() as db:
            if self._scoped_clinic(db, scope, result.clinic_id) is None:
                raise ValueError(f"Clinic {result.clinic_id} is not in organization {scope.organization_id}")

            record = AnalysisResultRecord(
                clinic_id=result.clinic_id,
                analyzed_by_id=result.analyzed_by_id,
                analyzed_at=result.analyzed_at,
                period_start=result.period_start,
                period_end=result.period_end,
                traffic_score=result.scores.traffic_score,
                engagement_score=result.scores.engagement_score,
                review_score=result.scores.review_score,
                overall_score=result.scores.overall_score,
                issues=[issue.to_dict() for issue in result.issues],
                ai_analysis=result.ai_analysis.to_dict() if result.ai_analysis else None,
                ai_analyzed_at=result.ai_analyzed_at,
                status=result.status,
            )
            db.add(record)
            db.flush()

            logger.info(f"Saved analysis result {record.id} for clinic {result.clinic_id}")
            return record.id

    # =========================================================================
    # READ PATHS
    # =========================================================================

    def list_analysis_results(
        self,
        scope: TenantScope,
        clinic_id: Optional[str] = None,
        limit: int = 50,
    ) -> List[Dict[str, Any]]:
        """
        Analysis summaries for the organization, newest first.

        Args:
            scope: Organization to list for
            clinic_id: Restrict to one clinic
            limit: Maximum rows

        Returns:
            Rows with clinic info, scores, status and issueCount
        """
        with self._session() as db:
            query = (
                db.query(AnalysisResultRecord, DentalClinic)
                .join(DentalClinic, AnalysisResultRecord.clinic_id == DentalClinic.id)
                .filter(
                    DentalClinic.organization_id == scope.organization_id,
                    DentalClinic.deleted_at.is_(None),
                )
            )
            if clinic_id:
                query = query.filter(DentalClinic.id == clinic_id)

            rows = query.order_by(AnalysisResultRecord.analyzed_at.desc()).limit(limit).all()

            return [
                {
                    "id": record.id,
                    "clinic": {
                        "id": clinic.id,
                        "name": clinic.name,
                        "prefecture": clinic.prefecture,
                        "city": clinic.city,
                    },
                    "analyzedAt": record.analyzed_at.isoformat(),
                    "analyzedById": record.analyzed_by_id,
                    "overallScore": record.overall_score,
                    "trafficScore": record.traffic_score,
                    "engagementScore": record.engagement_score,
                    "reviewScore": record.review_score,
                    "status": record.status.value,
                    "issueCount": len(record.issues) if isinstance(record.issues, list) else 0,
                }
                for record, clinic in rows
            ]

    def get_analysis_result(
        self,
        scope: TenantScope,
        clinic_id: str,
        analysis_id: str,
    ) -> Optional[AnalysisResult]:
        """One stored run, with aiAnalysis read through the legacy-tolerant loader."""
        with self._session() as db:
            if self._scoped_clinic(db, scope, clinic_id) is None:
                return None

            record = (
                db.query(AnalysisResultRecord)
                .filter(
                    AnalysisResultRecord.id == analysis_id,
                    AnalysisResultRecord.clinic_id == clinic_id,
                )
                .first()
            )
            if record is None:
                return None
            return _record_to_result(record)

    # =========================================================================
    # INGEST
    # =========================================================================

    def create_organization(self, name: str, organization_id: Optional[str] = None) -> str:
        with self._session() as db:
            org = Organization(name=name)
            if organization_id:
                org.id = organization_id
            db.add(org)
            db.flush()
            return org.id

    def create_clinic(
        self,
        organization_id: str,
        name: str,
        prefecture: str = "",
        city: str = "",
        specialties: Optional[List[str]] = None,
        google_place_id: Optional[str] = None,
        ga4_property_id: Optional[str] = None,
    ) -> str:
        with self._session() as db:
            clinic = DentalClinic(
                organization_id=organization_id,
                name=name,
                prefecture=prefecture,
                city=city,
                specialties=list(specialties or []),
                google_place_id=google_place_id,
                ga4_property_id=ga4_property_id,
            )
            db.add(clinic)
            db.flush()
            logger.info(f"Created clinic {clinic.id} ({name})")
            return clinic.id

    def soft_delete_clinic(self, scope: TenantScope, clinic_id: str) -> bool:
        with self._session() as db:
            clinic = self._scoped_clinic(db, scope, clinic_id)
            if clinic is None:
                return False
            clinic.deleted_at = datetime.utcnow()
            return True

    def record_review(
        self,
        clinic_id: str,
        total_reviews: int,
        average_rating: float,
        fetched_at: Optional[datetime] = None,
    ) -> str:
        with self._session() as db:
            review = ReviewData(
                clinic_id=clinic_id,
                total_reviews=total_reviews,
                average_rating=average_rating,
                fetched_at=fetched_at or datetime.utcnow(),
            )
            db.add(review)
            db.flush()
            return review.id

    def record_analytics(
        self,
        clinic_id: str,
        period_start: datetime,
        period_end: datetime,
        total_sessions: int,
        total_users: int,
        avg_session_duration: float,
        bounce_rate: float,
        paid_sessions: Optional[int] = None,
        paid_bounce_rate: Optional[float] = None,
        region_data: Optional[Dict[str, int]] = None,
        city_data: Optional[Dict[str, int]] = None,
        channel_data: Optional[Dict[str, int]] = None,
    ) -> str:
        with self._session() as db:
            row = AnalyticsData(
                clinic_id=clinic_id,
                period_start=period_start,
                period_end=period_end,
                total_sessions=total_sessions,
                total_users=total_users,
                avg_session_duration=avg_session_duration,
                bounce_rate=bounce_rate,
                paid_sessions=paid_sessions,
                paid_bounce_rate=paid_bounce_rate,
                region_data=dict(region_data or {}),
                city_data=dict(city_data or {}),
                channel_data=dict(channel_data or {}),
            )
            db.add(row)
            db.flush()
            return row.id

    def add_competitor(
        self,
        clinic_id: str,
        name: str,
        google_place_id: Optional[str] = None,
        is_active: bool = True,
    ) -> str:
        with self._session() as db:
            competitor = Competitor(
                clinic_id=clinic_id,
                name=name,
                google_place_id=google_place_id,
                is_active=is_active,
            )
            db.add(competitor)
            db.flush()
            return competitor.id

    def record_competitor_review(
        self,
        competitor_id: str,
        total_reviews: int,
        average_rating: float,
        fetched_at: Optional[datetime] = None,
    ) -> str:
        with self._session() as db:
            review = CompetitorReviewData(
                competitor_id=competitor_id,
                total_reviews=total_reviews,
                average_rating=average_rating,
                fetched_at=fetched_at or datetime.utcnow(),
            )
            db.add(review)
            db.flush()
            return review.id

    def seed_complaint_masters(self) -> int:
        """Insert missing default chief complaints. Returns the number added."""
        added = 0
        with self._session() as db:
            existing = {name for (name,) in db.query(ChiefComplaintMaster.name).all()}
            for order, complaint in enumerate(DEFAULT_CHIEF_COMPLAINTS, start=1):
                if complaint["name"] in existing:
                    continue
                db.add(ChiefComplaintMaster(sort_order=order, **complaint))
                added += 1
        logger.info(f"Seeded {added} chief complaint masters")
        return added

    def save_patient_month(
        self,
        clinic_id: str,
        year: int,
        month: int,
        total_new_patients: int,
        by_complaint: Optional[Dict[str, int]] = None,
    ) -> str:
        """
        Create or replace one month of new-patient data.

        Args:
            clinic_id: Clinic
            year: Year
            month: Month (1-12)
            total_new_patients: Total new patients in the month
            by_complaint: Patients per chief complaint name

        Raises:
            ValueError: Unknown chief complaint name
        """
        with self._session() as db:
            masters = {m.name: m for m in db.query(ChiefComplaintMaster).all()}
            unknown = [name for name in (by_complaint or {}) if name not in masters]
            if unknown:
                raise ValueError(f"Unknown chief complaints: {', '.join(unknown)}")

            data = (
                db.query(MonthlyPatientData)
                .filter(
                    MonthlyPatientData.clinic_id == clinic_id,
                    MonthlyPatientData.year == year,
                    MonthlyPatientData.month == month,
                )
                .first()
            )
            if data is None:
                data = MonthlyPatientData(clinic_id=clinic_id, year=year, month=month)
                db.add(data)

            data.total_new_patients = total_new_patients
            data.patients_by_complaint = [
                PatientByComplaint(chief_complaint_id=masters[name].id, patient_count=count)
                for name, count in (by_complaint or {}).items()
            ]
            db.flush()
            return data.id

    def add_measure(
        self,
        clinic_id: str,
        name: str,
        category: MeasureCategory = MeasureCategory.OTHER,
        cost: int = 0,
        status: MeasureStatus = MeasureStatus.ACTIVE,
        description: Optional[str] = None,
        start_date: Optional[datetime] = None,
    ) -> str:
        with self._session() as db:
            measure = Measure(
                clinic_id=clinic_id,
                name=name,
                category=category,
                cost=cost,
                status=status,
                description=description,
                start_date=start_date,
            )
            db.add(measure)
            db.flush()
            return measure.id

    def get_measure(self, scope: TenantScope, clinic_id: str, measure_id: str) -> Optional[Dict[str, Any]]:
        """A clinic's measure, or None when it is outside the organization."""
        with self._session() as db:
            if self._scoped_clinic(db, scope, clinic_id) is None:
                return None

            measure = (
                db.query(Measure)
                .filter(Measure.id == measure_id, Measure.clinic_id == clinic_id)
                .first()
            )
            if measure is None:
                return None
            return {
                "id": measure.id,
                "name": measure.name,
                "category": measure.category.value,
                "cost": measure.cost or 0,
                "status": measure.status.value,
            }

    def record_measure_effect(
        self,
        measure_id: str,
        roi: Optional[float],
        before: Optional[Dict[str, int]] = None,
        after: Optional[Dict[str, int]] = None,
        ai_evaluation: Optional[str] = None,
        analyzed_at: Optional[datetime] = None,
    ) -> str:
        """
        Store a measure evaluation.

        Args:
            measure_id: Measure
            roi: ROI percent, None when not measurable
            before: {"sessions", "patients", "reviews"} for the month before
            after: Same keys for the month after
            ai_evaluation: Model-written evaluation text
            analyzed_at: Evaluation time (defaults to now)
        """
        before = before or {}
        after = after or {}
        with self._session() as db:
            effect = MeasureEffect(
                measure_id=measure_id,
                roi=roi,
                before_sessions=before.get("sessions"),
                after_sessions=after.get("sessions"),
                before_patients=before.get("patients"),
                after_patients=after.get("patients"),
                before_reviews=before.get("reviews"),
                after_reviews=after.get("reviews"),
                ai_evaluation=ai_evaluation,
                analyzed_at=analyzed_at or datetime.utcnow(),
            )
            db.add(effect)
            db.flush()
            return effect.id


def _record_to_result(record: AnalysisResultRecord) -> AnalysisResult:
    return AnalysisResult(
        id=record.id,
        clinic_id=record.clinic_id,
        analyzed_by_id=record.analyzed_by_id,
        analyzed_at=record.analyzed_at,
        period_start=record.period_start,
        period_end=record.period_end,
        scores=Scores(
            traffic_score=record.traffic_score,
            engagement_score=record.engagement_score,
            review_score=record.review_score,
            overall_score=record.overall_score,
        ),
        issues=[Issue.from_dict(i) for i in (record.issues or [])],
        ai_analysis=load_stored_analysis(record.ai_analysis),
        ai_analyzed_at=record.ai_analyzed_at,
        status=record.status,
    )
