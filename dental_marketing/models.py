"""
Domain Models for Clinic Analysis

Immutable inputs (MetricSnapshot and its parts) and the outputs of one
analysis run (Issue, Scores, AnalysisResult).

Units:
- durations are seconds
- bounce and traffic rates are percent (0-100)
- ratings are 0-5 stars
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .output.schemas import AIAnalysisResult


# ============================================================================
# ENUMS
# ============================================================================

class Severity(Enum):
    """Issue severity. Drives both ordering in reports and display badges."""
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class IssueType(Enum):
    """Issue tags emitted by the rule engine."""
    LOW_REVIEW_COUNT = "LOW_REVIEW_COUNT"
    LOW_REVIEW_SCORE = "LOW_REVIEW_SCORE"
    LOW_TRAFFIC = "LOW_TRAFFIC"
    LOW_ENGAGEMENT = "LOW_ENGAGEMENT"
    AD_INEFFICIENCY = "AD_INEFFICIENCY"
    COMPETITOR_REVIEW_GAP = "COMPETITOR_REVIEW_GAP"
    LOW_LOCAL_TRAFFIC = "LOW_LOCAL_TRAFFIC"


class AnalysisStatus(Enum):
    """Status of a persisted analysis run."""
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


# ============================================================================
# TENANT SCOPE
# ============================================================================

@dataclass(frozen=True)
class TenantScope:
    """Organization the caller acts for, and the user triggering the run."""
    organization_id: str
    user_id: Optional[str] = None


# ============================================================================
# SNAPSHOT
# ============================================================================

@dataclass(frozen=True)
class ClinicProfile:
    """Clinic identity and locale."""
    id: str
    name: str
    prefecture: str = ""
    city: str = ""
    specialties: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ReviewMetrics:
    """Latest review snapshot (Google Places rating data)."""
    average_rating: float
    total_reviews: int


@dataclass(frozen=True)
class AnalyticsMetrics:
    """Latest web analytics period."""
    total_sessions: int
    total_users: int
    avg_session_duration: float
    bounce_rate: float
    local_traffic_rate: Optional[float] = None  # None = not measured
    paid_sessions: Optional[int] = None
    paid_bounce_rate: Optional[float] = None


@dataclass(frozen=True)
class CompetitorMetrics:
    """Active competitor with its latest review snapshot."""
    name: str
    average_rating: float
    total_reviews: int


@dataclass(frozen=True)
class ComplaintCount:
    """New patients for one chief complaint."""
    complaint_name: str
    count: int


@dataclass(frozen=True)
class PatientMetrics:
    """Most recent month of manually entered new-patient data."""
    year: int
    month: int
    total_new_patients: int
    by_complaint: Tuple[ComplaintCount, ...] = ()


@dataclass(frozen=True)
class ActiveMeasure:
    """Marketing measure currently running, with its latest measured ROI."""
    name: str
    category: str
    cost: int = 0
    roi: Optional[float] = None


@dataclass(frozen=True)
class Issue:
    """A detected problem. Produced fresh each run, never mutated."""
    type: IssueType
    severity: Severity
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "type": self.type.value,
            "severity": self.severity.value,
            "message": self.message,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Issue":
        return cls(
            type=IssueType(data["type"]),
            severity=Severity(data["severity"]),
            message=data.get("message", ""),
        )


@dataclass(frozen=True)
class MetricSnapshot:
    """
    Everything one analysis run knows about a clinic.

    Optional sources are None when not configured; competitors only include
    those with at least one review snapshot.
    """
    clinic: ClinicProfile
    review: Optional[ReviewMetrics] = None
    analytics: Optional[AnalyticsMetrics] = None
    competitors: Tuple[CompetitorMetrics, ...] = ()
    patient_data: Optional[PatientMetrics] = None
    active_measures: Tuple[ActiveMeasure, ...] = ()
    issues: Tuple[Issue, ...] = ()

    def with_issues(self, issues: List[Issue]) -> "MetricSnapshot":
        """Return a copy carrying the rule engine output."""
        return replace(self, issues=tuple(issues))

    @property
    def has_any_source(self) -> bool:
        return any([
            self.review is not None,
            self.analytics is not None,
            bool(self.competitors),
            self.patient_data is not None,
            bool(self.active_measures),
        ])


# ============================================================================
# RUN OUTPUT
# ============================================================================

@dataclass(frozen=True)
class Scores:
    """Scores are None whenever their source data was absent."""
    traffic_score: Optional[int] = None
    engagement_score: Optional[int] = None
    review_score: Optional[int] = None
    overall_score: Optional[int] = None

    def to_dict(self) -> Dict[str, Optional[int]]:
        return {
            "trafficScore": self.traffic_score,
            "engagementScore": self.engagement_score,
            "reviewScore": self.review_score,
            "overallScore": self.overall_score,
        }


@dataclass
class AnalysisResult:
    """One analysis run. Append-only: created once, never updated."""
    clinic_id: str
    analyzed_at: datetime
    period_start: datetime
    period_end: datetime
    scores: Scores
    issues: List[Issue] = field(default_factory=list)
    ai_analysis: Optional[AIAnalysisResult] = None
    ai_analyzed_at: Optional[datetime] = None
    status: AnalysisStatus = AnalysisStatus.COMPLETED
    analyzed_by_id: Optional[str] = None
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the JSON shape consumed by the dashboard and reports."""
        return {
            "id": self.id,
            "clinicId": self.clinic_id,
            "analyzedAt": self.analyzed_at.isoformat(),
            "analyzedById": self.analyzed_by_id,
            "periodStart": self.period_start.isoformat(),
            "periodEnd": self.period_end.isoformat(),
            **self.scores.to_dict(),
            "issues": [issue.to_dict() for issue in self.issues],
            "aiAnalysis": self.ai_analysis.to_dict() if self.ai_analysis else None,
            "aiAnalyzedAt": self.ai_analyzed_at.isoformat() if self.ai_analyzed_at else None,
            "status": self.status.value,
        }
