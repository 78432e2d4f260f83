"""
Storage Interface for the Snapshot Assembler

The assembler only reads through this narrow interface; the SQLAlchemy
adapter in dental_marketing.database.repository implements it. Methods are
synchronous so the assembler can fan them out with asyncio.to_thread.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol

from ..models import (
    ActiveMeasure,
    AnalysisResult,
    ClinicProfile,
    PatientMetrics,
    ReviewMetrics,
    TenantScope,
)


@dataclass(frozen=True)
class AnalyticsRecord:
    """
    Latest analytics period as stored.

    region_data maps a region name (as reported by GA4, usually romanized
    like "Tokyo") to its session count.
    """
    total_sessions: int
    total_users: int
    avg_session_duration: float
    bounce_rate: float
    paid_sessions: Optional[int] = None
    paid_bounce_rate: Optional[float] = None
    region_data: Dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class CompetitorRecord:
    """Active competitor and its most recent review snapshot, if any."""
    name: str
    latest_review: Optional[ReviewMetrics] = None


class MetricStore(Protocol):
    """Read and persist operations needed for one analysis run."""

    def get_clinic(self, scope: TenantScope, clinic_id: str) -> Optional[ClinicProfile]:
        """Clinic within the scope's organization, or None (also for soft-deleted)."""
        ...

    def latest_review(self, clinic_id: str) -> Optional[ReviewMetrics]:
        ...

    def latest_analytics(self, clinic_id: str) -> Optional[AnalyticsRecord]:
        ...

    def active_competitors(self, clinic_id: str) -> List[CompetitorRecord]:
        ...

    def latest_patient_data(self, clinic_id: str) -> Optional[PatientMetrics]:
        ...

    def active_measures(self, clinic_id: str) -> List[ActiveMeasure]:
        ...

    def save_analysis_result(self, scope: TenantScope, result: AnalysisResult) -> str:
        """Persist a completed run and return its id."""
        ...
