"""
MetricSnapshot Assembler

Gathers everything one analysis run needs about a clinic:
- Clinic profile (looked up first, scoped to the caller's organization)
- Latest review snapshot and latest analytics period
- Active competitors that have at least one review snapshot
- Most recent month of new-patient data
- Active marketing measures with their latest ROI

The five per-clinic reads are independent and run concurrently.
"""

import asyncio
import logging
from typing import Dict, Iterable, List, Optional, Set

from ..errors import ClinicNotFoundError
from ..models import (
    AnalyticsMetrics,
    ClinicProfile,
    CompetitorMetrics,
    MetricSnapshot,
    TenantScope,
)
from ..scoring.helpers import round_half_up
from .store import AnalyticsRecord, CompetitorRecord, MetricStore

logger = logging.getLogger(__name__)


# ============================================================================
# PREFECTURES
# ============================================================================

# Kanji name -> region name as GA4 reports it
PREFECTURE_REGIONS: Dict[str, str] = {
    "北海道": "Hokkaido",
    "青森県": "Aomori",
    "岩手県": "Iwate",
    "宮城県": "Miyagi",
    "秋田県": "Akita",
    "山形県": "Yamagata",
    "福島県": "Fukushima",
    "茨城県": "Ibaraki",
    "栃木県": "Tochigi",
    "群馬県": "Gunma",
    "埼玉県": "Saitama",
    "千葉県": "Chiba",
    "東京都": "Tokyo",
    "神奈川県": "Kanagawa",
    "新潟県": "Niigata",
    "富山県": "Toyama",
    "石川県": "Ishikawa",
    "福井県": "Fukui",
    "山梨県": "Yamanashi",
    "長野県": "Nagano",
    "岐阜県": "Gifu",
    "静岡県": "Shizuoka",
    "愛知県": "Aichi",
    "三重県": "Mie",
    "滋賀県": "Shiga",
    "京都府": "Kyoto",
    "大阪府": "Osaka",
    "兵庫県": "Hyogo",
    "奈良県": "Nara",
    "和歌山県": "Wakayama",
    "鳥取県": "Tottori",
    "島根県": "Shimane",
    "岡山県": "Okayama",
    "広島県": "Hiroshima",
    "山口県": "Yamaguchi",
    "徳島県": "Tokushima",
    "香川県": "Kagawa",
    "愛媛県": "Ehime",
    "高知県": "Kochi",
    "福岡県": "Fukuoka",
    "佐賀県": "Saga",
    "長崎県": "Nagasaki",
    "熊本県": "Kumamoto",
    "大分県": "Oita",
    "宮崎県": "Miyazaki",
    "鹿児島県": "Kagoshima",
    "沖縄県": "Okinawa",
}

PREFECTURE_SUFFIXES = ("都", "道", "府", "県")


def _normalize_region(name: str) -> str:
    normalized = name.strip().lower()
    if normalized.endswith(" prefecture"):
        normalized = normalized[: -len(" prefecture")]
    return normalized


def prefecture_aliases(prefecture: str) -> Set[str]:
    """
    Every spelling a region entry may use for the prefecture.

    Example:
        prefecture_aliases("東京都") -> {"東京都", "東京", "tokyo"}
    """
    prefecture = prefecture.strip()
    if not prefecture:
        return set()

    aliases = {prefecture}
    if prefecture.endswith(PREFECTURE_SUFFIXES) and len(prefecture) > 2:
        aliases.add(prefecture[:-1])

    romaji = PREFECTURE_REGIONS.get(prefecture)
    if romaji is None:
        # Allow the short kanji form ("大阪") to resolve as well
        for kanji, region in PREFECTURE_REGIONS.items():
            if kanji[:-1] == prefecture:
                romaji = region
                aliases.add(kanji)
                break
    if romaji:
        aliases.add(romaji)

    return {_normalize_region(a) for a in aliases}


def compute_local_traffic_rate(region_data: Dict[str, int], prefecture: str) -> Optional[float]:
    """
    Share of sessions from the clinic's own prefecture, in percent.

    Args:
        region_data: Sessions per region name
        prefecture: Clinic prefecture (kanji or romanized)

    Returns:
        Percentage with one decimal, or None when there is nothing to measure
    """
    if not region_data:
        return None

    total = sum(region_data.values())
    if total <= 0:
        return None

    aliases = prefecture_aliases(prefecture)
    local = sum(
        sessions for region, sessions in region_data.items()
        if _normalize_region(region) in aliases
    )
    return round_half_up(local / total * 1000) / 10


# ============================================================================
# ASSEMBLER
# ============================================================================

class SnapshotAssembler:
    """
    Builds MetricSnapshots from a MetricStore.

    Usage:
        assembler = SnapshotAssembler(store)
        snapshot = await assembler.assemble(scope, clinic_id)
    """

    def __init__(self, store: MetricStore):
        self.store = store

    async def assemble(self, scope: TenantScope, clinic_id: str) -> MetricSnapshot:
        """
        Assemble the snapshot for one clinic.

        Args:
            scope: Organization (and user) the caller acts for
            clinic_id: Clinic to analyze

        Returns:
            MetricSnapshot with absent sources left empty

        Raises:
            ClinicNotFoundError: Clinic missing, deleted, or in another organization
        """
        clinic = await asyncio.to_thread(self.store.get_clinic, scope, clinic_id)
        if clinic is None:
            raise ClinicNotFoundError(clinic_id)

        review, analytics_record, competitor_records, patient_data, measures = await asyncio.gather(
            asyncio.to_thread(self.store.latest_review, clinic_id),
            asyncio.to_thread(self.store.latest_analytics, clinic_id),
            asyncio.to_thread(self.store.active_competitors, clinic_id),
            asyncio.to_thread(self.store.latest_patient_data, clinic_id),
            asyncio.to_thread(self.store.active_measures, clinic_id),
        )

        snapshot = MetricSnapshot(
            clinic=clinic,
            review=review,
            analytics=self._build_analytics(analytics_record, clinic),
            competitors=tuple(self._reviewed_competitors(competitor_records)),
            patient_data=patient_data,
            active_measures=tuple(measures or ()),
        )

        logger.info(
            f"Assembled snapshot for {clinic.name} ({clinic_id}): "
            f"review={review is not None}, analytics={analytics_record is not None}, "
            f"competitors={len(snapshot.competitors)}, patients={patient_data is not None}, "
            f"measures={len(snapshot.active_measures)}"
        )
        if not snapshot.has_any_source:
            logger.warning(f"No metric data recorded for clinic {clinic_id}")
        return snapshot

    def _build_analytics(
        self,
        record: Optional[AnalyticsRecord],
        clinic: ClinicProfile,
    ) -> Optional[AnalyticsMetrics]:
        if record is None:
            return None

        return AnalyticsMetrics(
            total_sessions=record.total_sessions,
            total_users=record.total_users,
            avg_session_duration=record.avg_session_duration,
            bounce_rate=record.bounce_rate,
            local_traffic_rate=compute_local_traffic_rate(record.region_data, clinic.prefecture),
            paid_sessions=record.paid_sessions,
            paid_bounce_rate=record.paid_bounce_rate,
        )

    def _reviewed_competitors(self, records: Iterable[CompetitorRecord]) -> List[CompetitorMetrics]:
        """Competitors without any review snapshot are left out."""
        competitors = []
        for record in records or ():
            if record.latest_review is None:
                continue
            competitors.append(CompetitorMetrics(
                name=record.name,
                average_rating=record.latest_review.average_rating,
                total_reviews=record.latest_review.total_reviews,
            ))
        return competitors
