"""
Dental Marketing Analyzer - Data Collection Package

Assembles the MetricSnapshot consumed by scoring and the prompt builder:
- Storage interface (MetricStore protocol and its record types)
- SnapshotAssembler (concurrent per-clinic reads)
- Local traffic rate from GA4 region data
"""

from .store import AnalyticsRecord, CompetitorRecord, MetricStore
from .assembler import (
    PREFECTURE_REGIONS,
    SnapshotAssembler,
    compute_local_traffic_rate,
    prefecture_aliases,
)

__all__ = [
    # Store
    "AnalyticsRecord",
    "CompetitorRecord",
    "MetricStore",

    # Assembler
    "SnapshotAssembler",
    "PREFECTURE_REGIONS",
    "compute_local_traffic_rate",
    "prefecture_aliases",
]
