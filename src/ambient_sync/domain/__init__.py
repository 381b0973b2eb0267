"""
Domain Layer
============

Station readings, unit conversion and the outcome types exchanged by the
pipeline stages.
"""

from .readings import ImperialReading, MetricReading, Reading
from .conversions import convert_to_metric
from .results import (
    Batch,
    BackfillReport,
    ClusterStatus,
    ClusterSyncResult,
    CommitResult,
    ConvertedBatch,
    FetchOutcome,
    Gap,
    SyncReport,
    TooEarly,
    Unavailable,
)

__all__ = [
    "Reading",
    "ImperialReading",
    "MetricReading",
    "convert_to_metric",
    "Batch",
    "BackfillReport",
    "ClusterStatus",
    "ClusterSyncResult",
    "CommitResult",
    "ConvertedBatch",
    "FetchOutcome",
    "Gap",
    "SyncReport",
    "TooEarly",
    "Unavailable",
]
