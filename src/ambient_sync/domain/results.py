"""
Outcome and report types passed between the pipeline stages.

Fetching yields one of Batch | TooEarly | Unavailable; hard failures are
raised as exceptions instead of being encoded in the outcome.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from .readings import ImperialReading, MetricReading


def format_epoch(epoch_ms: int) -> str:
    return datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


# =================================================================
# FETCH OUTCOMES
# =================================================================

@dataclass(frozen=True)
class Batch:
    """Readings covering (from_epoch, to_epoch], ascending by dateutc."""
    from_epoch: int
    to_epoch: int
    readings: List[ImperialReading]
    source: str = "api"  # "api", "local" or "local+api"

    @property
    def name(self) -> str:
        return f"{self.from_epoch}_{self.to_epoch}"

    def __len__(self) -> int:
        return len(self.readings)


@dataclass(frozen=True)
class TooEarly:
    """Less than the minimum interval has passed since the last fetch."""
    last_fetch_epoch: int
    next_allowed_epoch: int


@dataclass(frozen=True)
class Unavailable:
    """The source timed out or could not be reached; nothing to commit."""
    reason: str


FetchOutcome = Union[Batch, TooEarly, Unavailable]


@dataclass(frozen=True)
class ConvertedBatch:
    """A Batch in both unit systems, index-aligned by dateutc."""
    batch: Batch
    imperial: List[ImperialReading]
    metric: List[MetricReading]


# =================================================================
# GAPS
# =================================================================

@dataclass(frozen=True)
class Gap:
    """Interval between the last stored document before a window and the first after it."""
    cluster: str
    found: bool
    start_epoch: int
    end_epoch: int

    @property
    def duration_ms(self) -> int:
        return self.end_epoch - self.start_epoch

    @property
    def duration_hours(self) -> float:
        return self.duration_ms / 3_600_000

    @property
    def duration_days(self) -> float:
        return self.duration_ms / 86_400_000

    def summary(self) -> Dict[str, Any]:
        return {
            "cluster": self.cluster,
            "start": format_epoch(self.start_epoch),
            "end": format_epoch(self.end_epoch),
            "duration_hours": round(self.duration_hours, 2),
            "duration_days": round(self.duration_days, 2),
        }


# =================================================================
# COMMIT & REPORTS
# =================================================================

class ClusterStatus(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"
    ERROR = "error"


@dataclass
class CommitResult:
    """Outcome of one bulk write for one (cluster, category)."""
    category: str
    attempted: int = 0
    total_count: Optional[int] = None
    errored_documents: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def written(self) -> int:
        return self.attempted - len(self.errored_documents)


@dataclass
class ClusterSyncResult:
    """Per-cluster entry of the end-of-run report."""
    cluster: str
    status: ClusterStatus
    reason: Optional[str] = None
    imperial: Optional[CommitResult] = None
    metric: Optional[CommitResult] = None
    data_source: Optional[str] = None
    gap: Optional[Gap] = None

    @property
    def count(self) -> int:
        return self.imperial.attempted if self.imperial else 0

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"cluster": self.cluster, "status": self.status.value, "count": self.count}
        if self.reason:
            data["reason"] = self.reason
        if self.data_source:
            data["data_source"] = self.data_source
        for result in (self.imperial, self.metric):
            if result is not None:
                data[result.category] = {
                    "attempted": result.attempted,
                    "errors": len(result.errored_documents),
                    "total_count": result.total_count,
                }
        if self.gap is not None:
            data["gap"] = self.gap.summary()
        return data


@dataclass
class SyncReport:
    """Aggregate outcome of one live-mode run."""
    outcome: str  # "committed", "too_early" or "unavailable"
    results: List[ClusterSyncResult] = field(default_factory=list)
    fetch_origin: Optional[int] = None
    boundaries: Dict[str, Dict[str, Optional[int]]] = field(default_factory=dict)
    fetched: int = 0

    def result_for(self, cluster: str) -> Optional[ClusterSyncResult]:
        return next((r for r in self.results if r.cluster == cluster), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "outcome": self.outcome,
            "fetch_origin": self.fetch_origin,
            "fetched": self.fetched,
            "clusters": [r.to_dict() for r in self.results],
        }


@dataclass
class BackfillReport:
    """Aggregate outcome of one backfill invocation."""
    from_epoch: int
    to_epoch: int
    results: List[ClusterSyncResult] = field(default_factory=list)

    @property
    def mode(self) -> str:
        return "dual-cluster" if len(self.results) > 1 else "single-cluster"

    def result_for(self, cluster: str) -> Optional[ClusterSyncResult]:
        return next((r for r in self.results if r.cluster == cluster), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode,
            "from": format_epoch(self.from_epoch),
            "to": format_epoch(self.to_epoch),
            "clusters": [r.to_dict() for r in self.results],
        }
