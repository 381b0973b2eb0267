"""
Pipeline services: boundary resolution, fetching, committing, gap location,
live synchronization and backfill orchestration.
"""

from .backfill import BackfillOrchestrator, BackfillRequest, parse_date, validate_backfill_args
from .boundary_resolver import BoundaryResolver, safe_fetch_origin
from .cluster_status import ClusterInspector, ClusterStatusReport
from .committer import ClusterCommitter
from .confirmation import TerminalConfirmation, auto_confirm
from .gap_locator import GapLocator
from .source_fetcher import SourceFetcher
from .synchronizer import SyncStage, Synchronizer

__all__ = [
    "BackfillOrchestrator",
    "BackfillRequest",
    "BoundaryResolver",
    "ClusterCommitter",
    "ClusterInspector",
    "ClusterStatusReport",
    "GapLocator",
    "SourceFetcher",
    "SyncStage",
    "Synchronizer",
    "TerminalConfirmation",
    "auto_confirm",
    "parse_date",
    "safe_fetch_origin",
    "validate_backfill_args",
]
