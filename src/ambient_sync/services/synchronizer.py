"""
Live Synchronization Service
============================

One live run over every destination cluster:

    IDLE -> RESOLVING_BOUNDARIES -> FETCHING -> CONVERTING
         -> COMMITTING -> REPORTING -> DONE
                          FETCHING -> ABORTED (hard fetch failure)

A single fetch starts at the safe fetch origin (the oldest boundary of all
clusters). Each cluster then receives only the readings strictly newer than
its own boundary, so re-fetching a span another cluster already holds never
writes duplicates. Clusters commit concurrently and fail independently.
"""

import asyncio
from enum import Enum
from typing import Dict, List, Optional, Sequence

from loguru import logger

from ..core.config import CATEGORIES, IMPERIAL, METRIC, Settings, settings
from ..core.exceptions import ClusterConnectionError, SourceError, SyncAbortedError
from ..domain.conversions import convert_to_metric
from ..domain.readings import newer_than
from ..domain.results import (
    Batch,
    ClusterStatus,
    ClusterSyncResult,
    CommitResult,
    ConvertedBatch,
    SyncReport,
    TooEarly,
    Unavailable,
)
from ..infrastructure.elasticsearch import ClusterClient
from .boundary_resolver import BoundaryResolver, safe_fetch_origin
from .committer import ClusterCommitter
from .source_fetcher import SourceFetcher


class SyncStage(str, Enum):
    IDLE = "idle"
    RESOLVING_BOUNDARIES = "resolving_boundaries"
    FETCHING = "fetching"
    CONVERTING = "converting"
    COMMITTING = "committing"
    REPORTING = "reporting"
    DONE = "done"
    ABORTED = "aborted"


class Synchronizer:
    """Live-mode pipeline over a fixed set of destination clusters."""

    def __init__(
        self,
        clusters: Sequence[ClusterClient],
        resolver: BoundaryResolver,
        fetcher: SourceFetcher,
        committer: ClusterCommitter,
        config: Optional[Settings] = None
    ):
        self.clusters = list(clusters)
        self.resolver = resolver
        self.fetcher = fetcher
        self.committer = committer
        self.config = config or settings
        self.stage = SyncStage.IDLE

    def _enter(self, stage: SyncStage) -> None:
        logger.debug(f"Stage {self.stage.value} -> {stage.value}")
        self.stage = stage

    async def run_live(self) -> SyncReport:
        """
        Execute one live run.

        Returns:
            SyncReport with one entry per cluster

        Raises:
            SyncAbortedError: If the fetch failed hard (nothing is committed)
        """
        self._enter(SyncStage.RESOLVING_BOUNDARIES)
        boundaries = await self.resolver.resolve_all(self.clusters)
        origin = safe_fetch_origin(boundaries)
        logger.info(f"📍 Boundaries: {boundaries}, safe fetch origin: {origin}")

        self._enter(SyncStage.FETCHING)
        try:
            outcome = await self.fetcher.fetch(origin)
        except SourceError as e:
            self._enter(SyncStage.ABORTED)
            logger.error(f"❌ Sync aborted: {e.message}")
            raise SyncAbortedError(SyncStage.FETCHING.value, e.message) from e

        if isinstance(outcome, (TooEarly, Unavailable)):
            reason = "too early" if isinstance(outcome, TooEarly) else f"source unavailable: {outcome.reason}"
            self._enter(SyncStage.REPORTING)
            report = SyncReport(
                outcome="too_early" if isinstance(outcome, TooEarly) else "unavailable",
                results=[
                    ClusterSyncResult(cluster=c.name, status=ClusterStatus.SKIPPED, reason=reason)
                    for c in self.clusters
                ],
                fetch_origin=origin,
                boundaries=boundaries,
            )
            self._log_report(report)
            self._enter(SyncStage.DONE)
            return report

        self._enter(SyncStage.CONVERTING)
        converted = self.convert(outcome)

        self._enter(SyncStage.COMMITTING)
        results = await asyncio.gather(
            *(self._commit_cluster(cluster, boundaries.get(cluster.name, {}), converted)
              for cluster in self.clusters),
            return_exceptions=True
        )

        cluster_results: List[ClusterSyncResult] = []
        for cluster, result in zip(self.clusters, results):
            if isinstance(result, BaseException):
                logger.error(f"[{cluster.name}] ❌ Commit crashed: {result}")
                result = ClusterSyncResult(cluster=cluster.name, status=ClusterStatus.ERROR, reason=str(result))
            cluster_results.append(result)

        self._enter(SyncStage.REPORTING)
        report = SyncReport(
            outcome="committed",
            results=cluster_results,
            fetch_origin=origin,
            boundaries=boundaries,
            fetched=len(outcome),
        )
        self._log_report(report)
        self._enter(SyncStage.DONE)
        return report

    @staticmethod
    def convert(batch: Batch) -> ConvertedBatch:
        """Batch in both unit systems."""
        return ConvertedBatch(
            batch=batch,
            imperial=list(batch.readings),
            metric=[convert_to_metric(r) for r in batch.readings],
        )

    async def _commit_cluster(
        self,
        cluster: ClusterClient,
        boundaries: Dict[str, Optional[int]],
        converted: ConvertedBatch
    ) -> ClusterSyncResult:
        """
        Filter to this cluster's own boundaries and commit; never raises.

        A boundary resolved as absent is looked up again once the cluster
        answers a ping. Writes only go ahead when that lookup confirms the
        index is empty or yields the boundary.
        """
        timeout = self.config.REMOTE_CALL_TIMEOUT_SECONDS
        imperial_result: Optional[CommitResult] = None
        try:
            reachable = await asyncio.wait_for(cluster.ping(), timeout=timeout)
            if not reachable:
                raise ClusterConnectionError(cluster.name, "no connection")

            confirmed = dict(boundaries)
            for category in CATEGORIES:
                if confirmed.get(category) is not None:
                    continue
                try:
                    confirmed[category] = await self.resolver.lookup(cluster, category)
                except Exception as e:
                    reason = getattr(e, "reason", None) or str(e) or type(e).__name__
                    logger.error(f"[{cluster.name}] ❌ {category} boundary unknown, skipping writes: {reason}")
                    return ClusterSyncResult(
                        cluster=cluster.name,
                        status=ClusterStatus.ERROR,
                        reason=f"boundary unknown: {reason}",
                    )

            imperial = newer_than(converted.imperial, confirmed.get(IMPERIAL))
            metric = newer_than(converted.metric, confirmed.get(METRIC))
            logger.info(
                f"[{cluster.name}] {len(imperial)} imperial / {len(metric)} metric readings "
                f"newer than stored boundaries"
            )

            imperial_result = await asyncio.wait_for(
                self.committer.commit(cluster, IMPERIAL, imperial), timeout=timeout
            )
            metric_result = await asyncio.wait_for(
                self.committer.commit(cluster, METRIC, metric), timeout=timeout
            )
        except ClusterConnectionError as e:
            logger.error(f"[{cluster.name}] ❌ No connection, skipping writes")
            return ClusterSyncResult(cluster=cluster.name, status=ClusterStatus.ERROR, reason=e.reason)
        except asyncio.TimeoutError:
            logger.error(f"[{cluster.name}] ❌ Timed out after {timeout:g}s")
            return ClusterSyncResult(
                cluster=cluster.name,
                status=ClusterStatus.ERROR,
                reason=f"timed out after {timeout:g}s",
                imperial=imperial_result,
            )
        except Exception as e:
            logger.exception(f"[{cluster.name}] ❌ Commit failed: {e}")
            reason = getattr(e, "reason", None) or str(e)
            return ClusterSyncResult(
                cluster=cluster.name, status=ClusterStatus.ERROR, reason=reason, imperial=imperial_result
            )

        return ClusterSyncResult(
            cluster=cluster.name,
            status=ClusterStatus.SUCCESS,
            imperial=imperial_result,
            metric=metric_result,
            data_source=converted.batch.source,
        )

    def _log_report(self, report: SyncReport) -> None:
        logger.info(f"📋 Sync {report.outcome}: fetched {report.fetched} readings")
        for result in report.results:
            line = f"[{result.cluster}] {result.status.value}"
            if result.status == ClusterStatus.SUCCESS:
                line += f", count: {result.count}"
            if result.reason:
                line += f", reason: {result.reason}"
            if result.status == ClusterStatus.ERROR:
                logger.error(line)
            else:
                logger.info(line)
