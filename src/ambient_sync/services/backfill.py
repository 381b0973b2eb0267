"""
Backfill Orchestration Service
==============================

Operator-driven filling of one historical gap per target cluster.

For each cluster, sequentially:
1. Locate the gap around the requested window (real stored boundaries)
2. Ask for confirmation (skippable with --yes)
3. Source readings strictly between the boundaries: archive first,
   upstream API (cooldown bypassed) for the rest
4. Commit imperial and metric readings to that cluster only

A failure on one cluster is recorded in its result and the next cluster
still runs.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from loguru import logger

from ..core.config import IMPERIAL, METRIC, PRODUCTION, STAGING, Settings, settings
from ..core.exceptions import AmbientSyncException, BackfillValidationError
from ..domain.conversions import convert_to_metric
from ..domain.readings import strictly_between
from ..domain.results import (
    BackfillReport,
    ClusterStatus,
    ClusterSyncResult,
    TooEarly,
    Unavailable,
    format_epoch,
)
from ..infrastructure.elasticsearch import ClusterClient
from .committer import ClusterCommitter
from .confirmation import ConfirmFn, auto_confirm
from .gap_locator import GapLocator
from .source_fetcher import SourceFetcher

DATE_FORMAT = "%Y-%m-%d"


@dataclass(frozen=True)
class BackfillRequest:
    clusters: List[str]
    from_epoch: int
    to_epoch: int


def parse_date(value: Optional[str], flag: str) -> int:
    """YYYY-MM-DD at 00:00 UTC, in epoch milliseconds."""
    if not value:
        raise BackfillValidationError(f"{flag} is required (format: YYYY-MM-DD)", {"flag": flag})
    try:
        parsed = datetime.strptime(value, DATE_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        raise BackfillValidationError(
            f"Invalid {flag} date '{value}', expected YYYY-MM-DD",
            {"flag": flag, "value": value}
        )
    return int(parsed.timestamp() * 1000)


def validate_backfill_args(
    prod: bool,
    staging: bool,
    both: bool,
    from_date: Optional[str],
    to_date: Optional[str]
) -> BackfillRequest:
    """
    Check backfill arguments before any remote call.

    Raises:
        BackfillValidationError: On missing or conflicting cluster flags,
            malformed dates, or a start not before the end
    """
    selected = [flag for flag, on in (("--prod", prod), ("--staging", staging), ("--both", both)) if on]
    if not selected:
        raise BackfillValidationError("Must specify a target cluster: --prod, --staging or --both")
    if len(selected) > 1:
        raise BackfillValidationError(
            f"Only one cluster flag allowed, got {' '.join(selected)}",
            {"flags": selected}
        )

    from_epoch = parse_date(from_date, "--from")
    to_epoch = parse_date(to_date, "--to")
    if from_epoch >= to_epoch:
        raise BackfillValidationError(
            f"--from ({from_date}) must be before --to ({to_date})",
            {"from": from_date, "to": to_date}
        )

    if both:
        clusters = [PRODUCTION, STAGING]
    elif prod:
        clusters = [PRODUCTION]
    else:
        clusters = [STAGING]
    return BackfillRequest(clusters=clusters, from_epoch=from_epoch, to_epoch=to_epoch)


class BackfillOrchestrator:
    """Runs locate -> confirm -> source -> commit for each target cluster in turn."""

    def __init__(
        self,
        clusters: Sequence[ClusterClient],
        locator: GapLocator,
        fetcher: SourceFetcher,
        committer: ClusterCommitter,
        confirm: ConfirmFn = auto_confirm,
        config: Optional[Settings] = None
    ):
        self.clusters = list(clusters)
        self.locator = locator
        self.fetcher = fetcher
        self.committer = committer
        self.confirm = confirm
        self.config = config or settings

    async def run(self, from_epoch: int, to_epoch: int) -> BackfillReport:
        """Backfill [from_epoch, to_epoch] on every target cluster, one after another."""
        report = BackfillReport(from_epoch=from_epoch, to_epoch=to_epoch)
        total = len(self.clusters)
        logger.info(
            f"🔄 Backfill {format_epoch(from_epoch)} -> {format_epoch(to_epoch)} "
            f"on {', '.join(c.name for c in self.clusters)}"
        )

        for position, cluster in enumerate(self.clusters, start=1):
            label = f" ({position} of {total})" if total > 1 else ""
            result = await self._backfill_cluster(cluster, from_epoch, to_epoch, label)
            report.results.append(result)

        self._log_report(report)
        return report

    async def _backfill_cluster(
        self,
        cluster: ClusterClient,
        from_epoch: int,
        to_epoch: int,
        label: str
    ) -> ClusterSyncResult:
        """Whole flow for one cluster; never raises."""
        try:
            gap = await self.locator.locate(cluster, IMPERIAL, from_epoch, to_epoch)
            if not gap.found:
                logger.info(f"[{cluster.name}] ✅ Requested range already complete")
                return ClusterSyncResult(
                    cluster=cluster.name, status=ClusterStatus.SUCCESS, reason="already complete", gap=gap
                )

            if not self.confirm(gap, label):
                logger.info(f"[{cluster.name}] Backfill cancelled by operator")
                return ClusterSyncResult(
                    cluster=cluster.name, status=ClusterStatus.CANCELLED, reason="cancelled by user", gap=gap
                )

            outcome = await self.fetcher.fetch(
                gap.start_epoch,
                bypass_cooldown=True,
                until_ms=gap.end_epoch,
                persist=False,
                exclusive_end=True,
            )
            if isinstance(outcome, Unavailable):
                return ClusterSyncResult(
                    cluster=cluster.name, status=ClusterStatus.ERROR,
                    reason=f"source unavailable: {outcome.reason}", gap=gap
                )
            if isinstance(outcome, TooEarly):
                return ClusterSyncResult(
                    cluster=cluster.name, status=ClusterStatus.SKIPPED, reason="too early", gap=gap
                )
            readings = strictly_between(outcome.readings, gap.start_epoch, gap.end_epoch)
            if not readings:
                logger.warning(f"[{cluster.name}] ⚠️ No data available for specified range")
                return ClusterSyncResult(
                    cluster=cluster.name, status=ClusterStatus.SKIPPED,
                    reason="no data available for specified range", data_source=outcome.source, gap=gap
                )

            logger.info(f"[{cluster.name}] 📊 {len(readings)} readings from {outcome.source}")
            imperial = await self.committer.commit(cluster, IMPERIAL, readings)
            metric = await self.committer.commit(
                cluster, METRIC, [convert_to_metric(r) for r in readings]
            )
        except asyncio.TimeoutError:
            logger.error(f"[{cluster.name}] ❌ Backfill timed out")
            return ClusterSyncResult(cluster=cluster.name, status=ClusterStatus.ERROR, reason="timed out")
        except AmbientSyncException as e:
            logger.error(f"[{cluster.name}] ❌ Backfill failed: {e.message}")
            reason = getattr(e, "reason", None) or e.message
            return ClusterSyncResult(cluster=cluster.name, status=ClusterStatus.ERROR, reason=reason)
        except Exception as e:
            logger.exception(f"[{cluster.name}] ❌ Backfill failed: {e}")
            return ClusterSyncResult(cluster=cluster.name, status=ClusterStatus.ERROR, reason=str(e))

        return ClusterSyncResult(
            cluster=cluster.name,
            status=ClusterStatus.SUCCESS,
            imperial=imperial,
            metric=metric,
            data_source=outcome.source,
            gap=gap,
        )

    def _log_report(self, report: BackfillReport) -> None:
        logger.info(f"📋 Backfill summary ({report.mode})")
        for result in report.results:
            line = f"[{result.cluster}] {result.status.value}"
            if result.imperial is not None:
                line += (
                    f", records: {result.count}, imperial errors: {len(result.imperial.errored_documents)}, "
                    f"metric errors: {len(result.metric.errored_documents) if result.metric else 0}"
                )
            if result.reason:
                line += f", {result.reason}"
            if result.status == ClusterStatus.ERROR:
                logger.error(line)
            else:
                logger.info(line)
