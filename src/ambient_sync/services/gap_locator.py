"""
Gap Location Service
====================

Anchors a requested backfill window on real stored documents: the last
reading at or before the window start and the first at or after its end.
The interval between the two is a gap only when it is longer than the
minimum gap (twice the station sampling rate by default); anything
shorter is normal spacing between consecutive readings.
"""

import asyncio
from typing import Optional

from loguru import logger

from ..core.config import Settings, settings
from ..domain.results import Gap, format_epoch
from ..infrastructure.elasticsearch import BOUNDARY_FIELDS, ClusterClient
from .boundary_resolver import document_epoch


class GapLocator:
    """Finds the missing interval around a requested window on one cluster."""

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or settings

    async def _edge(self, cluster: ClusterClient, pattern: str, **bounds) -> Optional[int]:
        """Timestamp of the single nearest document within the bounds."""
        documents = await asyncio.wait_for(
            cluster.range_search(pattern, size=1, fields=BOUNDARY_FIELDS, **bounds),
            timeout=self.config.REMOTE_CALL_TIMEOUT_SECONDS
        )
        return document_epoch(documents[0]) if documents else None

    async def locate(
        self,
        cluster: ClusterClient,
        category: str,
        from_ms: int,
        to_ms: int
    ) -> Gap:
        """
        Locate the gap covering [from_ms, to_ms].

        Query failures propagate; the caller owns per-cluster isolation.

        Returns:
            Gap whose start/end are the surrounding stored timestamps, or the
            requested dates where no such document exists
        """
        pattern = self.config.read_pattern(category)
        logger.info(f"[{cluster.name}] 🔍 Looking for gap boundaries in {pattern}")

        before = await self._edge(cluster, pattern, lte=from_ms, sort="desc")
        after = await self._edge(cluster, pattern, gte=to_ms, sort="asc")

        if before is None:
            logger.warning(f"[{cluster.name}] No document before {format_epoch(from_ms)}, using requested start")
        if after is None:
            logger.warning(f"[{cluster.name}] No document after {format_epoch(to_ms)}, using requested end")

        start = before if before is not None else from_ms
        end = after if after is not None else to_ms
        found = end - start > self.config.min_gap_ms

        gap = Gap(cluster=cluster.name, found=found, start_epoch=start, end_epoch=end)
        if found:
            logger.info(
                f"[{cluster.name}] 📊 Gap found: {format_epoch(start)} -> {format_epoch(end)} "
                f"({gap.duration_hours:.2f} hours)"
            )
        else:
            logger.info(f"[{cluster.name}] No gap larger than {self.config.MIN_GAP_MINUTES:g} minutes")
        return gap
