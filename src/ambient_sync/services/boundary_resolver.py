"""
Boundary Resolution Service
===========================

Finds, per cluster and category, the timestamp of the most recent stored
reading. That timestamp is the duplicate-prevention watermark: only
readings strictly newer than it may be written to that cluster.

`resolve` never raises: an unreachable cluster, a failing query and an
empty index all come back as None ("absent"). `lookup` raises on failure so
a caller can tell an empty index from a boundary it could not read.
"""

import asyncio
from datetime import datetime
from typing import Any, Dict, Optional, Sequence

from loguru import logger

from ..core.config import CATEGORIES, Settings, settings
from ..core.exceptions import ClusterQueryError
from ..infrastructure.elasticsearch import ClusterClient

Boundaries = Dict[str, Dict[str, Optional[int]]]


def document_epoch(document: Dict[str, Any]) -> Optional[int]:
    """Epoch milliseconds of a stored document (dateutc, else its ISO date)."""
    value = document.get("dateutc")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return int(value)

    for key in ("date", "@timestamp"):
        text = document.get(key)
        if isinstance(text, str):
            try:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                continue
            return int(parsed.timestamp() * 1000)
    return None


def safe_fetch_origin(boundaries: Boundaries) -> Optional[int]:
    """
    Oldest boundary over every cluster and category.

    None as soon as any boundary is absent: that cluster's needs are
    unknown, so the fetcher falls back to its archive-driven default.
    """
    values = [b for per_cluster in boundaries.values() for b in per_cluster.values()]
    if not values or any(b is None for b in values):
        return None
    return min(values)


class BoundaryResolver:
    """Reads the latest stored timestamp of each (cluster, category)."""

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or settings

    async def lookup(self, cluster: ClusterClient, category: str) -> Optional[int]:
        """
        Latest stored dateutc of the category.

        Returns:
            The boundary, or None only when the index holds no documents

        Raises:
            asyncio.TimeoutError: If the cluster did not answer in time
            ClusterQueryError: If the latest document has no usable timestamp
            Exception: Whatever the cluster client raised
        """
        pattern = self.config.read_pattern(category)
        document = await asyncio.wait_for(
            cluster.latest_document(pattern),
            timeout=self.config.REMOTE_CALL_TIMEOUT_SECONDS
        )
        if document is None:
            logger.info(f"[{cluster.name}] No {category} documents stored yet")
            return None

        boundary = document_epoch(document)
        if boundary is None:
            raise ClusterQueryError(cluster.name, pattern, "latest document has no usable timestamp")
        logger.info(f"[{cluster.name}] 📍 Latest {category} reading at {boundary}")
        return boundary

    async def resolve(self, cluster: ClusterClient, category: str) -> Optional[int]:
        """Latest stored dateutc of the category, or None if absent or unknown."""
        try:
            return await self.lookup(cluster, category)
        except asyncio.TimeoutError:
            logger.warning(f"[{cluster.name}] ⚠️ Boundary lookup for {category} timed out, treating as absent")
            return None
        except Exception as e:
            logger.warning(f"[{cluster.name}] ⚠️ Boundary lookup for {category} failed, treating as absent: {e}")
            return None

    async def resolve_all(self, clusters: Sequence[ClusterClient]) -> Boundaries:
        """Resolve every (cluster, category) concurrently."""
        pairs = [(cluster, category) for cluster in clusters for category in CATEGORIES]
        results = await asyncio.gather(
            *(self.resolve(cluster, category) for cluster, category in pairs),
            return_exceptions=True
        )

        boundaries: Boundaries = {cluster.name: {} for cluster in clusters}
        for (cluster, category), result in zip(pairs, results):
            if isinstance(result, BaseException):
                logger.warning(f"[{cluster.name}] ⚠️ Boundary lookup crashed: {result}")
                result = None
            boundaries[cluster.name][category] = result
        return boundaries
