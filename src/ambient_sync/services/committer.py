"""
Per-Cluster Commit Service
==========================

Writes already-filtered readings of one category to one cluster in a
single bulk call, then reads back the category's total document count.

Documents rejected individually by the cluster are reported, not raised.
A bulk request that fails as a whole raises ClusterWriteError.
"""

from typing import Optional, Sequence

from loguru import logger

from ..core.config import Settings, settings
from ..core.exceptions import ClusterQueryError
from ..core.logging_config import PerformanceLogger
from ..domain.readings import Reading
from ..domain.results import CommitResult
from ..infrastructure.elasticsearch import ClusterClient


class ClusterCommitter:
    """Bulk writer for one (cluster, category) at a time."""

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or settings

    async def commit(
        self,
        cluster: ClusterClient,
        category: str,
        readings: Sequence[Reading]
    ) -> CommitResult:
        """
        Bulk write readings through the category's write alias.

        Args:
            cluster: Destination cluster
            category: "imperial" or "metric"
            readings: Readings already filtered to the cluster's boundary

        Returns:
            CommitResult with attempted count, post-write total and rejections
        """
        if not readings:
            logger.info(f"[{cluster.name}] No new {category} readings to index")
            return CommitResult(category=category)

        alias = self.config.write_alias(category)
        with PerformanceLogger(f"{cluster.name} {category} bulk write"):
            written = await cluster.bulk_write(alias, [r.to_document() for r in readings])

        if written.errored_documents:
            logger.warning(
                f"[{cluster.name}] ⚠️ {len(written.errored_documents)} of {written.attempted} "
                f"{category} documents rejected"
            )
            for rejected in written.errored_documents:
                logger.debug(f"[{cluster.name}] Rejected document: {rejected}")

        total: Optional[int] = None
        try:
            total = await cluster.count(self.config.read_pattern(category))
        except ClusterQueryError as e:
            logger.warning(f"[{cluster.name}] ⚠️ Could not confirm {category} count: {e.reason}")

        logger.info(f"[{cluster.name}] ✅ Indexed {written.attempted} {category} documents (total: {total})")
        return CommitResult(
            category=category,
            attempted=written.attempted,
            total_count=total,
            errored_documents=written.errored_documents,
        )
