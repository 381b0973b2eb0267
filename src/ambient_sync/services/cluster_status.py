"""
Cluster status inspection: reachability, write indices, boundaries and
document counts of each cluster, gathered independently.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from loguru import logger

from ..core.config import CATEGORIES, Settings, settings
from ..domain.results import format_epoch
from ..infrastructure.elasticsearch import ClusterClient
from .boundary_resolver import BoundaryResolver


@dataclass
class ClusterStatusReport:
    cluster: str
    reachable: bool = False
    write_indices: Dict[str, str] = field(default_factory=dict)
    boundaries: Dict[str, Optional[int]] = field(default_factory=dict)
    counts: Dict[str, Optional[int]] = field(default_factory=dict)
    error: Optional[str] = None

    def lines(self) -> List[str]:
        if self.error:
            return [f"[{self.cluster}] error: {self.error}"]
        if not self.reachable:
            return [f"[{self.cluster}] error: no connection"]

        lines = [f"[{self.cluster}] reachable"]
        for category in CATEGORIES:
            boundary = self.boundaries.get(category)
            lines.append(
                f"  {category:<8} write index: {self.write_indices.get(category, '-')}, "
                f"latest: {format_epoch(boundary) if boundary is not None else '-'}, "
                f"documents: {self.counts.get(category, '-')}"
            )
        return lines


class ClusterInspector:
    """Read-only health overview of the destination clusters."""

    def __init__(self, resolver: BoundaryResolver, config: Optional[Settings] = None):
        self.resolver = resolver
        self.config = config or settings

    async def inspect(self, cluster: ClusterClient) -> ClusterStatusReport:
        report = ClusterStatusReport(cluster=cluster.name)
        try:
            report.reachable = await asyncio.wait_for(
                cluster.ping(), timeout=self.config.REMOTE_CALL_TIMEOUT_SECONDS
            )
            if not report.reachable:
                return report

            report.write_indices = await cluster.get_write_indices()
            for category in CATEGORIES:
                report.boundaries[category] = await self.resolver.resolve(cluster, category)
                report.counts[category] = await cluster.count(self.config.read_pattern(category))
        except asyncio.TimeoutError:
            report.error = "timed out"
        except Exception as e:
            logger.warning(f"[{cluster.name}] ⚠️ Status check failed: {e}")
            report.error = getattr(e, "reason", None) or str(e)
        return report

    async def inspect_all(self, clusters: Sequence[ClusterClient]) -> List[ClusterStatusReport]:
        return list(await asyncio.gather(*(self.inspect(c) for c in clusters)))
