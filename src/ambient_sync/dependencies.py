"""
Dependency Construction Module
==============================

Builds cluster handles, collaborators and services from settings.
Every run gets its own handles; nothing here is cached at module level.

Usage:
    synchronizer = build_synchronizer()
    try:
        report = await synchronizer.run_live()
    finally:
        await close_clusters(synchronizer.clusters)
"""

import logging
from typing import List, Optional, Sequence

from .core.config import CLUSTER_NAMES, Settings, settings
from .infrastructure.archive import LocalArchive
from .infrastructure.elasticsearch import ClusterClient
from .infrastructure.external_apis import AmbientWeatherAPIClient
from .services import (
    BackfillOrchestrator,
    BoundaryResolver,
    ClusterCommitter,
    ClusterInspector,
    GapLocator,
    SourceFetcher,
    Synchronizer,
    auto_confirm,
)
from .services.confirmation import ConfirmFn

logger = logging.getLogger(__name__)


# =================================================================
# INFRASTRUCTURE
# =================================================================

def build_cluster_client(name: str, config: Optional[Settings] = None) -> ClusterClient:
    """Handle on the PRODUCTION or STAGING cluster (connects lazily)."""
    config = config or settings
    return ClusterClient(
        config.cluster_settings(name),
        alias_prefix=config.ALIAS_PREFIX,
        request_timeout=config.ES_REQUEST_TIMEOUT_SECONDS,
    )


def build_cluster_clients(
    names: Sequence[str] = CLUSTER_NAMES,
    config: Optional[Settings] = None
) -> List[ClusterClient]:
    return [build_cluster_client(name, config) for name in names]


def build_api_client(config: Optional[Settings] = None) -> AmbientWeatherAPIClient:
    """
    Ambient Weather client from settings.

    Raises:
        ValueError: If the API or application key is missing
    """
    config = config or settings
    return AmbientWeatherAPIClient(
        api_key=config.AMBIENT_WEATHER_API_KEY,
        application_key=config.AMBIENT_WEATHER_APPLICATION_KEY,
        base_url=config.AMBIENT_WEATHER_API_BASE_URL,
        timeout=config.AMBIENT_WEATHER_TIMEOUT_SECONDS,
    )


def build_archive(config: Optional[Settings] = None) -> LocalArchive:
    config = config or settings
    return LocalArchive(config.DATA_DIR)


def build_fetcher(config: Optional[Settings] = None) -> SourceFetcher:
    config = config or settings
    return SourceFetcher(
        archive=build_archive(config),
        api_client_factory=lambda: build_api_client(config),
        config=config,
    )


async def close_clusters(clusters: Sequence[ClusterClient]) -> None:
    """Close every handle; a failing close is logged, not raised."""
    for cluster in clusters:
        try:
            await cluster.close()
        except Exception as e:
            logger.warning(f"⚠️ [{cluster.name}] Failed to close client: {e}")


# =================================================================
# SERVICES
# =================================================================

def build_synchronizer(config: Optional[Settings] = None) -> Synchronizer:
    config = config or settings
    return Synchronizer(
        clusters=build_cluster_clients(CLUSTER_NAMES, config),
        resolver=BoundaryResolver(config),
        fetcher=build_fetcher(config),
        committer=ClusterCommitter(config),
        config=config,
    )


def build_backfill_orchestrator(
    cluster_names: Sequence[str],
    confirm: ConfirmFn = auto_confirm,
    config: Optional[Settings] = None
) -> BackfillOrchestrator:
    config = config or settings
    return BackfillOrchestrator(
        clusters=build_cluster_clients(cluster_names, config),
        locator=GapLocator(config),
        fetcher=build_fetcher(config),
        committer=ClusterCommitter(config),
        confirm=confirm,
        config=config,
    )


def build_inspector(config: Optional[Settings] = None) -> ClusterInspector:
    config = config or settings
    return ClusterInspector(BoundaryResolver(config), config)
