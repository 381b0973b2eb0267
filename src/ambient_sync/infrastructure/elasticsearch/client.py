"""
Elasticsearch Cluster Client Module
===================================

Provides one handle per destination cluster with:
- Lazy AsyncElasticsearch construction from cloud id or URL
- Retries on transport failures (tenacity)
- Latest-document, ranged search, bulk write, count and alias listing
- Domain exceptions naming the cluster on every failure

Handles are built explicitly and passed down the call chain; there is no
shared module-level client.

Usage:
    from ambient_sync.infrastructure.elasticsearch import ClusterClient

    async with ClusterClient(settings.cluster_settings("STAGING")) as cluster:
        latest = await cluster.latest_document("ambient_weather_heiligers_imperial_*")
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from elasticsearch import (
    ApiError,
    AsyncElasticsearch,
    ConnectionError as ESConnectionError,
    ConnectionTimeout,
    TransportError,
)
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ...core.config import CATEGORIES, ClusterSettings
from ...core.exceptions import (
    ClusterConfigurationError,
    ClusterQueryError,
    ClusterWriteError,
)
from .queries import bulk_index_operations, latest_document_search, range_document_search

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (ESConnectionError, ConnectionTimeout)


def _body(response: Any) -> Any:
    """Plain body of an API response (responses from mocks are already plain)."""
    return getattr(response, "body", response)


@dataclass
class BulkWriteResult:
    """Result of one bulk call: documents sent and the ones rejected."""
    attempted: int
    errored_documents: List[Dict[str, Any]] = field(default_factory=list)


class ClusterClient:
    """
    Handle on one Elasticsearch cluster.

    Provides:
    - Connection management
    - Automatic retries on transport errors
    - The search/write/count primitives the pipeline needs
    """

    def __init__(
        self,
        cluster_settings: ClusterSettings,
        alias_prefix: str = "all-ambient-weather-heiligers",
        request_timeout: int = 30,
        max_attempts: int = 3,
        retry_wait_seconds: float = 1.0,
        client: Optional[AsyncElasticsearch] = None
    ):
        """
        Initialize a cluster handle.

        Args:
            cluster_settings: Connection settings (name, cloud id or URL, credentials)
            alias_prefix: Prefix of the per-category write aliases
            request_timeout: Per-request timeout in seconds
            max_attempts: Attempts per call on transport errors
            retry_wait_seconds: Base of the exponential backoff
            client: Pre-built client (tests)
        """
        self.settings = cluster_settings
        self.name = cluster_settings.name
        self.alias_prefix = alias_prefix
        self.request_timeout = request_timeout
        self.max_attempts = max_attempts
        self.retry_wait_seconds = retry_wait_seconds
        self._client = client

    @property
    def es(self) -> AsyncElasticsearch:
        """Get or create the AsyncElasticsearch instance (lazy loading)."""
        if self._client is None:
            missing = self.settings.missing_variables()
            if missing:
                raise ClusterConfigurationError(self.name, missing)

            options: Dict[str, Any] = {
                "basic_auth": (self.settings.username, self.settings.password),
                "request_timeout": self.request_timeout,
            }
            if self.settings.cloud_id:
                options["cloud_id"] = self.settings.cloud_id
            else:
                options["hosts"] = [self.settings.url]

            self._client = AsyncElasticsearch(**options)
            logger.info(f"✅ [{self.name}] Elasticsearch client created")

        return self._client

    async def _call(self, operation, **kwargs) -> Any:
        """Run one client coroutine, retrying transport failures."""
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.retry_wait_seconds, max=10),
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                return await operation(**kwargs)

    async def ping(self) -> bool:
        """True when the cluster answers; never raises for transport problems."""
        try:
            return bool(await self.es.ping())
        except (TransportError, ApiError) as e:
            logger.warning(f"⚠️ [{self.name}] Ping failed: {e}")
            return False

    async def get_write_indices(self) -> Dict[str, str]:
        """
        Map each category to the index its write alias currently targets.

        Returns:
            Dict like {"imperial": "ambient_weather_heiligers_imperial_2024_01", ...};
            categories without a write index are absent.

        Raises:
            ClusterQueryError: If the alias listing fails
        """
        pattern = f"*{self.alias_prefix}-*"
        try:
            response = await self._call(
                self.es.cat.aliases,
                name=pattern,
                format="json",
                h="alias,index,is_write_index",
                expand_wildcards="all",
            )
        except (TransportError, ApiError) as e:
            raise ClusterQueryError(self.name, pattern, str(e)) from e

        write_indices: Dict[str, str] = {}
        for entry in _body(response) or []:
            if str(entry.get("is_write_index", "")).lower() != "true":
                continue
            for category in CATEGORIES:
                if entry.get("alias", "").endswith(f"-{category}"):
                    write_indices[category] = entry["index"]

        logger.debug(f"[{self.name}] Write indices: {write_indices}")
        return write_indices

    async def search(self, request: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        Execute a prepared search and return the hits' _source documents.

        Raises:
            ClusterQueryError: If the search fails
        """
        try:
            response = await self._call(self.es.search, **request)
        except (TransportError, ApiError) as e:
            raise ClusterQueryError(self.name, request.get("index", "?"), str(e)) from e

        hits = _body(response).get("hits", {}).get("hits", [])
        return [hit.get("_source", {}) for hit in hits]

    async def latest_document(self, index_pattern: str) -> Optional[Dict[str, Any]]:
        """Most recent document of the pattern, or None when there is none."""
        documents = await self.search(latest_document_search(index_pattern))
        return documents[0] if documents else None

    async def range_search(
        self,
        index_pattern: str,
        gte: Optional[int] = None,
        lte: Optional[int] = None,
        sort: str = "asc",
        size: int = 1,
        fields: Optional[List[str]] = None
    ) -> List[Dict[str, Any]]:
        """Documents with gte <= dateutc <= lte, sorted by dateutc."""
        return await self.search(range_document_search(index_pattern, gte, lte, sort, size, fields))

    async def bulk_write(self, index: str, documents: List[Dict[str, Any]]) -> BulkWriteResult:
        """
        Index documents in one bulk request.

        Individual rejections are returned, not raised.

        Raises:
            ClusterWriteError: If the bulk request as a whole fails
        """
        if not documents:
            return BulkWriteResult(attempted=0)

        try:
            response = await self._call(
                self.es.bulk,
                operations=bulk_index_operations(index, documents),
                refresh=True,
            )
        except (TransportError, ApiError) as e:
            raise ClusterWriteError(self.name, index, str(e)) from e

        body = _body(response)
        errored: List[Dict[str, Any]] = []
        if body.get("errors"):
            for item, document in zip(body.get("items", []), documents):
                action = next(iter(item.values()), {})
                if "error" in action:
                    errored.append({
                        "status": action.get("status"),
                        "error": action.get("error"),
                        "document": document,
                    })

        logger.info(f"✅ [{self.name}] Bulk wrote {len(documents)} documents to {index} "
                    f"({len(errored)} rejected)")
        return BulkWriteResult(attempted=len(documents), errored_documents=errored)

    async def count(self, index_pattern: str) -> int:
        """
        Number of documents in the pattern.

        Raises:
            ClusterQueryError: If the count fails
        """
        try:
            response = await self._call(self.es.count, index=index_pattern)
        except (TransportError, ApiError) as e:
            raise ClusterQueryError(self.name, index_pattern, str(e)) from e
        return int(_body(response).get("count", 0))

    async def close(self):
        """Close the underlying transport."""
        if self._client is not None:
            await self._client.close()
            logger.info(f"🔒 [{self.name}] Elasticsearch client closed")
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def __repr__(self):
        return f"ClusterClient(name={self.name})"

