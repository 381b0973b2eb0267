"""
Unit Tests for Boundary Resolution
===================================

Coverage:
- ✅ Latest timestamp per (cluster, category)
- ✅ Empty cluster and failing cluster both resolve to absent
- ✅ Strict lookup tells an empty index from a failed query
- ✅ Timestamp extraction fallbacks
- ✅ Safe fetch origin selection
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from ambient_sync.core.config import IMPERIAL, METRIC
from ambient_sync.core.exceptions import ClusterConfigurationError, ClusterQueryError
from ambient_sync.services.boundary_resolver import (
    BoundaryResolver,
    document_epoch,
    safe_fetch_origin,
)

from tests.fakes import T0, FIVE_MINUTES, FakeCluster, stored


@pytest.mark.unit
class TestSafeFetchOrigin:

    def test_oldest_boundary_wins(self):
        boundaries = {
            "A": {IMPERIAL: 100, METRIC: 100},
            "B": {IMPERIAL: 200, METRIC: 200},
        }
        assert safe_fetch_origin(boundaries) == 100

    def test_any_absent_boundary_falls_back(self):
        boundaries = {
            "A": {IMPERIAL: None, METRIC: None},
            "B": {IMPERIAL: 200, METRIC: 200},
        }
        assert safe_fetch_origin(boundaries) is None

    def test_metric_lagging_behind_counts(self):
        boundaries = {"A": {IMPERIAL: 300, METRIC: 250}}
        assert safe_fetch_origin(boundaries) == 250

    def test_no_clusters(self):
        assert safe_fetch_origin({}) is None


@pytest.mark.unit
class TestDocumentEpoch:

    def test_dateutc(self):
        assert document_epoch({"dateutc": T0}) == T0

    def test_iso_date_fallback(self):
        assert document_epoch({"date": "2024-01-01T00:00:00.000Z"}) == T0

    def test_no_timestamp(self):
        assert document_epoch({"date": "yesterday"}) is None
        assert document_epoch({}) is None


@pytest.mark.unit
@pytest.mark.asyncio
class TestBoundaryResolver:

    async def test_resolves_latest(self, test_settings):
        cluster = FakeCluster("PRODUCTION", {IMPERIAL: stored(T0, T0 + FIVE_MINUTES), METRIC: stored(T0)})
        resolver = BoundaryResolver(test_settings)

        assert await resolver.resolve(cluster, IMPERIAL) == T0 + FIVE_MINUTES
        assert await resolver.resolve(cluster, METRIC) == T0

    async def test_empty_cluster_is_absent(self, test_settings, production_cluster):
        assert await BoundaryResolver(test_settings).resolve(production_cluster, IMPERIAL) is None

    async def test_failing_cluster_is_absent(self, test_settings):
        cluster = FakeCluster("PRODUCTION", {IMPERIAL: stored(T0)})
        cluster.fail_search = True

        assert await BoundaryResolver(test_settings).resolve(cluster, IMPERIAL) is None

    async def test_unconfigured_cluster_is_absent(self, test_settings):
        cluster = MagicMock()
        cluster.name = "STAGING"
        cluster.latest_document = AsyncMock(side_effect=ClusterConfigurationError("STAGING", ["STAGING_ES_PASSWORD"]))

        assert await BoundaryResolver(test_settings).resolve(cluster, IMPERIAL) is None

    async def test_slow_cluster_is_absent(self, test_settings):
        test_settings.REMOTE_CALL_TIMEOUT_SECONDS = 0.01

        async def hang(pattern):
            await asyncio.sleep(1)

        cluster = MagicMock()
        cluster.name = "STAGING"
        cluster.latest_document = hang

        assert await BoundaryResolver(test_settings).resolve(cluster, IMPERIAL) is None

    async def test_resolve_all(self, test_settings):
        production = FakeCluster("PRODUCTION", {IMPERIAL: stored(T0), METRIC: stored(T0)})
        staging = FakeCluster("STAGING")
        staging.fail_search = True

        boundaries = await BoundaryResolver(test_settings).resolve_all([production, staging])

        assert boundaries == {
            "PRODUCTION": {IMPERIAL: T0, METRIC: T0},
            "STAGING": {IMPERIAL: None, METRIC: None},
        }


@pytest.mark.unit
@pytest.mark.asyncio
class TestBoundaryLookup:

    async def test_empty_index_is_none(self, test_settings, production_cluster):
        assert await BoundaryResolver(test_settings).lookup(production_cluster, IMPERIAL) is None

    async def test_failing_query_raises(self, test_settings):
        cluster = FakeCluster("PRODUCTION", {IMPERIAL: stored(T0)})
        cluster.fail_search = True

        with pytest.raises(ClusterQueryError):
            await BoundaryResolver(test_settings).lookup(cluster, IMPERIAL)

    async def test_document_without_timestamp_raises(self, test_settings):
        cluster = MagicMock()
        cluster.name = "PRODUCTION"
        cluster.latest_document = AsyncMock(return_value={"tempf": 50.0})

        with pytest.raises(ClusterQueryError) as exc_info:
            await BoundaryResolver(test_settings).lookup(cluster, IMPERIAL)

        assert "no usable timestamp" in exc_info.value.message

    async def test_document_without_timestamp_resolves_absent(self, test_settings):
        cluster = MagicMock()
        cluster.name = "PRODUCTION"
        cluster.latest_document = AsyncMock(return_value={"tempf": 50.0})

        assert await BoundaryResolver(test_settings).resolve(cluster, IMPERIAL) is None
