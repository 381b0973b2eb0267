"""
Unit Tests for the Elasticsearch Cluster Client
================================================

Coverage:
- ✅ Lazy construction and missing-configuration detection
- ✅ Search request shape (range, sort, size, source filtering)
- ✅ Retries on transport errors
- ✅ Bulk write with per-document rejections
- ✅ Write index resolution from aliases
- ✅ Ping never raises
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from elasticsearch import ConnectionError as ESConnectionError, ConnectionTimeout

from ambient_sync.core.config import IMPERIAL, METRIC, ClusterSettings
from ambient_sync.core.exceptions import (
    ClusterConfigurationError,
    ClusterQueryError,
    ClusterWriteError,
)
from ambient_sync.infrastructure.elasticsearch import ClusterClient, SearchBuilder
from ambient_sync.infrastructure.elasticsearch.queries import (
    BOUNDARY_FIELDS,
    bulk_index_operations,
    range_document_search,
)

from tests.fakes import T0

PATTERN = "ambient_weather_heiligers_imperial_*"


def cluster_settings(**overrides) -> ClusterSettings:
    values = dict(
        name="STAGING",
        url="http://staging.test:9200",
        username="elastic",
        password="secret",
        cloud_id_var="STAGING_CLOUD_ID",
        url_var="STAGING_ES_URL",
        username_var="STAGING_ES_USERNAME",
        password_var="STAGING_ES_PASSWORD",
    )
    values.update(overrides)
    return ClusterSettings(**values)


@pytest.fixture
def mock_es():
    es = MagicMock()
    es.search = AsyncMock(return_value={"hits": {"hits": []}})
    es.bulk = AsyncMock(return_value={"errors": False, "items": []})
    es.count = AsyncMock(return_value={"count": 0})
    es.ping = AsyncMock(return_value=True)
    es.close = AsyncMock()
    es.cat.aliases = AsyncMock(return_value=[])
    return es


@pytest.fixture
def cluster(mock_es) -> ClusterClient:
    return ClusterClient(cluster_settings(), client=mock_es, retry_wait_seconds=0)


@pytest.mark.unit
class TestSearchBuilder:

    def test_last_at_or_before(self):
        request = range_document_search(PATTERN, lte=T0, sort="desc", fields=BOUNDARY_FIELDS)

        assert request["index"] == PATTERN
        assert request["query"] == {"range": {"dateutc": {"lte": T0}}}
        assert request["sort"] == [{"dateutc": {"order": "desc"}}]
        assert request["size"] == 1
        assert "dateutc" in request["source_includes"]

    def test_first_at_or_after(self):
        request = range_document_search(PATTERN, gte=T0)

        assert request["query"] == {"range": {"dateutc": {"gte": T0}}}
        assert request["sort"] == [{"dateutc": {"order": "asc"}}]

    def test_unbounded_search_matches_all(self):
        request = SearchBuilder(PATTERN).limit(5).build()

        assert request["query"] == {"match_all": {}}
        assert "sort" not in request
        assert request["size"] == 5

    def test_bulk_operations_interleave_actions(self):
        operations = bulk_index_operations("alias", [{"dateutc": 1}, {"dateutc": 2}])

        assert operations == [
            {"index": {"_index": "alias"}}, {"dateutc": 1},
            {"index": {"_index": "alias"}}, {"dateutc": 2},
        ]


@pytest.mark.unit
class TestClusterConfiguration:

    def test_missing_credentials_detected_on_first_use(self):
        client = ClusterClient(cluster_settings(url=None, password=None))

        with pytest.raises(ClusterConfigurationError) as exc_info:
            _ = client.es

        assert exc_info.value.cluster == "STAGING"
        assert "STAGING_ES_PASSWORD" in exc_info.value.message
        assert "STAGING_CLOUD_ID or STAGING_ES_URL" in exc_info.value.message


@pytest.mark.unit
@pytest.mark.asyncio
class TestClusterClient:

    async def test_latest_document(self, cluster, mock_es):
        mock_es.search.return_value = {"hits": {"hits": [{"_source": {"dateutc": T0}}]}}

        document = await cluster.latest_document(PATTERN)

        assert document == {"dateutc": T0}
        kwargs = mock_es.search.call_args.kwargs
        assert kwargs["index"] == PATTERN
        assert kwargs["sort"] == [{"dateutc": {"order": "desc"}}]
        assert kwargs["size"] == 1

    async def test_latest_document_empty_index(self, cluster):
        assert await cluster.latest_document(PATTERN) is None

    async def test_range_search(self, cluster, mock_es):
        await cluster.range_search(PATTERN, gte=T0, lte=T0 + 1, sort="desc", size=3)

        kwargs = mock_es.search.call_args.kwargs
        assert kwargs["query"] == {"range": {"dateutc": {"gte": T0, "lte": T0 + 1}}}
        assert kwargs["sort"] == [{"dateutc": {"order": "desc"}}]
        assert kwargs["size"] == 3

    async def test_search_retries_transport_errors(self, cluster, mock_es):
        mock_es.search.side_effect = [
            ESConnectionError("connection refused"),
            {"hits": {"hits": [{"_source": {"dateutc": T0}}]}},
        ]

        assert await cluster.latest_document(PATTERN) == {"dateutc": T0}
        assert mock_es.search.call_count == 2

    async def test_search_gives_up_after_max_attempts(self, cluster, mock_es):
        mock_es.search.side_effect = ConnectionTimeout("timed out")

        with pytest.raises(ClusterQueryError) as exc_info:
            await cluster.latest_document(PATTERN)

        assert mock_es.search.call_count == 3
        assert exc_info.value.cluster == "STAGING"

    async def test_bulk_write_reports_rejections(self, cluster, mock_es):
        mock_es.bulk.return_value = {
            "errors": True,
            "items": [
                {"index": {"status": 201}},
                {"index": {"status": 400, "error": {"type": "mapper_parsing_exception"}}},
            ],
        }
        documents = [{"dateutc": T0}, {"dateutc": T0 + 1}]

        result = await cluster.bulk_write("all-ambient-weather-heiligers-imperial", documents)

        assert result.attempted == 2
        assert len(result.errored_documents) == 1
        assert result.errored_documents[0]["document"] == {"dateutc": T0 + 1}
        assert mock_es.bulk.call_args.kwargs["refresh"] is True

    async def test_bulk_write_empty_is_noop(self, cluster, mock_es):
        result = await cluster.bulk_write("alias", [])

        assert result.attempted == 0
        mock_es.bulk.assert_not_called()

    async def test_bulk_write_failure_raises(self, cluster, mock_es):
        mock_es.bulk.side_effect = ESConnectionError("connection reset")

        with pytest.raises(ClusterWriteError):
            await cluster.bulk_write("alias", [{"dateutc": T0}])

    async def test_count(self, cluster, mock_es):
        mock_es.count.return_value = {"count": 42}

        assert await cluster.count(PATTERN) == 42

    async def test_get_write_indices(self, cluster, mock_es):
        mock_es.cat.aliases.return_value = [
            {"alias": "all-ambient-weather-heiligers-imperial",
             "index": "ambient_weather_heiligers_imperial_2024_01", "is_write_index": "true"},
            {"alias": "all-ambient-weather-heiligers-imperial",
             "index": "ambient_weather_heiligers_imperial_2023_12", "is_write_index": "false"},
            {"alias": "all-ambient-weather-heiligers-metric",
             "index": "ambient_weather_heiligers_metric_2024_01", "is_write_index": "true"},
        ]

        indices = await cluster.get_write_indices()

        assert indices == {
            IMPERIAL: "ambient_weather_heiligers_imperial_2024_01",
            METRIC: "ambient_weather_heiligers_metric_2024_01",
        }

    async def test_ping_swallows_transport_errors(self, cluster, mock_es):
        mock_es.ping.side_effect = ESConnectionError("unreachable")

        assert await cluster.ping() is False

    async def test_close(self, cluster, mock_es):
        async with cluster:
            pass

        mock_es.close.assert_awaited_once()
