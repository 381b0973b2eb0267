"""
Test doubles and reading factories.
"""
from typing import Any, Dict, List, Optional, Set

from ambient_sync.core.config import IMPERIAL, METRIC
from ambient_sync.core.exceptions import ClusterQueryError, ClusterWriteError
from ambient_sync.domain.readings import ImperialReading
from ambient_sync.infrastructure.elasticsearch import BulkWriteResult, range_document_search

# 2024-01-01T00:00:00Z
T0 = 1704067200000
FIVE_MINUTES = 5 * 60 * 1000


# =============================================================================
# FAKE CLUSTER
# =============================================================================

class FakeCluster:
    """
    In-memory stand-in for ClusterClient.

    Documents are stored per category; indices, aliases and patterns are
    mapped to a category by name. Search requests built by the query
    builders are interpreted (range, sort, size).
    """

    def __init__(self, name: str, documents: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self.name = name
        self.documents: Dict[str, List[Dict[str, Any]]] = {IMPERIAL: [], METRIC: []}
        for category, docs in (documents or {}).items():
            self.documents[category] = [dict(d) for d in docs]
        self.reachable = True
        self.fail_search = False
        self.fail_bulk = False
        self.fail_bulk_categories: Set[str] = set()
        self.reject_dateutc: Set[int] = set()
        self.bulk_calls: List[Dict[str, Any]] = []
        self.closed = False

    @staticmethod
    def _category(name: str) -> str:
        return METRIC if METRIC in name else IMPERIAL

    def timestamps(self, category: str = IMPERIAL) -> List[int]:
        return sorted(d["dateutc"] for d in self.documents[category])

    async def ping(self) -> bool:
        return self.reachable

    async def get_write_indices(self) -> Dict[str, str]:
        return {
            IMPERIAL: "ambient_weather_heiligers_imperial_2024_01",
            METRIC: "ambient_weather_heiligers_metric_2024_01",
        }

    async def search(self, request: Dict[str, Any]) -> List[Dict[str, Any]]:
        if self.fail_search or not self.reachable:
            raise ClusterQueryError(self.name, request["index"], "connection refused")

        docs = list(self.documents[self._category(request["index"])])
        bounds = request.get("query", {}).get("range", {}).get("dateutc", {})
        if "gte" in bounds:
            docs = [d for d in docs if d["dateutc"] >= bounds["gte"]]
        if "gt" in bounds:
            docs = [d for d in docs if d["dateutc"] > bounds["gt"]]
        if "lte" in bounds:
            docs = [d for d in docs if d["dateutc"] <= bounds["lte"]]
        if "lt" in bounds:
            docs = [d for d in docs if d["dateutc"] < bounds["lt"]]

        sort = request.get("sort")
        if sort:
            docs.sort(key=lambda d: d["dateutc"], reverse=sort[0]["dateutc"]["order"] == "desc")
        return docs[:request.get("size", 10)]

    async def latest_document(self, index_pattern: str) -> Optional[Dict[str, Any]]:
        docs = await self.search({
            "index": index_pattern,
            "size": 1,
            "sort": [{"dateutc": {"order": "desc"}}],
        })
        return docs[0] if docs else None

    async def range_search(self, index_pattern: str, gte=None, lte=None, sort="asc", size=1, fields=None):
        return await self.search(range_document_search(index_pattern, gte, lte, sort, size, fields))

    async def bulk_write(self, index: str, documents: List[Dict[str, Any]]) -> BulkWriteResult:
        if self.fail_bulk or not self.reachable or self._category(index) in self.fail_bulk_categories:
            raise ClusterWriteError(self.name, index, "connection reset")

        self.bulk_calls.append({"index": index, "documents": list(documents)})
        errored = []
        for document in documents:
            if document["dateutc"] in self.reject_dateutc:
                errored.append({"status": 400, "error": {"type": "mapper_parsing_exception"}, "document": document})
            else:
                self.documents[self._category(index)].append(dict(document))
        return BulkWriteResult(attempted=len(documents), errored_documents=errored)

    async def count(self, index_pattern: str) -> int:
        if not self.reachable:
            raise ClusterQueryError(self.name, index_pattern, "connection refused")
        return len(self.documents[self._category(index_pattern)])

    async def close(self):
        self.closed = True


# =============================================================================
# HELPERS
# =============================================================================

def make_reading(dateutc: int, **fields) -> ImperialReading:
    """Imperial reading with plausible sensor values."""
    values = {
        "dateutc": dateutc,
        "tempf": 50.0,
        "humidity": 60,
        "windspeedmph": 3.4,
        "baromrelin": 29.92,
        "dailyrainin": 0.1,
    }
    values.update(fields)
    return ImperialReading.model_validate(values)


def stored(*timestamps: int) -> List[Dict[str, Any]]:
    """Minimal stored documents at the given timestamps."""
    return [{"dateutc": ts, "tempf": 50.0} for ts in timestamps]



class FakeWeatherAPI:
    """
    Stand-in for AmbientWeatherAPIClient serving a fixed station history.

    Records are returned newest first, at or before endDate, like the API.
    """

    def __init__(self, records: Optional[List[Dict[str, Any]]] = None, error: Optional[Exception] = None):
        self.records = sorted(records or [], key=lambda r: r["dateutc"], reverse=True)
        self.error = error
        self.calls: List[Dict[str, Any]] = []
        self.entered = 0

    async def __aenter__(self):
        self.entered += 1
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None

    async def resolve_mac_address(self, mac_address: Optional[str] = None) -> str:
        return mac_address or "AA:BB:CC:DD:EE:FF"

    async def get_device_data(self, mac_address: str, end_date_ms: Optional[int] = None, limit: int = 288):
        self.calls.append({"mac": mac_address, "end_date_ms": end_date_ms, "limit": limit})
        if self.error is not None:
            raise self.error
        records = [r for r in self.records if end_date_ms is None or r["dateutc"] <= end_date_ms]
        return [dict(r) for r in records[:limit]]


def station_history(*timestamps: int) -> List[Dict[str, Any]]:
    """Raw API records at the given timestamps."""
    return [make_reading(ts).to_document() for ts in timestamps]
