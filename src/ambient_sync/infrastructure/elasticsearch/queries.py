"""
Elasticsearch Search Templates
==============================

Provides reusable search builders for the boundary and gap queries.

Usage:
    from ambient_sync.infrastructure.elasticsearch.queries import SearchBuilder

    request = SearchBuilder("ambient_weather_heiligers_imperial_*") \
        .range(lte=1704067200000) \
        .sort_desc() \
        .limit(1) \
        .build()
"""

from typing import Any, Dict, List, Optional


TIMESTAMP_FIELD = "dateutc"
BOUNDARY_FIELDS = ["date", "dateutc", "@timestamp"]


class SearchBuilder:
    """
    Fluent interface for building keyword arguments of AsyncElasticsearch.search.

    Example:
        >>> SearchBuilder("idx_*").range(gte=0).sort_asc().limit(5).build()["size"]
        5
    """

    def __init__(self, index: str):
        self.index = index
        self._range: Dict[str, int] = {}
        self._sort: Optional[str] = None
        self._size = 10
        self._fields: Optional[List[str]] = None

    def range(
        self,
        gte: Optional[int] = None,
        lte: Optional[int] = None,
        gt: Optional[int] = None,
        lt: Optional[int] = None
    ) -> "SearchBuilder":
        """Restrict dateutc; bounds left as None are open."""
        for key, value in (("gte", gte), ("lte", lte), ("gt", gt), ("lt", lt)):
            if value is not None:
                self._range[key] = value
        return self

    def sort_desc(self) -> "SearchBuilder":
        """Newest first."""
        self._sort = "desc"
        return self

    def sort_asc(self) -> "SearchBuilder":
        """Oldest first."""
        self._sort = "asc"
        return self

    def limit(self, n: int) -> "SearchBuilder":
        self._size = n
        return self

    def fields(self, names: List[str]) -> "SearchBuilder":
        """Only return these _source fields."""
        self._fields = list(names)
        return self

    def build(self) -> Dict[str, Any]:
        request: Dict[str, Any] = {
            "index": self.index,
            "size": self._size,
            "expand_wildcards": "all",
        }
        if self._range:
            request["query"] = {"range": {TIMESTAMP_FIELD: dict(self._range)}}
        else:
            request["query"] = {"match_all": {}}
        if self._sort:
            request["sort"] = [{TIMESTAMP_FIELD: {"order": self._sort}}]
        if self._fields is not None:
            request["source_includes"] = self._fields
        return request


# =================================================================
# PREDEFINED SEARCHES
# =================================================================

def latest_document_search(index_pattern: str) -> Dict[str, Any]:
    """Most recent document of an index pattern, timestamp fields only."""
    return (
        SearchBuilder(index_pattern)
        .sort_desc()
        .limit(1)
        .fields(BOUNDARY_FIELDS)
        .build()
    )


def range_document_search(
    index_pattern: str,
    gte: Optional[int] = None,
    lte: Optional[int] = None,
    sort: str = "asc",
    size: int = 1,
    fields: Optional[List[str]] = None
) -> Dict[str, Any]:
    """Documents with gte <= dateutc <= lte, sorted by dateutc."""
    builder = SearchBuilder(index_pattern).range(gte=gte, lte=lte).limit(size)
    builder = builder.sort_desc() if sort == "desc" else builder.sort_asc()
    if fields is not None:
        builder = builder.fields(fields)
    return builder.build()


def bulk_index_operations(index: str, documents: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Interleave action lines and documents for the bulk API."""
    operations: List[Dict[str, Any]] = []
    for document in documents:
        operations.append({"index": {"_index": index}})
        operations.append(document)
    return operations
