"""Elasticsearch infrastructure: per-cluster client and search builders."""

from .client import BulkWriteResult, ClusterClient
from .queries import (
    BOUNDARY_FIELDS,
    SearchBuilder,
    latest_document_search,
    range_document_search,
)

__all__ = [
    "BOUNDARY_FIELDS",
    "BulkWriteResult",
    "ClusterClient",
    "SearchBuilder",
    "latest_document_search",
    "range_document_search",
]
