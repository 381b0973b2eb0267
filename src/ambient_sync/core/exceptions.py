"""
Custom Exceptions Module
=========================

Domain-specific exceptions for the weather sync pipeline.

Exception Hierarchy:
    AmbientSyncException (base)
    ├── SourceError
    │   ├── AmbientWeatherAPIError
    │   ├── SourceUnavailableError
    │   └── SourceFetchError
    ├── ClusterError
    │   ├── ClusterConfigurationError
    │   ├── ClusterConnectionError
    │   ├── ClusterQueryError
    │   └── ClusterWriteError
    ├── ArchiveError
    ├── BackfillValidationError
    ├── ConfirmationUnavailableError
    └── SyncAbortedError

Usage:
    from ambient_sync.core.exceptions import SourceFetchError

    try:
        outcome = await fetcher.fetch(origin)
    except AmbientWeatherAPIError as e:
        logger.error(f"Ambient Weather API failed: {e}")
        raise SourceFetchError("Failed to fetch station data") from e
"""

from typing import Optional, Dict, Any


# =================================================================
# BASE EXCEPTION
# =================================================================

class AmbientSyncException(Exception):
    """
    Base exception for all pipeline errors.

    All custom exceptions should inherit from this class.
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        self.message = message
        self.details = details or {}
        self.error_code = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for reports."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details
        }


# =================================================================
# SOURCE EXCEPTIONS
# =================================================================

class SourceError(AmbientSyncException):
    """Base exception for weather-source errors."""
    pass


class AmbientWeatherAPIError(SourceError):
    """The Ambient Weather REST API rejected a request."""

    def __init__(self, status_code: int, message: str):
        super().__init__(
            message=f"Ambient Weather API error ({status_code}): {message}",
            details={"status_code": status_code, "api_message": message},
            error_code="AMBIENT_WEATHER_API_ERROR"
        )
        self.status_code = status_code


class SourceUnavailableError(SourceError):
    """The upstream source did not answer (timeout or connection failure)."""

    def __init__(self, reason: str):
        super().__init__(
            message=f"Weather source unavailable: {reason}",
            details={"reason": reason},
            error_code="SOURCE_UNAVAILABLE"
        )
        self.reason = reason


class SourceFetchError(SourceError):
    """Hard fetch failure: no validated data could be obtained."""
    pass


# =================================================================
# CLUSTER EXCEPTIONS
# =================================================================

class ClusterError(AmbientSyncException):
    """Base exception for Elasticsearch cluster errors."""

    def __init__(self, cluster: str, message: str, details: Optional[Dict[str, Any]] = None,
                 error_code: Optional[str] = None):
        super().__init__(
            message=f"[{cluster}] {message}",
            details={"cluster": cluster, **(details or {})},
            error_code=error_code
        )
        self.cluster = cluster
        self.reason = message


class ClusterConfigurationError(ClusterError):
    """Connection settings for a cluster are incomplete."""

    def __init__(self, cluster: str, missing: list):
        super().__init__(
            cluster,
            f"missing configuration: {', '.join(missing)}",
            details={"missing": missing},
            error_code="CLUSTER_NOT_CONFIGURED"
        )


class ClusterConnectionError(ClusterError):
    """Cluster could not be reached."""

    def __init__(self, cluster: str, reason: str):
        super().__init__(cluster, reason, error_code="CLUSTER_CONNECTION_FAILED")


class ClusterQueryError(ClusterError):
    """Search or count request failed."""

    def __init__(self, cluster: str, index: str, reason: str):
        super().__init__(
            cluster,
            f"query on {index} failed: {reason}",
            details={"index": index},
            error_code="CLUSTER_QUERY_FAILED"
        )


class ClusterWriteError(ClusterError):
    """Bulk write request failed as a whole."""

    def __init__(self, cluster: str, index: str, reason: str):
        super().__init__(
            cluster,
            f"bulk write to {index} failed: {reason}",
            details={"index": index},
            error_code="CLUSTER_WRITE_FAILED"
        )


# =================================================================
# ARCHIVE / BACKFILL / RUN EXCEPTIONS
# =================================================================

class ArchiveError(AmbientSyncException):
    """Local archive directory could not be read or written."""

    def __init__(self, path: str, reason: str):
        super().__init__(
            message=f"Archive error at {path}: {reason}",
            details={"path": path, "reason": reason},
            error_code="ARCHIVE_ERROR"
        )


class BackfillValidationError(AmbientSyncException):
    """Backfill arguments were rejected before any remote call."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, details=details, error_code="BACKFILL_VALIDATION_FAILED")


class ConfirmationUnavailableError(AmbientSyncException):
    """An interactive confirmation was required but no terminal is attached."""

    def __init__(self):
        super().__init__(
            message="TTY not available. Use --yes flag to skip confirmation prompts.",
            error_code="CONFIRMATION_UNAVAILABLE"
        )


class SyncAbortedError(AmbientSyncException):
    """Live run aborted before anything was committed."""

    def __init__(self, stage: str, reason: str):
        super().__init__(
            message=f"Sync aborted during {stage}: {reason}",
            details={"stage": stage, "reason": reason},
            error_code="SYNC_ABORTED"
        )
        self.stage = stage
