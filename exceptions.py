"""
Custom Exception Hierarchy

Distinguishes between:
1. Contract Violations (programming bugs that need fixing)
2. Business Logic Failures (expected runtime issues)

Business failures are further split by where they are absorbed: per-record
errors (grid codes, geometry, enrichment) are isolated by the transform
stream, per-message errors by the fan-in dispatcher, and chunk-level errors
(manifest, index, stream outage) reach the ingestion controller, which
classifies them through core.errors to decide between RETRY and FAILED.

Exports:
    ContractViolationError, BusinessLogicError, ConfigurationError
    MalformedGridCode
    GeometryError, UnknownCRS, SelfIntersectingGeometry, UnsupportedGeometry
    EnrichmentFailed, EnrichmentUnavailable
    UnsupportedSource, ReferenceFetchFailed
    IndexWriteFailed, ManifestNotFound
    RetryCeilingExceeded, FanInBatchFailed
"""

from typing import Optional, Any


class ContractViolationError(TypeError):
    """
    Raised when component contracts are violated (programming bugs).

    These indicate:
    - Wrong types passed to functions
    - Missing required fields
    - Invalid state transitions

    These should NEVER be caught and handled - they indicate bugs
    that need to be fixed in the code.
    """
    pass


class BusinessLogicError(Exception):
    """
    Base class for expected runtime business logic failures.

    These are normal failures that occur during system operation
    and should be handled gracefully without crashing.
    """
    pass


class ConfigurationError(Exception):
    """
    System configuration error.

    Typically fatal: missing environment variables, invalid connection
    strings, no credentials for storage or the index.
    """
    pass


# ============================================================================
# PER-RECORD ERRORS
# ============================================================================

class MalformedGridCode(BusinessLogicError):
    """MGRS designator does not match zone + band + square, or zone not in 1-60."""

    def __init__(self, designator: Any, reason: str = "unrecognised MGRS designator"):
        self.designator = designator
        super().__init__(f"{reason}: {designator!r}")


class GeometryError(BusinessLogicError):
    """Base for reprojection and geometry validation failures."""
    pass


class UnknownCRS(GeometryError):
    """Source coordinate reference system is missing or not resolvable."""

    def __init__(self, crs_name: Optional[str], detail: str = ""):
        self.crs_name = crs_name
        message = f"unknown CRS: {crs_name!r}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class SelfIntersectingGeometry(GeometryError):
    """Reprojected polygon ring crosses itself. Never repaired."""
    pass


class UnsupportedGeometry(GeometryError):
    """Geometry type other than Point or Polygon."""

    def __init__(self, geometry_type: Optional[str]):
        self.geometry_type = geometry_type
        super().__init__(f"unsupported geometry type: {geometry_type!r}")


class EnrichmentFailed(BusinessLogicError):
    """
    Tile metadata could not be fetched from the enrichment source.

    Attributes:
        url: Requested URL
        status_code: HTTP status when a response was received
        transient: True for network errors, timeouts and 5xx responses
    """

    def __init__(self, url: str, reason: str, status_code: Optional[int] = None,
                 transient: bool = False):
        self.url = url
        self.status_code = status_code
        self.transient = transient
        super().__init__(f"enrichment failed for {url}: {reason}")


class EnrichmentUnavailable(EnrichmentFailed):
    """
    Enrichment source considered down for the whole stream.

    Raised by the transform stream after too many consecutive transient
    enrichment failures. Chunk-level and retryable.
    """

    def __init__(self, consecutive_failures: int, last_error: Optional[EnrichmentFailed] = None):
        self.consecutive_failures = consecutive_failures
        self.last_error = last_error
        super().__init__(
            url=last_error.url if last_error else "",
            reason=f"{consecutive_failures} consecutive transient failures",
            status_code=last_error.status_code if last_error else None,
            transient=True,
        )


# ============================================================================
# PER-MESSAGE ERRORS
# ============================================================================

class UnsupportedSource(BusinessLogicError):
    """Reference URI scheme is neither object storage nor http(s)."""

    def __init__(self, href: str):
        self.href = href
        super().__init__(f"Unsupported source: {href}")


class ReferenceFetchFailed(BusinessLogicError):
    """Referenced payload could not be fetched or is not valid JSON."""

    def __init__(self, href: str, reason: str):
        self.href = href
        super().__init__(f"failed to fetch {href}: {reason}")


# ============================================================================
# CHUNK-LEVEL / RUN-LEVEL ERRORS
# ============================================================================

class IndexWriteFailed(BusinessLogicError):
    """Connection-level failure talking to the catalog index. Retryable."""
    pass


class ManifestNotFound(BusinessLogicError):
    """Manifest object does not exist in storage. Fatal for the run."""

    def __init__(self, bucket: str, key: str):
        self.bucket = bucket
        self.key = key
        super().__init__(f"manifest not found: {bucket}/{key}")


class RetryCeilingExceeded(BusinessLogicError):
    """Chunk failed retry_count times; carries the checkpoint for forensics."""

    def __init__(self, checkpoint: Any, cause: Optional[BaseException] = None):
        self.checkpoint = checkpoint
        self.cause = cause
        super().__init__(
            f"retry ceiling reached for chunk {getattr(checkpoint, 'current_chunk_index', '?')} "
            f"of {getattr(checkpoint, 'bucket', '?')}/{getattr(checkpoint, 'key', '?')}: {cause}"
        )


class FanInBatchFailed(BusinessLogicError):
    """Every message in a non-empty fan-in batch failed to resolve."""

    def __init__(self, failures: list):
        self.failures = failures
        super().__init__(f"all {len(failures)} message(s) in batch failed to resolve")
