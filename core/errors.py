"""
Error Code Definitions and Classification.

Centralized error code management with retry logic for the ingestion
controller and fan-in trigger.

Key Features:
    - Explicit error codes for all failure modes
    - Retry classification (PERMANENT, TRANSIENT, THROTTLING)
    - Exception to error code mapping (classify_exception)

Exports:
    ErrorCode: Standardized error codes enum
    ErrorClassification: Error category enum
    is_retryable: Helper to check if error should be retried
    get_error_classification: Classification lookup
    classify_exception: Map an exception to an ErrorCode
    is_exception_retryable: classify_exception + is_retryable
    create_error_response: Standardized error dict
"""

from enum import Enum
from typing import Dict, Any

import httpx
import psycopg
from azure.core.exceptions import (
    ResourceNotFoundError as AzureResourceNotFoundError,
    ServiceRequestError,
    ServiceResponseError,
    HttpResponseError,
)
from azure.servicebus.exceptions import ServiceBusError
from pydantic import ValidationError as PydanticValidationError

from exceptions import (
    ConfigurationError,
    ContractViolationError,
    EnrichmentFailed,
    EnrichmentUnavailable,
    GeometryError,
    IndexWriteFailed,
    MalformedGridCode,
    ManifestNotFound,
    ReferenceFetchFailed,
    UnsupportedSource,
)


class ErrorCode(str, Enum):
    """
    Standardized error codes for ingestion failures.
    """

    # Input errors (NOT RETRYABLE)
    MANIFEST_NOT_FOUND = "MANIFEST_NOT_FOUND"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    MALFORMED_GRID_CODE = "MALFORMED_GRID_CODE"
    INVALID_GEOMETRY = "INVALID_GEOMETRY"
    UNSUPPORTED_SOURCE = "UNSUPPORTED_SOURCE"
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Setup/configuration errors (NOT RETRYABLE)
    CONFIG_ERROR = "CONFIG_ERROR"
    CONTRACT_VIOLATION = "CONTRACT_VIOLATION"

    # Enrichment errors
    ENRICHMENT_FAILED = "ENRICHMENT_FAILED"            # 4xx, not found
    ENRICHMENT_UNAVAILABLE = "ENRICHMENT_UNAVAILABLE"  # outage, retryable
    REFERENCE_FETCH_FAILED = "REFERENCE_FETCH_FAILED"

    # Infrastructure errors (RETRYABLE)
    INDEX_WRITE_FAILED = "INDEX_WRITE_FAILED"
    DATABASE_ERROR = "DATABASE_ERROR"
    STORAGE_ERROR = "STORAGE_ERROR"
    QUEUE_ERROR = "QUEUE_ERROR"
    TIMEOUT = "TIMEOUT"
    THROTTLED = "THROTTLED"

    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class ErrorClassification(str, Enum):
    """
    Error classification for retry logic.
    """

    PERMANENT = "PERMANENT"  # Never retry (input error, won't fix itself)
    TRANSIENT = "TRANSIENT"  # Retry with exponential backoff
    THROTTLING = "THROTTLING"  # Retry with longer delay


_ERROR_CLASSIFICATION: Dict[ErrorCode, ErrorClassification] = {
    ErrorCode.MANIFEST_NOT_FOUND: ErrorClassification.PERMANENT,
    ErrorCode.RESOURCE_NOT_FOUND: ErrorClassification.PERMANENT,
    ErrorCode.MALFORMED_GRID_CODE: ErrorClassification.PERMANENT,
    ErrorCode.INVALID_GEOMETRY: ErrorClassification.PERMANENT,
    ErrorCode.UNSUPPORTED_SOURCE: ErrorClassification.PERMANENT,
    ErrorCode.VALIDATION_ERROR: ErrorClassification.PERMANENT,
    ErrorCode.CONFIG_ERROR: ErrorClassification.PERMANENT,
    ErrorCode.CONTRACT_VIOLATION: ErrorClassification.PERMANENT,
    ErrorCode.ENRICHMENT_FAILED: ErrorClassification.PERMANENT,

    ErrorCode.ENRICHMENT_UNAVAILABLE: ErrorClassification.TRANSIENT,
    ErrorCode.REFERENCE_FETCH_FAILED: ErrorClassification.TRANSIENT,
    ErrorCode.INDEX_WRITE_FAILED: ErrorClassification.TRANSIENT,
    ErrorCode.DATABASE_ERROR: ErrorClassification.TRANSIENT,
    ErrorCode.STORAGE_ERROR: ErrorClassification.TRANSIENT,
    ErrorCode.QUEUE_ERROR: ErrorClassification.TRANSIENT,
    ErrorCode.TIMEOUT: ErrorClassification.TRANSIENT,

    ErrorCode.THROTTLED: ErrorClassification.THROTTLING,

    # Default to transient (retry a few times)
    ErrorCode.UNKNOWN_ERROR: ErrorClassification.TRANSIENT,
}


def is_retryable(error_code: ErrorCode) -> bool:
    """
    Determine if an error code should trigger a retry.

    Example:
        >>> is_retryable(ErrorCode.MANIFEST_NOT_FOUND)
        False
        >>> is_retryable(ErrorCode.INDEX_WRITE_FAILED)
        True
    """
    classification = _ERROR_CLASSIFICATION.get(error_code, ErrorClassification.TRANSIENT)
    return classification != ErrorClassification.PERMANENT


def get_error_classification(error_code: ErrorCode) -> ErrorClassification:
    """Get the classification for an error code (unknown codes are TRANSIENT)."""
    return _ERROR_CLASSIFICATION.get(error_code, ErrorClassification.TRANSIENT)


def classify_exception(error: BaseException) -> ErrorCode:
    """
    Map an exception raised during ingestion to an ErrorCode.

    Order matters: subclasses are checked before their bases
    (EnrichmentUnavailable before EnrichmentFailed).
    """
    if isinstance(error, ManifestNotFound):
        return ErrorCode.MANIFEST_NOT_FOUND
    if isinstance(error, ContractViolationError):
        return ErrorCode.CONTRACT_VIOLATION
    if isinstance(error, ConfigurationError):
        return ErrorCode.CONFIG_ERROR
    if isinstance(error, MalformedGridCode):
        return ErrorCode.MALFORMED_GRID_CODE
    if isinstance(error, GeometryError):
        return ErrorCode.INVALID_GEOMETRY
    if isinstance(error, UnsupportedSource):
        return ErrorCode.UNSUPPORTED_SOURCE
    if isinstance(error, EnrichmentUnavailable):
        return ErrorCode.ENRICHMENT_UNAVAILABLE
    if isinstance(error, EnrichmentFailed):
        return ErrorCode.ENRICHMENT_UNAVAILABLE if error.transient else ErrorCode.ENRICHMENT_FAILED
    if isinstance(error, ReferenceFetchFailed):
        return ErrorCode.REFERENCE_FETCH_FAILED
    if isinstance(error, IndexWriteFailed):
        return ErrorCode.INDEX_WRITE_FAILED
    if isinstance(error, PydanticValidationError):
        return ErrorCode.VALIDATION_ERROR
    if isinstance(error, psycopg.OperationalError):
        return ErrorCode.DATABASE_ERROR
    if isinstance(error, AzureResourceNotFoundError):
        return ErrorCode.RESOURCE_NOT_FOUND
    if isinstance(error, (ServiceRequestError, ServiceResponseError)):
        return ErrorCode.STORAGE_ERROR
    if isinstance(error, HttpResponseError):
        if error.status_code == 429:
            return ErrorCode.THROTTLED
        return ErrorCode.STORAGE_ERROR
    if isinstance(error, ServiceBusError):
        return ErrorCode.QUEUE_ERROR
    if isinstance(error, (httpx.TimeoutException, TimeoutError)):
        return ErrorCode.TIMEOUT
    return ErrorCode.UNKNOWN_ERROR


def is_exception_retryable(error: BaseException) -> bool:
    """True when the controller should RETRY the chunk rather than FAIL the run."""
    return is_retryable(classify_exception(error))


def create_error_response(
    error_code: ErrorCode,
    message: str,
    **kwargs: Any
) -> Dict[str, Any]:
    """
    Create a standardized error response dictionary.

    Example:
        >>> create_error_response(
        ...     ErrorCode.MANIFEST_NOT_FOUND,
        ...     "manifest not found: sentinel/manifest.csv",
        ...     bucket="sentinel",
        ... )
        {
            "success": False,
            "error": "MANIFEST_NOT_FOUND",
            "error_type": "BusinessLogicError",
            "message": "manifest not found: sentinel/manifest.csv",
            "retryable": False,
            "bucket": "sentinel"
        }
    """
    response = {
        "success": False,
        "error": error_code.value,
        "error_type": kwargs.pop("error_type", "BusinessLogicError"),
        "message": message,
        "retryable": is_retryable(error_code),
        **kwargs
    }

    return response
