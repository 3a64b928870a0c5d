"""
Pure Enumeration Types for Catalog Ingestion.

No business logic - pure type definitions only.

Exports:
    IngestionState: Chunked ingestion controller states
    MessageKind: Fan-in inbound message shapes
    GeometryType: Geometry types the reprojector accepts
"""

from enum import Enum


class IngestionState(Enum):
    """
    States of the chunked ingestion controller.

    State transitions:
    - START -> PROCESSING -> CONTINUE -> PROCESSING ... (more chunks)
    - START -> PROCESSING -> DONE (last chunk ingested)
    - START -> PROCESSING -> RETRY -> PROCESSING (retryable chunk failure)
    - START -> PROCESSING -> FAILED (fatal input or retry ceiling reached)
    - START -> DONE (checkpoint already past the last chunk)
    - START -> FAILED (checkpoint rejected before processing)
    """

    START = "start"
    PROCESSING = "processing"
    CONTINUE = "continue"
    RETRY = "retry"
    DONE = "done"
    FAILED = "failed"


class MessageKind(Enum):
    """Shape of an inbound catalog message."""

    DIRECT = "direct"                # structured item inline
    NOTIFICATION = "notification"    # pub/sub envelope wrapping a JSON Message
    REFERENCE = "reference"          # {"href": uri} pointing at the payload


class GeometryType(str, Enum):
    """Geometry types accepted by the reprojector."""

    POINT = "Point"
    POLYGON = "Polygon"
