"""
Core Data Models - Pure Data Structures.

No business logic - only data structures and their validation.

Exports:
    Enums: IngestionState, MessageKind, GeometryType
    Grid: ParsedGrid, parse_mgrs
    Records: RawTileRecord, CatalogRecord, STAC_VERSION, format_datetime
    Collection: CollectionDescriptor, BandDescriptor, ProviderDescriptor
    Checkpoint: IngestionCheckpoint
    Messages: InboundMessage
    Results: RecordResult, MessageResult, BulkWriteResult, StreamStats, IngestionOutcome
"""

from .enums import IngestionState, MessageKind, GeometryType
from .grid import ParsedGrid, parse_mgrs
from .records import RawTileRecord, CatalogRecord, STAC_VERSION, format_datetime
from .collection import CollectionDescriptor, BandDescriptor, ProviderDescriptor
from .checkpoint import IngestionCheckpoint
from .messages import InboundMessage
from .results import (
    RecordResult,
    MessageResult,
    BulkWriteResult,
    StreamStats,
    IngestionOutcome
)

__all__ = [
    'IngestionState',
    'MessageKind',
    'GeometryType',
    'ParsedGrid',
    'parse_mgrs',
    'RawTileRecord',
    'CatalogRecord',
    'STAC_VERSION',
    'format_datetime',
    'CollectionDescriptor',
    'BandDescriptor',
    'ProviderDescriptor',
    'IngestionCheckpoint',
    'InboundMessage',
    'RecordResult',
    'MessageResult',
    'BulkWriteResult',
    'StreamStats',
    'IngestionOutcome'
]
