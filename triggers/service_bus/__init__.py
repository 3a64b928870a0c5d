# ============================================================================
# SERVICE BUS HANDLERS MODULE
# ============================================================================
# STATUS: Trigger layer - Service Bus message handling
# PURPOSE: Handlers for the catalog-ingest and catalog-items queue triggers
# ============================================================================
"""
Service Bus Handlers Module.

Queue Architecture:
- catalog-ingest: IngestionCheckpoint messages (initial submit, continuation, retry)
- catalog-items: Catalog item messages, consumed in batches by the fan-in dispatcher

Exports:
    handle_ingest_message: Ingest queue handler
    handle_items_batch: Items queue batch handler
"""

from .ingest_handler import handle_ingest_message, parse_checkpoint
from .items_handler import handle_items_batch

__all__ = [
    'handle_ingest_message',
    'handle_items_batch',
    'parse_checkpoint',
]
