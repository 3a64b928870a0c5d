"""
Triggers Package.

Azure Functions trigger implementations.

HTTP Endpoints:
    POST /api/ingest/manifest: Enqueue the first checkpoint for a manifest

Service Bus (see triggers.service_bus):
    catalog-ingest: Chunked ingestion controller
    catalog-items: Fan-in dispatcher

Exports:
    BaseHttpTrigger: Base class for HTTP triggers
"""

# Only import base classes to avoid initialization at import time
# Trigger instances should be imported directly from their modules
from .http_base import BaseHttpTrigger

__all__ = [
    'BaseHttpTrigger',
]
