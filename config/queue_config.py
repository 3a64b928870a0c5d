"""
Azure Service Bus Queue Configuration.

Provides configuration for:
    - Service Bus connection settings
    - Queue names (catalog-ingest, catalog-items)
    - Retry configuration

Queue Architecture:
    - catalog-ingest: IngestionCheckpoint messages (chunked manifest ingestion,
      continuation and retry re-submissions)
    - catalog-items: Catalog item messages for the fan-in dispatcher

Exports:
    QueueConfig: Pydantic queue configuration model
    QueueNames: Queue name constants
"""

import os
from typing import Optional
from pydantic import BaseModel, Field

from .defaults import QueueDefaults


class QueueNames:
    """Queue name constants for easy access."""
    INGEST = QueueDefaults.INGEST_QUEUE
    ITEMS = QueueDefaults.ITEMS_QUEUE


class QueueConfig(BaseModel):
    """
    Azure Service Bus queue configuration.
    """

    connection_string: Optional[str] = Field(
        default=None,
        repr=False,
        description="Service Bus connection string (from ServiceBusConnection env var or Azure Functions binding)"
    )

    namespace: Optional[str] = Field(
        default=None,
        description="Service Bus namespace for managed identity auth (alternative to connection string)"
    )

    ingest_queue: str = Field(
        default=QueueDefaults.INGEST_QUEUE,
        description="Queue carrying ingestion checkpoints (also the continuation target)"
    )

    items_queue: str = Field(
        default=QueueDefaults.ITEMS_QUEUE,
        description="Queue carrying catalog item messages for fan-in"
    )

    message_ttl_hours: int = Field(
        default=QueueDefaults.MESSAGE_TTL_HOURS,
        ge=1,
        le=336,
        description="Time-to-live for continuation messages"
    )

    retry_count: int = Field(
        default=QueueDefaults.RETRY_COUNT,
        ge=0,
        le=10,
        description="Number of retry attempts for Service Bus send operations"
    )

    @classmethod
    def from_environment(cls):
        """Load from environment variables."""
        return cls(
            connection_string=os.environ.get("ServiceBusConnection"),
            namespace=os.environ.get("SERVICE_BUS_NAMESPACE") or os.environ.get("ServiceBusConnection__fullyQualifiedNamespace"),
            ingest_queue=os.environ.get("SERVICE_BUS_INGEST_QUEUE", QueueDefaults.INGEST_QUEUE),
            items_queue=os.environ.get("SERVICE_BUS_ITEMS_QUEUE", QueueDefaults.ITEMS_QUEUE),
            message_ttl_hours=int(os.environ.get("SERVICE_BUS_MESSAGE_TTL_HOURS", str(QueueDefaults.MESSAGE_TTL_HOURS))),
            retry_count=int(os.environ.get("SERVICE_BUS_RETRY_COUNT", str(QueueDefaults.RETRY_COUNT))),
        )
