"""
Service Bus Repository Implementation

Continuation scheduler for chunked ingestion. The controller hands back an
updated IngestionCheckpoint; this repository re-submits it to the ingest
queue, immediately for CONTINUE or with a scheduled enqueue time for RETRY.

Key Features:
- Connection string (local development) or DefaultAzureCredential
- Sender cache per queue
- Retry with exponential backoff on transient send failures
- Singleton pattern for credential reuse

Exports:
    ServiceBusRepository: IContinuationScheduler over azure-servicebus
    get_service_bus_repository: Singleton accessor
"""

import threading
import time
from datetime import datetime, timezone, timedelta
from typing import Dict, Optional

from azure.core.exceptions import ServiceRequestError
from azure.identity import DefaultAzureCredential
from azure.servicebus import ServiceBusClient, ServiceBusMessage, ServiceBusSender
from azure.servicebus.exceptions import ServiceBusError

from core.models.checkpoint import IngestionCheckpoint
from exceptions import ConfigurationError
from interfaces.repository import IContinuationScheduler
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "ServiceBusRepository")


class ServiceBusRepository(IContinuationScheduler):
    """
    Service Bus sender for ingestion checkpoints.

    Thread-safe singleton; use ServiceBusRepository.instance() or
    get_service_bus_repository().
    """

    _instance: Optional['ServiceBusRepository'] = None
    _lock = threading.Lock()

    def __init__(self, queue_config=None):
        if queue_config is None:
            from config import get_config
            queue_config = get_config().queues

        self.default_queue = queue_config.ingest_queue
        self.max_retries = queue_config.retry_count
        self.message_ttl = timedelta(hours=queue_config.message_ttl_hours)
        self.retry_delay = 1  # seconds
        self.credential = None

        if queue_config.connection_string:
            logger.info("🔑 Using connection string authentication")
            self.client = ServiceBusClient.from_connection_string(queue_config.connection_string)
        elif queue_config.namespace:
            logger.info(f"🔐 Using DefaultAzureCredential for namespace: {queue_config.namespace}")
            self.credential = DefaultAzureCredential()
            self.client = ServiceBusClient(
                fully_qualified_namespace=queue_config.namespace,
                credential=self.credential
            )
        else:
            raise ConfigurationError(
                "Service Bus not configured: set ServiceBusConnection or "
                "SERVICE_BUS_NAMESPACE / ServiceBusConnection__fullyQualifiedNamespace"
            )

        self._senders: Dict[str, ServiceBusSender] = {}
        logger.info(f"✅ ServiceBusRepository initialized (default queue: {self.default_queue})")

    @classmethod
    def instance(cls) -> 'ServiceBusRepository':
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def _get_sender(self, queue_name: str) -> ServiceBusSender:
        if queue_name not in self._senders:
            logger.debug(f"🚌 Creating new sender for queue: {queue_name}")
            self._senders[queue_name] = self.client.get_queue_sender(queue_name)
        return self._senders[queue_name]

    def build_message(self, checkpoint: IngestionCheckpoint, delay_seconds: int = 0) -> ServiceBusMessage:
        scheduled_time = None
        if delay_seconds > 0:
            scheduled_time = datetime.now(timezone.utc) + timedelta(seconds=delay_seconds)

        sb_message = ServiceBusMessage(
            body=checkpoint.model_dump_json(by_alias=True),
            content_type="application/json",
            time_to_live=self.message_ttl,
            scheduled_enqueue_time_utc=scheduled_time,
            application_properties={
                'manifest': checkpoint.manifest,
                'chunk_index': checkpoint.current_chunk_index,
                'retry_count': checkpoint.retry_count,
            },
        )
        return sb_message

    def send_checkpoint(
        self,
        checkpoint: IngestionCheckpoint,
        delay_seconds: int = 0,
        queue_name: Optional[str] = None,
    ) -> str:
        """
        Send a checkpoint, delayed when delay_seconds > 0.

        Raises:
            ServiceBusError: Send still failing after max_retries attempts
        """
        queue_name = queue_name or self.default_queue
        sb_message = self.build_message(checkpoint, delay_seconds)
        if delay_seconds > 0:
            logger.info(f"⏰ Scheduling chunk {checkpoint.current_chunk_index} of {checkpoint.manifest} "
                        f"in {delay_seconds}s to queue: {queue_name}")
        else:
            logger.info(f"🚌 Sending chunk {checkpoint.current_chunk_index} of {checkpoint.manifest} "
                        f"to queue: {queue_name}")

        for attempt in range(self.max_retries + 1):
            try:
                self._get_sender(queue_name).send_messages(sb_message)
                break
            except (ServiceBusError, ServiceRequestError) as e:
                if attempt >= self.max_retries:
                    logger.error(f"❌ Failed to send to {queue_name} after {attempt + 1} attempts: {e}")
                    raise
                wait = self.retry_delay * (2 ** attempt)
                logger.warning(f"⚠️ Send attempt {attempt + 1} failed, retrying in {wait}s: {e}")
                self._senders.pop(queue_name, None)
                time.sleep(wait)

        message_id = sb_message.message_id or f"sb_{datetime.now(timezone.utc).timestamp()}"
        logger.info(f"✅ Checkpoint queued - ID: {message_id}")
        return message_id

    def close(self) -> None:
        for sender in self._senders.values():
            try:
                sender.close()
            except ServiceBusError as e:
                logger.warning(f"⚠️ Error closing sender: {e}")
        self._senders.clear()
        self.client.close()


def get_service_bus_repository() -> ServiceBusRepository:
    return ServiceBusRepository.instance()
