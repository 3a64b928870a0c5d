# ============================================================================
# SERVICE BUS INGEST HANDLER
# ============================================================================
# STATUS: Trigger layer - Ingest queue message processing
# PURPOSE: Handle IngestionCheckpoint messages from the catalog-ingest queue
# ============================================================================
"""
Ingest Queue Message Handler Module.

Each message on catalog-ingest is an IngestionCheckpoint (camelCase JSON).
The handler parses it, runs one controller invocation and logs the outcome.

The handler never raises once the controller has returned: DONE, FAILED,
CONTINUE and RETRY are all completed messages (CONTINUE and RETRY have
already re-submitted their next checkpoint). A malformed checkpoint is
logged and dropped, since redelivery cannot fix it. Errors while sending the
continuation propagate so Service Bus redelivers the original message.

Usage:
    @app.service_bus_queue_trigger(
        arg_name="msg",
        queue_name="catalog-ingest",
        connection="ServiceBusConnection"
    )
    async def process_ingest_message(msg: func.ServiceBusMessage) -> None:
        await handle_ingest_message(msg, get_controller())
"""

import time
import uuid
from typing import Any, Dict, Optional

import azure.functions as func
from pydantic import ValidationError

from config import get_config
from core.models.checkpoint import IngestionCheckpoint
from core.models.enums import IngestionState
from util_logger import LoggerFactory, ComponentType, LogContext

logger = LoggerFactory.create_logger(ComponentType.TRIGGER, "IngestHandler")


def parse_checkpoint(body: bytes, correlation_id: str) -> Optional[IngestionCheckpoint]:
    """Checkpoint from a message body, or None when the body is not a valid checkpoint."""
    try:
        return IngestionCheckpoint.model_validate_json(body)
    except ValidationError as e:
        logger.error(
            f"[{correlation_id}] ❌ Invalid checkpoint message, dropping: {e.error_count()} error(s)",
            extra={'custom_dimensions': {
                'correlation_id': correlation_id,
                'errors': [err.get('msg') for err in e.errors()],
                'body_preview': body[:200].decode('utf-8', errors='replace'),
            }}
        )
        return None


async def handle_ingest_message(msg: func.ServiceBusMessage, controller: Any) -> Dict[str, Any]:
    """
    Process one ingest queue message.

    Args:
        msg: Service Bus message carrying an IngestionCheckpoint
        controller: ChunkedIngestionController

    Returns:
        Outcome summary dict (logged; returned for tests)
    """
    correlation_id = str(uuid.uuid4())[:8]
    start_time = time.time()

    log_context = LogContext(correlation_id=correlation_id, message_id=msg.message_id)

    logger.info(
        f"[{correlation_id}] SERVICE BUS MESSAGE RECEIVED (ingest)",
        extra={'custom_dimensions': {**log_context.to_dict(), 'delivery_count': msg.delivery_count}}
    )

    checkpoint = parse_checkpoint(msg.get_body(), correlation_id)
    if checkpoint is None:
        return {"success": False, "error": "invalid checkpoint", "correlation_id": correlation_id}

    log_context.manifest = checkpoint.manifest
    log_context.chunk_index = checkpoint.current_chunk_index
    log_context.retry_count = checkpoint.retry_count

    if get_config().should_log_verbose():
        logger.debug(f"[{correlation_id}] Checkpoint: {checkpoint.model_dump(by_alias=True)}")

    outcome = await controller.run(checkpoint)
    summary = outcome.summary()

    elapsed = time.time() - start_time
    logger.info(
        f"[{correlation_id}] Ingestion invocation finished in {elapsed:.3f}s: {summary['state']}",
        extra={'custom_dimensions': {**summary, **log_context.to_dict()}}
    )
    return {
        "success": outcome.state is not IngestionState.FAILED,
        "correlation_id": correlation_id,
        **summary,
    }


__all__ = ['handle_ingest_message', 'parse_checkpoint']
