# ============================================================================
# SERVICE BUS ITEMS HANDLER
# ============================================================================
# STATUS: Trigger layer - Catalog item batch processing
# PURPOSE: Handle message batches from the catalog-items queue
# ============================================================================
"""
Items Queue Batch Handler Module.

Receives a batch of catalog-item messages (cardinality many) and hands it
to the FanInDispatcher. Individual bad messages are logged and excluded by
the dispatcher. When the whole batch fails, FanInBatchFailed is re-raised
so Service Bus redelivers the batch; the same goes for index connection
failures.

Usage:
    @app.service_bus_queue_trigger(
        arg_name="msgs",
        queue_name="catalog-items",
        connection="ServiceBusConnection",
        cardinality="many"
    )
    async def process_items_batch(msgs: List[func.ServiceBusMessage]) -> None:
        await handle_items_batch(msgs, get_dispatcher())
"""

import time
import traceback
import uuid
from typing import Any, Dict, List

import azure.functions as func

from exceptions import FanInBatchFailed, IndexWriteFailed
from util_logger import LoggerFactory, ComponentType, LogContext

logger = LoggerFactory.create_logger(ComponentType.TRIGGER, "ItemsHandler")


async def handle_items_batch(msgs: List[func.ServiceBusMessage], dispatcher: Any) -> Dict[str, Any]:
    """
    Process one batch from the items queue.

    Raises:
        FanInBatchFailed: No message in a non-empty batch resolved
        IndexWriteFailed: Index connection failure
    """
    correlation_id = str(uuid.uuid4())[:8]
    start_time = time.time()
    log_context = LogContext(correlation_id=correlation_id)
    logger.info(f"[{correlation_id}] SERVICE BUS BATCH RECEIVED (items): {len(msgs)} message(s)")

    try:
        summary = await dispatcher.dispatch(msgs)
    except (FanInBatchFailed, IndexWriteFailed) as e:
        logger.error(
            f"[{correlation_id}] ❌ Batch failed, leaving for redelivery: {e}",
            extra={'custom_dimensions': {**log_context.to_dict(), 'error_type': type(e).__name__}}
        )
        logger.error(f"[{correlation_id}] Full traceback:\n{traceback.format_exc()}")
        raise

    elapsed = time.time() - start_time
    logger.info(
        f"[{correlation_id}] Batch dispatched in {elapsed:.3f}s: "
        f"{summary['written']} written, {len(summary['failed_messages'])} message(s) excluded",
        extra={'custom_dimensions': {
            **log_context.to_dict(),
            'messages': summary['messages'],
            'written': summary['written'],
        }}
    )
    return {"success": True, "correlation_id": correlation_id, **summary}


__all__ = ['handle_items_batch']
