"""
Azure Functions entry point for the Imagery Catalog Ingestion Service.

Two ingestion paths feed one pgSTAC catalog index:

    POST /api/ingest/manifest ──> catalog-ingest ──> ChunkedIngestionController
                                      ^                   |  one chunk per message
                                      └── continuation ───┘  (CONTINUE / RETRY)

    catalog-items (batch) ──> FanInDispatcher ──> bulk upsert

Exports:
    app: Azure Function App instance

Endpoints:
    POST /api/ingest/manifest - Enqueue the first checkpoint for a manifest

Service Bus:
    catalog-ingest - IngestionCheckpoint messages
    catalog-items  - Catalog item messages (cardinality many)

Environment Variables:
    ServiceBusConnection / ServiceBusConnection__fullyQualifiedNamespace
    STORAGE_ACCOUNT_NAME or AZURE_STORAGE_CONNECTION_STRING
    POSTGRESQL_CONNECTION_STRING or POSTGIS_HOST / POSTGIS_DATABASE / ...
    INGEST_* tuning (see config/ingest_config.py)
"""

# ========================================================================
# IMPORTS - Categorized by source for maintainability
# ========================================================================

# Native Python modules
import logging
import threading
from typing import List

# Azure SDK modules (3rd party - Microsoft)
import azure.functions as func

# Suppress Azure Identity and Azure SDK authentication/HTTP logging
logging.getLogger("azure.identity").setLevel(logging.WARNING)
logging.getLogger("azure.identity._internal").setLevel(logging.WARNING)
logging.getLogger("azure.core.pipeline.policies.http_logging_policy").setLevel(logging.WARNING)
logging.getLogger("azure.storage").setLevel(logging.WARNING)
logging.getLogger("azure.servicebus").setLevel(logging.WARNING)
logging.getLogger("azure.core").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("msal").setLevel(logging.WARNING)  # Microsoft Authentication Library

# Application modules (our code)
# Constants only: no environment reads before the Functions runtime is ready
from config.queue_config import QueueNames
from triggers.service_bus import handle_ingest_message, handle_items_batch
from triggers.submit_ingest import submit_ingest_trigger
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.TRIGGER, "FunctionApp")

# ========================================================================
# LAZY SINGLETONS - built on first trigger, after env vars are available
# ========================================================================

_controller = None
_dispatcher = None
_init_lock = threading.Lock()


def get_controller():
    global _controller
    if _controller is None:
        with _init_lock:
            if _controller is None:
                from core.ingest_machine import create_controller
                _controller = create_controller()
                logger.info("✅ ChunkedIngestionController initialized")
    return _controller


def get_dispatcher():
    global _dispatcher
    if _dispatcher is None:
        with _init_lock:
            if _dispatcher is None:
                from core.fan_in import create_fan_in_dispatcher
                _dispatcher = create_fan_in_dispatcher()
                logger.info("✅ FanInDispatcher initialized")
    return _dispatcher


app = func.FunctionApp(http_auth_level=func.AuthLevel.FUNCTION)


# ============================================================================
# HTTP
# ============================================================================

@app.route(route="ingest/manifest", methods=["POST"])
def submit_ingest(req: func.HttpRequest) -> func.HttpResponse:
    """Enqueue the first checkpoint for a manifest."""
    return submit_ingest_trigger.handle_request(req)


# ============================================================================
# SERVICE BUS
# ============================================================================

@app.service_bus_queue_trigger(
    arg_name="msg",
    queue_name=QueueNames.INGEST,
    connection="ServiceBusConnection"
)
async def process_ingest_message(msg: func.ServiceBusMessage) -> None:
    """One manifest chunk per message; continuation goes back to this queue."""
    await handle_ingest_message(msg, get_controller())


@app.service_bus_queue_trigger(
    arg_name="msgs",
    queue_name=QueueNames.ITEMS,
    connection="ServiceBusConnection",
    cardinality=func.Cardinality.MANY
)
async def process_items_batch(msgs: List[func.ServiceBusMessage]) -> None:
    """Fan-in a batch of catalog item messages into the index."""
    await handle_items_batch(msgs, get_dispatcher())
