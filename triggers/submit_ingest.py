"""
Manifest Submission HTTP Trigger.

POST /api/ingest/manifest

    {"bucket": "manifests", "key": "sentinel/index.csv.gz"}

Optional: currentChunkIndex, lastChunkIndex (resume or bound a run). The
body becomes the initial IngestionCheckpoint on the ingest queue; the
controller takes it from there.

Exports:
    SubmitIngestTrigger
    submit_ingest_trigger: Module-level instance used by function_app.py
"""

from typing import Any, Dict, List, Optional

import azure.functions as func

from core.models.checkpoint import IngestionCheckpoint
from exceptions import ManifestNotFound
from .http_base import BaseHttpTrigger


class SubmitIngestTrigger(BaseHttpTrigger):
    """Enqueue the first checkpoint for a manifest."""

    def __init__(self, scheduler=None, blob_repo=None, queue_name: Optional[str] = None):
        super().__init__("submit_ingest")
        self._scheduler = scheduler
        self._blob_repo = blob_repo
        self._queue_name = queue_name

    def get_allowed_methods(self) -> List[str]:
        return ["POST"]

    @property
    def scheduler(self):
        if self._scheduler is None:
            from infrastructure.service_bus import get_service_bus_repository
            self._scheduler = get_service_bus_repository()
        return self._scheduler

    @property
    def blob_repo(self):
        if self._blob_repo is None:
            from infrastructure.blob import BlobRepository
            self._blob_repo = BlobRepository.instance()
        return self._blob_repo

    @property
    def queue_name(self) -> str:
        if self._queue_name is None:
            from config import get_config
            self._queue_name = get_config().queues.ingest_queue
        return self._queue_name

    def process_request(self, req: func.HttpRequest) -> Dict[str, Any]:
        body = self.extract_json_body(req, required=True)
        self.validate_required_fields(body, ["bucket", "key"])

        checkpoint = IngestionCheckpoint.model_validate({
            **body,
            "retryCount": 0,
            "invocationReference": self.queue_name,
        })

        if not self.blob_repo.blob_exists(checkpoint.bucket, checkpoint.key):
            raise ManifestNotFound(checkpoint.bucket, checkpoint.key)

        message_id = self.scheduler.send_checkpoint(checkpoint, 0, self.queue_name)
        self.logger.info(f"📤 Ingestion queued for {checkpoint.manifest} (message {message_id})")

        return {
            "success": True,
            "status": "queued",
            "message_id": message_id,
            "queue": self.queue_name,
            "checkpoint": checkpoint.to_message(),
        }


submit_ingest_trigger = SubmitIngestTrigger()
