"""
HTTP Trigger Base Class.

Abstract base class for Azure Functions HTTP triggers: method check, JSON
body extraction, and a uniform JSON envelope for success and error
responses.

Exception to status mapping:
    ValueError (incl. pydantic ValidationError)  -> 400
    FileNotFoundError, ManifestNotFound          -> 404
    anything else                                -> 500

Exports:
    BaseHttpTrigger: Base class for HTTP triggers
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, List
import uuid
import json
import traceback
from datetime import datetime, timezone

import azure.functions as func

from core.errors import ErrorCode, create_error_response
from exceptions import ManifestNotFound
from util_logger import LoggerFactory, ComponentType


class BaseHttpTrigger(ABC):
    """
    Abstract base class for Azure Functions HTTP triggers.

    Subclasses implement process_request() and get_allowed_methods().
    """

    def __init__(self, trigger_name: str):
        self.trigger_name = trigger_name
        self.logger = LoggerFactory.create_logger(ComponentType.TRIGGER, f"HttpTrigger.{trigger_name}")

    @abstractmethod
    def process_request(self, req: func.HttpRequest) -> Dict[str, Any]:
        """
        Business logic. Return the JSON-serializable response body.

        Raises:
            ValueError: Client errors (400)
            FileNotFoundError / ManifestNotFound: Not found (404)
        """
        pass

    @abstractmethod
    def get_allowed_methods(self) -> List[str]:
        pass

    def handle_request(self, req: func.HttpRequest) -> func.HttpResponse:
        """Entry point called from function_app.py."""
        request_id = self._generate_request_id()
        self.logger.info(f"🌐 [{self.trigger_name}] Request {request_id} started: {req.method} {req.url}")

        if req.method not in self.get_allowed_methods():
            return self._error(
                ErrorCode.VALIDATION_ERROR,
                f"Method {req.method} not allowed. Allowed: {', '.join(self.get_allowed_methods())}",
                405, request_id
            )

        try:
            data = self.process_request(req)
        except (FileNotFoundError, ManifestNotFound) as e:
            self.logger.info(f"🔍 [{self.trigger_name}] Not found: {e}")
            return self._error(ErrorCode.RESOURCE_NOT_FOUND, str(e), 404, request_id)
        except ValueError as e:
            self.logger.warning(f"❌ [{self.trigger_name}] Client error: {e}")
            return self._error(ErrorCode.VALIDATION_ERROR, str(e), 400, request_id)
        except Exception as e:
            self.logger.error(f"💥 [{self.trigger_name}] Internal error: {e}")
            self.logger.debug(f"📍 Full traceback: {traceback.format_exc()}")
            return self._error(ErrorCode.UNKNOWN_ERROR, str(e), 500, request_id)

        self.logger.info(f"✅ [{self.trigger_name}] Request {request_id} completed successfully")
        return self._respond({**data, "request_id": request_id}, 200, request_id)

    def extract_json_body(self, req: func.HttpRequest, required: bool = True) -> Optional[Dict[str, Any]]:
        """
        Raises:
            ValueError: Body required but missing, not JSON, or not an object
        """
        try:
            body = req.get_json()
        except ValueError as e:
            raise ValueError(f"Invalid JSON in request body: {e}") from e

        if body is None:
            if required:
                raise ValueError("Request body is required")
            return None
        if not isinstance(body, dict):
            raise ValueError("Request body must be a JSON object")
        return body

    def validate_required_fields(self, data: Dict[str, Any], required_fields: List[str]) -> None:
        missing_fields = [name for name in required_fields if data.get(name) in (None, "")]
        if missing_fields:
            raise ValueError(f"Missing required fields: {', '.join(missing_fields)}")

    def _generate_request_id(self) -> str:
        return str(uuid.uuid4())[:8]

    def _respond(self, body: Dict[str, Any], status_code: int, request_id: str) -> func.HttpResponse:
        body.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
        return func.HttpResponse(
            json.dumps(body, default=str),
            status_code=status_code,
            mimetype="application/json",
            headers={"X-Request-ID": request_id}
        )

    def _error(self, code: ErrorCode, message: str, status_code: int, request_id: str) -> func.HttpResponse:
        body = create_error_response(code, message, request_id=request_id, trigger=self.trigger_name)
        return self._respond(body, status_code, request_id)
