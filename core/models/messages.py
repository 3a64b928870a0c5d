"""
Inbound Message Envelope for Fan-in.

Catalog items arrive in three shapes:

    DIRECT        {"type": "Feature", "id": ..., ...} or {"type": "Collection", ...}
    NOTIFICATION  {"Type": "Notification", "Message": "<json string>"}
    REFERENCE     {"href": "az://container/item.json" | "https://..."}

and may be wrapped by the transport in {"body": "<json string>"}.

Exports:
    InboundMessage: Classified envelope
"""

import json
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from .enums import MessageKind


class InboundMessage(BaseModel):
    """Classified inbound message. Transient: lives for one dispatch."""

    model_config = ConfigDict(frozen=True)

    message_id: str = Field(..., description="Transport message id or batch position, for log correlation")
    kind: MessageKind
    payload: Dict[str, Any] = Field(default_factory=dict, description="Item dict (DIRECT) or inner message (NOTIFICATION)")
    href: Optional[str] = Field(default=None, description="Reference URI (REFERENCE)")

    @classmethod
    def classify(cls, body: Dict[str, Any], message_id: str) -> "InboundMessage":
        """Classify a decoded message body."""
        if not isinstance(body, dict):
            raise ValueError(f"message body must be a JSON object, got {type(body).__name__}")
        if body.get("Type") == "Notification":
            return cls(message_id=message_id, kind=MessageKind.NOTIFICATION, payload=body)
        if "href" in body and "type" not in body:
            return cls(message_id=message_id, kind=MessageKind.REFERENCE, href=str(body["href"]))
        return cls(message_id=message_id, kind=MessageKind.DIRECT, payload=body)

    @classmethod
    def from_raw(cls, raw: Any, message_id: str) -> "InboundMessage":
        """
        Classify a raw transport message.

        Accepts a JSON string or bytes, a dict, or a transport wrapper
        {"body": "<json>"}.

        Raises:
            ValueError: Body is not JSON or not an object
        """
        body = _decode(raw)
        if _is_transport_wrapper(body):
            body = _decode(body["body"])
        return cls.classify(body, message_id)

    def unwrap(self) -> "InboundMessage":
        """Replace a NOTIFICATION by the DIRECT or REFERENCE message it carries."""
        if self.kind is not MessageKind.NOTIFICATION:
            return self
        inner = _decode(self.payload.get("Message"))
        unwrapped = InboundMessage.classify(inner, self.message_id)
        if unwrapped.kind is MessageKind.NOTIFICATION:
            raise ValueError("nested notification envelopes are not supported")
        return unwrapped


def _is_transport_wrapper(body: Any) -> bool:
    return (
        isinstance(body, dict)
        and isinstance(body.get("body"), (str, bytes, bytearray))
        and not {"type", "Type", "href"} & set(body)
    )


def _decode(raw: Any) -> Any:
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    if isinstance(raw, str):
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValueError(f"message is not valid JSON: {e}") from e
    if raw is None:
        raise ValueError("message body is empty")
    return raw
