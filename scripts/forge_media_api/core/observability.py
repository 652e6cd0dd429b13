"""Per-request logging context and payload redaction."""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Mapping, MutableMapping, Optional


_ROOT_LOGGER = "forge_media_api"
_REDACTED_KEYS = {"b64_json", "image", "image_bytes", "mask", "data", "x-key", "authorization"}
_MAX_INLINE_CHARS = 200


class ContextLogger(logging.LoggerAdapter):
    """Prefixes records with the request id and operation."""

    def process(self, msg, kwargs):
        extra = dict(self.extra or {})
        kwargs.setdefault("extra", {}).update(extra)
        return f"[{extra.get('request_id')} {extra.get('operation')}] {msg}", kwargs


@dataclass
class RequestContext:
    request_id: str
    operation: str
    logger: ContextLogger
    cancel_event: threading.Event = field(default_factory=threading.Event)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        self.cancel_event.set()


def new_context(
    operation: str,
    *,
    logger: Optional[logging.Logger] = None,
    cancel_event: Optional[threading.Event] = None,
    request_id: Optional[str] = None,
) -> RequestContext:
    rid = request_id or uuid.uuid4().hex[:12]
    base = logger or logging.getLogger(_ROOT_LOGGER)
    return RequestContext(
        request_id=rid,
        operation=operation,
        logger=ContextLogger(base, {"request_id": rid, "operation": operation}),
        cancel_event=cancel_event or threading.Event(),
    )


def sanitize_payload(payload: Any) -> Any:
    if payload is None or isinstance(payload, (int, float, bool)):
        return payload
    if isinstance(payload, str):
        if payload.startswith("data:") or len(payload) > _MAX_INLINE_CHARS:
            return f"<str:{len(payload)}>"
        return payload
    if isinstance(payload, (bytes, bytearray)):
        return f"<bytes:{len(payload)}>"
    if isinstance(payload, Mapping):
        sanitized: MutableMapping[str, Any] = {}
        for key, value in payload.items():
            if str(key).lower() in _REDACTED_KEYS and value is not None:
                sanitized[str(key)] = "<omitted>"
                continue
            sanitized[str(key)] = sanitize_payload(value)
        return sanitized
    if isinstance(payload, (list, tuple)):
        return [sanitize_payload(item) for item in payload]
    return str(payload)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
