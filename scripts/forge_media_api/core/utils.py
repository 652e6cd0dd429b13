"""Utility helpers for Media Forge."""

from __future__ import annotations

import base64
import re
from pathlib import Path
from typing import Optional, Tuple

import requests

from .contracts import MediaInput

_URL_RE = re.compile(r"^https?://", re.IGNORECASE)
_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w/+.-]+)?;base64,(?P<data>.*)$", re.IGNORECASE | re.DOTALL)


def is_url(value: str) -> bool:
    return bool(_URL_RE.match(value or ""))


def is_data_url(value: str) -> bool:
    return bool(_DATA_URL_RE.match(value or ""))


def to_data_url(data: bytes, mime_type: str = "image/png") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def b64_to_data_url(b64_json: str, mime_type: str = "image/png") -> str:
    return f"data:{mime_type};base64,{b64_json}"


def mime_from_suffix(path: str) -> Optional[str]:
    suffix = Path(path).suffix.lower()
    if suffix == ".png":
        return "image/png"
    if suffix in {".jpg", ".jpeg"}:
        return "image/jpeg"
    if suffix == ".webp":
        return "image/webp"
    return None


def read_input_bytes(
    value: MediaInput,
    session: Optional[requests.Session] = None,
    timeout: float = 60.0,
) -> Tuple[bytes, Optional[str]]:
    """Resolve bytes, a path, a data URL or an http(s) URL to ``(bytes, mime)``."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value), None
    if isinstance(value, Path):
        return value.read_bytes(), mime_from_suffix(str(value))
    if isinstance(value, str):
        match = _DATA_URL_RE.match(value)
        if match:
            return base64.b64decode(match.group("data")), match.group("mime")
        if is_url(value):
            http = session or requests
            response = http.get(value, timeout=timeout)
            response.raise_for_status()
            return response.content, response.headers.get("content-type")
        path = Path(value).expanduser().resolve()
        return path.read_bytes(), mime_from_suffix(str(path))
    raise TypeError(f"Unsupported input type: {type(value)}")
