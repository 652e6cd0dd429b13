"""Gemini streaming chat provider."""

from __future__ import annotations

import os
import threading
from typing import Any, Iterator, List, Optional

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from forge_media_api.core.errors import CredentialsMissingError, ErrorKind, classify_message, classify_status
from .base import ChatRequest


_GENAI_CLIENT: Optional[genai.Client] = None
_CLIENT_LOCK = threading.Lock()


def _client() -> genai.Client:
    global _GENAI_CLIENT
    api_key = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
    if not api_key:
        raise CredentialsMissingError("GEMINI_API_KEY or GOOGLE_API_KEY not set.", provider="gemini")
    with _CLIENT_LOCK:
        if _GENAI_CLIENT is None:
            _GENAI_CLIENT = genai.Client(api_key=api_key)
        return _GENAI_CLIENT


def _extract_status_code(exc: BaseException) -> Optional[int]:
    code = getattr(exc, "code", None)
    if isinstance(code, int):
        return code
    status = getattr(exc, "status_code", None)
    if isinstance(status, int):
        return status
    return None


def build_contents(request: ChatRequest) -> List[types.Content]:
    contents = [
        types.Content(role=turn.role, parts=[types.Part(text=turn.text)])
        for turn in request.history
    ]
    parts: List[types.Part] = []
    if request.file_uri and request.file_mime_type:
        parts.append(types.Part(file_data=types.FileData(file_uri=request.file_uri, mime_type=request.file_mime_type)))
    parts.append(types.Part(text=request.text))
    contents.append(types.Content(role="user", parts=parts))
    return contents


def build_config(request: ChatRequest) -> types.GenerateContentConfig:
    return types.GenerateContentConfig(**dict(request.generation_config))


class GeminiChatProvider:
    name = "gemini"

    def __init__(self, client: Optional[Any] = None) -> None:
        self._client_override = client

    def _get_client(self):
        return self._client_override if self._client_override is not None else _client()

    def stream_chat(self, request: ChatRequest) -> Iterator[str]:
        client = self._get_client()
        stream = client.models.generate_content_stream(
            model=request.model,
            contents=build_contents(request),
            config=build_config(request),
        )
        for chunk in stream:
            text = getattr(chunk, "text", None)
            if text:
                yield text

    def classify_error(self, error: BaseException) -> ErrorKind:
        if isinstance(error, CredentialsMissingError):
            return ErrorKind.MODEL_UNAVAILABLE
        if isinstance(error, genai_errors.APIError):
            return (
                classify_message(str(error))
                or classify_status(_extract_status_code(error))
                or ErrorKind.UNKNOWN
            )
        return classify_message(str(error)) or ErrorKind.UNKNOWN
