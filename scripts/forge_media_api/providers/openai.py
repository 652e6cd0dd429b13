"""OpenAI image adapter (GPT-Image-1, DALL-E 3, DALL-E 2)."""

from __future__ import annotations

import os
import threading
from typing import Any, Dict, Optional

import openai
import requests
from openai import OpenAI

from forge_media_api.core.contracts import ImmediateResult, MediaInput, ResolvedRequest, TaskHandle, TaskStatus
from forge_media_api.core.errors import (
    CredentialsMissingError,
    ErrorKind,
    ProviderError,
    classify_message,
    classify_status,
)
from forge_media_api.core.utils import b64_to_data_url, read_input_bytes


DEFAULT_TIMEOUT = 120.0
DEFAULT_DOWNLOAD_TIMEOUT = 60.0
_QUALITY_MODELS = {"gpt-image-1", "dall-e-3"}
_STYLE_MODELS = {"dall-e-3"}

_CLIENT: Optional[OpenAI] = None
_CLIENT_LOCK = threading.Lock()


def _client() -> OpenAI:
    global _CLIENT
    api_key = os.getenv("OPENAI_API_KEY") or os.getenv("OPENAI_API_KEY_BACKUP")
    if not api_key:
        raise CredentialsMissingError("OPENAI_API_KEY not set.", provider="openai")
    with _CLIENT_LOCK:
        if _CLIENT is None:
            # Retries belong to the caller; the SDK must not retry on its own.
            _CLIENT = OpenAI(api_key=api_key, max_retries=0, timeout=DEFAULT_TIMEOUT)
        return _CLIENT


def _common_kwargs(resolved: ResolvedRequest) -> Dict[str, Any]:
    kwargs: Dict[str, Any] = {"model": resolved.model, "n": 1, "size": resolved.size}
    if resolved.user:
        kwargs["user"] = resolved.user
    return kwargs


class OpenAIImageAdapter:
    name = "openai"

    def __init__(
        self,
        client: Optional[Any] = None,
        session: Optional[requests.Session] = None,
        download_timeout: float = DEFAULT_DOWNLOAD_TIMEOUT,
    ) -> None:
        self._client_override = client
        self._session = session or requests.Session()
        self.download_timeout = download_timeout

    def _get_client(self):
        return self._client_override if self._client_override is not None else _client()

    def _upload(self, value: MediaInput, name: str) -> tuple:
        data, mime_type = read_input_bytes(value, session=self._session, timeout=self.download_timeout)
        return (name, data, mime_type or "image/png")

    def submit(self, resolved: ResolvedRequest) -> ImmediateResult:
        client = self._get_client()
        kwargs = _common_kwargs(resolved)

        if resolved.operation == "generate":
            kwargs["prompt"] = resolved.prompt
            if resolved.model in _QUALITY_MODELS:
                kwargs["quality"] = resolved.quality
            if resolved.model in _STYLE_MODELS and resolved.style:
                kwargs["style"] = resolved.style
            response = client.images.generate(**kwargs)
        elif resolved.operation == "edit":
            kwargs["prompt"] = resolved.prompt
            kwargs["image"] = self._upload(resolved.source_image, "image.png")
            if resolved.mask is not None:
                kwargs["mask"] = self._upload(resolved.mask, "mask.png")
            if resolved.model == "gpt-image-1":
                kwargs["quality"] = resolved.quality
            response = client.images.edit(**kwargs)
        elif resolved.operation == "variation":
            kwargs["image"] = self._upload(resolved.source_image, "image.png")
            response = client.images.create_variation(**kwargs)
        else:
            raise ProviderError(f"OpenAI cannot run '{resolved.operation}'.", provider=self.name)

        data = list(getattr(response, "data", None) or [])
        if not data:
            raise ProviderError("OpenAI returned no images.", provider=self.name)
        first = data[0]
        artifact = getattr(first, "url", None)
        if not artifact and getattr(first, "b64_json", None):
            artifact = b64_to_data_url(first.b64_json)
        if not artifact:
            raise ProviderError("OpenAI response carried neither a URL nor image data.", provider=self.name)
        return ImmediateResult(
            artifact=artifact,
            revised_prompt=getattr(first, "revised_prompt", None),
            raw={"model": resolved.model, "created": getattr(response, "created", None)},
        )

    def poll(self, handle: TaskHandle) -> TaskStatus:
        raise ProviderError("OpenAI image calls complete synchronously; there is nothing to poll.", provider=self.name)

    def classify_error(self, error: BaseException) -> ErrorKind:
        if isinstance(error, CredentialsMissingError):
            return ErrorKind.MODEL_UNAVAILABLE
        if isinstance(error, openai.APITimeoutError) or isinstance(error, openai.APIConnectionError):
            return ErrorKind.TRANSIENT
        if isinstance(error, (requests.Timeout, requests.ConnectionError)):
            return ErrorKind.TRANSIENT
        if isinstance(error, openai.APIStatusError):
            by_code = classify_message(str(getattr(error, "code", "") or ""))
            if by_code is not None:
                return by_code
            if classify_message(str(getattr(error, "type", "") or "")) == ErrorKind.CONTENT_REJECTED:
                return ErrorKind.CONTENT_REJECTED
            if isinstance(error, openai.RateLimitError):
                return ErrorKind.RATE_LIMITED
            if isinstance(error, (openai.NotFoundError, openai.PermissionDeniedError)):
                return ErrorKind.MODEL_UNAVAILABLE
            if getattr(error, "param", None) == "model":
                return ErrorKind.MODEL_UNAVAILABLE
            return classify_message(str(error)) or classify_status(error.status_code) or ErrorKind.UNKNOWN
        if isinstance(error, ProviderError):
            return classify_status(error.status_code) or classify_message(str(error)) or ErrorKind.UNKNOWN
        return classify_message(str(error)) or ErrorKind.UNKNOWN
