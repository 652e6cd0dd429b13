"""WaveSpeed submit-and-poll adapter."""

from __future__ import annotations

import json
import os
from typing import Any, Dict, Mapping, Optional

import requests

from forge_media_api.core.contracts import ResolvedRequest, TaskHandle, TaskState, TaskStatus
from forge_media_api.core.errors import (
    CredentialsMissingError,
    ErrorKind,
    ProviderError,
    TaskFailedError,
    classify_message,
    classify_status,
)
from forge_media_api.core.utils import is_data_url, is_url, read_input_bytes, to_data_url


API_BASE_URL = "https://api.wavespeed.ai/api/v3"
MODEL_PATHS = {
    "flux-dev-ultra-fast": "wavespeed-ai/flux-dev-ultra-fast",
}
DEFAULT_REQUEST_TIMEOUT = 30.0
COMPLETED_STATUSES = {"completed", "succeeded"}
FAILURE_STATUSES = {"failed", "error"}
QUEUED_STATUSES = {"created", "queued", "pending"}


class WaveSpeedError(ProviderError):
    pass


def _resolve_api_key() -> str:
    api_key = os.getenv("WAVESPEED_API_KEY")
    if not api_key:
        raise CredentialsMissingError("WAVESPEED_API_KEY must be set for WaveSpeed.", provider="wavespeed")
    return api_key


def _summarize_error(response) -> str:
    try:
        detail = json.dumps(response.json(), ensure_ascii=True)
    except ValueError:
        detail = response.text or ""
    detail = detail.strip().replace("\n", " ")
    if len(detail) > 500:
        detail = detail[:500].rstrip() + "..."
    return detail


def _raise_for_status(response, label: str) -> None:
    if response.status_code < 400:
        return
    detail = _summarize_error(response)
    parts = [f"WaveSpeed {label} failed ({response.status_code})"]
    if detail:
        parts.append(detail)
    raise WaveSpeedError(": ".join(parts), provider="wavespeed", status_code=response.status_code)


def _image_reference(value) -> str:
    if isinstance(value, str) and (is_url(value) or is_data_url(value)):
        return value
    data, mime_type = read_input_bytes(value)
    return to_data_url(data, mime_type or "image/png")


def parse_status(payload: Mapping[str, Any]) -> TaskStatus:
    data = payload.get("data") or {}
    status = str(data.get("status") or "").lower()
    outputs = data.get("outputs") or []
    if status in COMPLETED_STATUSES:
        return TaskStatus(state=TaskState.COMPLETED, output=outputs[0] if outputs else None, raw=payload)
    if status in FAILURE_STATUSES:
        return TaskStatus(state=TaskState.FAILED, error=data.get("error") or "Unknown error", raw=payload)
    if status in QUEUED_STATUSES:
        return TaskStatus(state=TaskState.QUEUED, raw=payload)
    return TaskStatus(state=TaskState.PROCESSING, raw=payload)


class WaveSpeedAdapter:
    name = "wavespeed"

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ) -> None:
        # One pooled session shared by every request through this adapter.
        self._session = session or requests.Session()
        self.request_timeout = request_timeout

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {_resolve_api_key()}",
        }

    def build_payload(self, resolved: ResolvedRequest) -> Dict[str, Any]:
        params = resolved.provider_params
        payload: Dict[str, Any] = {
            "enable_base64_output": False,
            "enable_safety_checker": params.get("enable_safety_checker", True),
            "guidance_scale": params["guidance_scale"],
            "num_images": 1,
            "num_inference_steps": params["num_inference_steps"],
            "prompt": resolved.prompt,
            "seed": params.get("seed", -1),
            "size": params["size"],
            "strength": params["strength"],
        }
        if resolved.operation == "edit":
            payload["image"] = _image_reference(resolved.source_image)
        return payload

    def submit(self, resolved: ResolvedRequest) -> TaskHandle:
        if resolved.operation not in ("generate", "edit"):
            raise WaveSpeedError(f"WaveSpeed cannot run '{resolved.operation}'.", provider=self.name, status_code=400)
        path = MODEL_PATHS.get(resolved.model)
        if path is None:
            raise WaveSpeedError(f"Unknown WaveSpeed model '{resolved.model}'.", provider=self.name, status_code=404)
        response = self._session.post(
            f"{API_BASE_URL}/{path}",
            headers=self._headers(),
            json=self.build_payload(resolved),
            timeout=self.request_timeout,
        )
        _raise_for_status(response, "submit")
        try:
            body = response.json()
        except ValueError as exc:
            raise WaveSpeedError("Invalid response from WaveSpeed API", provider=self.name) from exc
        task_id = (body.get("data") or {}).get("id")
        if not task_id:
            raise WaveSpeedError(f"WaveSpeed response missing task id: {body}", provider=self.name)
        return TaskHandle(provider=self.name, model=resolved.model, task_id=str(task_id), raw=body)

    def poll(self, handle: TaskHandle) -> TaskStatus:
        response = self._session.get(
            f"{API_BASE_URL}/predictions/{handle.task_id}/result",
            headers={"Authorization": self._headers()["Authorization"]},
            timeout=self.request_timeout,
        )
        _raise_for_status(response, "poll")
        return parse_status(response.json())

    def classify_error(self, error: BaseException) -> ErrorKind:
        if isinstance(error, CredentialsMissingError):
            return ErrorKind.MODEL_UNAVAILABLE
        if isinstance(error, (requests.Timeout, requests.ConnectionError)):
            return ErrorKind.TRANSIENT
        if isinstance(error, TaskFailedError):
            return classify_message(str(error)) or ErrorKind.UNKNOWN
        if isinstance(error, ProviderError):
            by_text = classify_message(str(error))
            if by_text in (ErrorKind.CONTENT_REJECTED, ErrorKind.MODEL_UNAVAILABLE):
                return by_text
            if error.status_code in (400, 422) and "parameter" in str(error).lower():
                return ErrorKind.INVALID_PARAMETERS
            return classify_status(error.status_code) or by_text or ErrorKind.UNKNOWN
        if isinstance(error, requests.RequestException):
            return ErrorKind.TRANSIENT
        return classify_message(str(error)) or ErrorKind.UNKNOWN
