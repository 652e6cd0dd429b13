"""Error taxonomy shared by adapters, the poller and the fallback executor."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional, Sequence

from .contracts import Attempt


class ErrorKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    MODEL_UNAVAILABLE = "model_unavailable"
    CONTENT_REJECTED = "content_rejected"
    INVALID_PARAMETERS = "invalid_parameters"
    TRANSIENT = "transient"
    UNKNOWN = "unknown"


RETRYABLE_KINDS = frozenset({ErrorKind.RATE_LIMITED, ErrorKind.TRANSIENT})

USER_MESSAGES: Dict[ErrorKind, str] = {
    ErrorKind.RATE_LIMITED: "Too many requests right now. Please wait a moment and try again.",
    ErrorKind.TRANSIENT: "The provider did not finish in time. Please try again.",
    ErrorKind.CONTENT_REJECTED: "The request was rejected by the provider's safety system. Try different wording or a different image.",
    ErrorKind.INVALID_PARAMETERS: "The request is invalid. Check the prompt and options and try again.",
    ErrorKind.MODEL_UNAVAILABLE: "This model is temporarily unavailable. Please try again later.",
    ErrorKind.UNKNOWN: "Something went wrong. Please try again.",
}

HTTP_STATUS: Dict[ErrorKind, int] = {
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.TRANSIENT: 504,
    ErrorKind.CONTENT_REJECTED: 400,
    ErrorKind.INVALID_PARAMETERS: 400,
    ErrorKind.MODEL_UNAVAILABLE: 503,
    ErrorKind.UNKNOWN: 500,
}

# Checked in order; the first matching group wins.
_MESSAGE_MARKERS = (
    (
        ErrorKind.CONTENT_REJECTED,
        (
            "safety system",
            "moderation_blocked",
            "content_policy_violation",
            "image_generation_user_error",
            "content moderated",
            "request moderated",
            "nsfw",
        ),
    ),
    (
        ErrorKind.MODEL_UNAVAILABLE,
        (
            "model_not_found",
            "invalid_model",
            "model not found",
            "does not exist",
            "must be verified",
            "model is not available",
        ),
    ),
    (
        ErrorKind.RATE_LIMITED,
        ("rate_limit_exceeded", "rate limit", "too many requests"),
    ),
    (
        ErrorKind.TRANSIENT,
        ("timed out", "timeout", "temporarily unavailable", "overloaded", "try again later"),
    ),
    (
        ErrorKind.INVALID_PARAMETERS,
        ("invalid_request_error", "invalid parameter", "invalid_value", "unsupported"),
    ),
)


class ProviderError(RuntimeError):
    """A failure reported by a provider's endpoint."""

    def __init__(
        self,
        message: str,
        *,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
        self.code = code


class TaskFailedError(ProviderError):
    """The provider reported the asynchronous task as failed."""


class CredentialsMissingError(ProviderError):
    pass


class GenerationError(RuntimeError):
    """Terminal, caller-facing outcome of a generation call."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        attempts: Sequence[Attempt] = (),
    ) -> None:
        super().__init__(message)
        self.kind = ErrorKind(kind)
        self.provider = provider
        self.model = model
        self.attempts = tuple(attempts)

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS

    @property
    def user_message(self) -> str:
        return USER_MESSAGES[self.kind]

    @property
    def http_status(self) -> int:
        return HTTP_STATUS[self.kind]


class ChainExhaustedError(GenerationError):
    def __init__(self, operation: str, attempts: Sequence[Attempt]) -> None:
        tried = ", ".join(a.candidate for a in attempts) or "none"
        super().__init__(
            ErrorKind.MODEL_UNAVAILABLE,
            f"No model available for '{operation}' (tried: {tried}).",
            attempts=attempts,
        )
        self.operation = operation


class TaskTimedOutError(GenerationError):
    def __init__(self, message: str, *, provider: str, model: str, task_id: str) -> None:
        super().__init__(ErrorKind.TRANSIENT, message, provider=provider, model=model)
        self.task_id = task_id


class TaskCancelledError(GenerationError):
    def __init__(self, message: str, *, provider: str, model: str, task_id: str) -> None:
        super().__init__(ErrorKind.TRANSIENT, message, provider=provider, model=model)
        self.task_id = task_id


def classify_status(status_code: Optional[int]) -> Optional[ErrorKind]:
    if status_code is None:
        return None
    if status_code == 429:
        return ErrorKind.RATE_LIMITED
    if status_code in (408, 425) or status_code >= 500:
        return ErrorKind.TRANSIENT
    if status_code == 404:
        return ErrorKind.MODEL_UNAVAILABLE
    if status_code in (400, 413, 422):
        return ErrorKind.INVALID_PARAMETERS
    return None


def classify_message(text: Optional[str]) -> Optional[ErrorKind]:
    if not text:
        return None
    lowered = text.lower()
    for kind, markers in _MESSAGE_MARKERS:
        if any(marker in lowered for marker in markers):
            return kind
    return None


def describe_error(kind: ErrorKind, detail: str = "") -> str:
    """The stable message for ``kind``, followed by ``detail`` when given."""
    message = USER_MESSAGES[ErrorKind(kind)]
    detail = detail.strip()
    return f"{message} ({detail})" if detail else message


def error_payload(exc: BaseException) -> Dict[str, Any]:
    if isinstance(exc, GenerationError):
        return {
            "error": exc.user_message,
            "details": str(exc),
            "kind": exc.kind.value,
            "retryable": exc.retryable,
            "status": exc.http_status,
        }
    return {
        "error": USER_MESSAGES[ErrorKind.UNKNOWN],
        "details": str(exc) or exc.__class__.__name__,
        "kind": ErrorKind.UNKNOWN.value,
        "retryable": False,
        "status": HTTP_STATUS[ErrorKind.UNKNOWN],
    }
