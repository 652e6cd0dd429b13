"""Provider adapter interfaces."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping, Optional, Protocol, Sequence, Union

from forge_media_api.core.contracts import ImmediateResult, ResolvedRequest, TaskHandle, TaskStatus
from forge_media_api.core.errors import ErrorKind


SubmitResult = Union[TaskHandle, ImmediateResult]


class ProviderAdapter(Protocol):
    """Translate between semantic requests and one provider's HTTP contract.

    Adapters hold no per-request state: everything a call needs arrives in
    its arguments, so one instance is shared by concurrent requests.
    """

    name: str

    def submit(self, resolved: ResolvedRequest) -> SubmitResult:
        ...

    def poll(self, handle: TaskHandle) -> TaskStatus:
        ...

    def classify_error(self, error: BaseException) -> ErrorKind:
        ...


@dataclass(frozen=True)
class ChatTurn:
    role: str
    text: str


@dataclass(frozen=True)
class ChatRequest:
    model: str
    history: Sequence[ChatTurn]
    text: str
    file_uri: Optional[str] = None
    file_mime_type: Optional[str] = None
    generation_config: Mapping[str, Any] = field(default_factory=dict)


class ChatProvider(Protocol):
    name: str

    def stream_chat(self, request: ChatRequest) -> Iterator[str]:
        ...

    def classify_error(self, error: BaseException) -> ErrorKind:
        ...
