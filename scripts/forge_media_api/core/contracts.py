"""Core data contracts for Media Forge."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, List, Literal, Mapping, Optional, Sequence, Tuple, Union


Operation = Literal["generate", "edit", "variation"]
MediaInput = Union[str, Path, bytes]

OPERATIONS: Tuple[str, ...] = ("generate", "edit", "variation")
QUALITIES: Tuple[str, ...] = ("low", "medium", "standard", "high", "hd")
STYLES: Tuple[str, ...] = ("vivid", "natural")
SIZES: Tuple[str, ...] = (
    "256x256",
    "512x512",
    "1024x1024",
    "1536x1024",
    "1024x1536",
    "1792x1024",
    "1024x1792",
)


@dataclass(frozen=True)
class GenerationRequest:
    prompt: str
    operation: Operation = "generate"
    quality: str = "standard"
    style: str = "vivid"
    size: str = "1024x1024"
    source_image: Optional[MediaInput] = None
    mask: Optional[MediaInput] = None
    strength: Optional[float] = None
    user: Optional[str] = None


@dataclass(frozen=True)
class ResolvedRequest:
    """A request after normalization against one candidate's capabilities."""

    provider: str
    model: str
    operation: str
    prompt: str
    quality: str
    style: Optional[str]
    size: str
    requested_quality: str
    requested_size: str
    requested_style: str
    source_image: Optional[MediaInput] = None
    mask: Optional[MediaInput] = None
    strength: Optional[float] = None
    user: Optional[str] = None
    provider_params: Mapping[str, Any] = field(default_factory=dict)
    warnings: Sequence[str] = ()


@dataclass(frozen=True)
class TaskHandle:
    provider: str
    model: str
    task_id: str
    raw: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ImmediateResult:
    artifact: str
    revised_prompt: Optional[str] = None
    raw: Mapping[str, Any] = field(default_factory=dict)


class TaskState(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


TERMINAL_STATES = frozenset({TaskState.COMPLETED, TaskState.FAILED, TaskState.TIMED_OUT})


@dataclass(frozen=True)
class TaskStatus:
    """One status report from a provider's status endpoint."""

    state: TaskState
    output: Optional[str] = None
    error: Optional[str] = None
    raw: Mapping[str, Any] = field(default_factory=dict)


@dataclass
class GenerationTask:
    provider: str
    model: str
    provider_task_id: str
    status: TaskState = TaskState.QUEUED
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    result: Optional[str] = None
    error: Optional[str] = None
    history: List[TaskState] = field(default_factory=lambda: [TaskState.QUEUED])
    polls: int = 0

    @property
    def terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    def transition(self, state: TaskState, *, result: Optional[str] = None, error: Optional[str] = None) -> None:
        if self.terminal:
            raise RuntimeError(f"Task {self.provider_task_id} already terminated as {self.status.value}.")
        self.status = state
        self.history.append(state)
        if result is not None:
            self.result = result
        if error is not None:
            self.error = error


@dataclass(frozen=True)
class CapabilityDescriptor:
    provider: str
    model: str
    operations: frozenset
    qualities: Tuple[str, ...]
    sizes: Tuple[str, ...]
    default_size: str
    styles: frozenset = frozenset()
    synchronous: bool = True
    supports_mask: bool = False


@dataclass(frozen=True)
class Candidate:
    provider: str
    model: str
    capabilities: CapabilityDescriptor

    @property
    def label(self) -> str:
        return f"{self.provider}/{self.model}"


@dataclass(frozen=True)
class FallbackPlan:
    operation: str
    candidates: Tuple[Candidate, ...]

    def __post_init__(self) -> None:
        if not self.candidates:
            raise ValueError(f"Fallback plan for '{self.operation}' has no candidates.")


@dataclass(frozen=True)
class Attempt:
    candidate: str
    kind: Optional[str] = None
    message: Optional[str] = None
    task_id: Optional[str] = None


@dataclass
class GenerationResult:
    artifact: str
    provider: str
    model: str
    operation: str
    candidate_index: int
    requested_quality: str
    quality_used: str
    requested_size: str
    size_used: str
    requested_style: str
    style_used: Optional[str]
    prompt: str
    revised_prompt: Optional[str] = None
    task_id: Optional[str] = None
    source_image: Optional[str] = None
    attempts: Sequence[Attempt] = ()
    warnings: Sequence[str] = ()

    @property
    def fallback_used(self) -> bool:
        return self.candidate_index > 0

    def to_payload(self) -> dict:
        image = {
            "url": self.artifact,
            "revisedPrompt": self.revised_prompt or self.prompt,
            "index": 0,
        }
        if self.source_image:
            image["originalUrl"] = self.source_image
        metadata = {
            "provider": self.provider,
            "model": self.model,
            "operation": self.operation,
            "quality": self.requested_quality,
            "qualityUsed": self.quality_used,
            "size": self.requested_size,
            "sizeUsed": self.size_used,
            "style": self.requested_style,
            "styleUsed": self.style_used,
            "originalPrompt": self.prompt,
            "taskId": self.task_id,
            "imageCount": 1,
            "fallbackUsed": self.fallback_used,
            "attempts": [
                {"candidate": a.candidate, "kind": a.kind, "message": a.message, "taskId": a.task_id}
                for a in self.attempts
            ],
            "warnings": list(self.warnings),
        }
        if self.fallback_used:
            metadata["note"] = f"Served by fallback model {self.provider}/{self.model}."
        return {"success": True, "images": [image], "metadata": metadata}


@dataclass(frozen=True)
class ClassifiedQuery:
    is_financial: bool
    query_type: str = "none"
    entities: Tuple[str, ...] = ()

    @property
    def actionable(self) -> bool:
        return self.is_financial and self.query_type != "none"


@dataclass(frozen=True)
class ChatMessage:
    role: str
    content: str
    id: Optional[str] = None


@dataclass(frozen=True)
class Transcription:
    text: str
    duration: Optional[float] = None
    language: Optional[str] = None
