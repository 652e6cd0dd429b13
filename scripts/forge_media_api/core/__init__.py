"""Core contracts and helpers."""

from .contracts import (
    ClassifiedQuery,
    FallbackPlan,
    GenerationRequest,
    GenerationResult,
    ResolvedRequest,
    TaskState,
)

__all__ = [
    "ClassifiedQuery",
    "FallbackPlan",
    "GenerationRequest",
    "GenerationResult",
    "ResolvedRequest",
    "TaskState",
]
