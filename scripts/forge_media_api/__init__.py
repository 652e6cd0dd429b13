"""Media Forge public surface."""

from .api import describe_plans, edit, generate, run, stream_chat, variation
from .core import ClassifiedQuery, GenerationRequest, GenerationResult
from .core.errors import ErrorKind, GenerationError

__all__ = [
    "describe_plans",
    "edit",
    "generate",
    "run",
    "stream_chat",
    "variation",
    "ClassifiedQuery",
    "ErrorKind",
    "GenerationError",
    "GenerationRequest",
    "GenerationResult",
]
