"""Public API for Media Forge."""

from __future__ import annotations

import threading
from typing import Any, Iterator, List, Mapping, Optional, Sequence

from forge_media_api.core.chat import MessageLike, prepare_chat
from forge_media_api.core.config import Settings, load_settings
from forge_media_api.core.contracts import OPERATIONS, GenerationRequest, GenerationResult, MediaInput, Transcription
from forge_media_api.core.errors import ErrorKind, GenerationError, describe_error
from forge_media_api.core.fallback import FallbackChainExecutor
from forge_media_api.core.observability import RequestContext, new_context
from forge_media_api.core.poller import TaskPoller
from forge_media_api.core.router import build_plan, describe_plan
from forge_media_api.core.sentiment import DigestSource, NewsSentimentStore
from forge_media_api.core.streaming import encode_stream, error_stream
from forge_media_api.providers import get_adapter, get_chat_provider
from forge_media_api.providers.base import ChatProvider


def _executor(settings: Settings) -> FallbackChainExecutor:
    poller = TaskPoller(interval=settings.poll_interval, max_attempts=settings.poll_attempts)
    return FallbackChainExecutor(get_adapter=lambda provider: get_adapter(provider, settings), poller=poller)


def run(
    request: GenerationRequest,
    plan_id: Optional[str] = None,
    *,
    settings: Optional[Settings] = None,
    executor: Optional[FallbackChainExecutor] = None,
    context: Optional[RequestContext] = None,
    cancel_event: Optional[threading.Event] = None,
) -> GenerationResult:
    """Run ``request`` against the fallback plan named ``plan_id``.

    ``plan_id`` defaults to the request's operation. Raises
    :class:`GenerationError` with the kind that ended the attempt.
    """
    try:
        settings = settings or load_settings()
        plan = build_plan(plan_id or request.operation)
    except ValueError as exc:
        raise GenerationError(ErrorKind.INVALID_PARAMETERS, str(exc)) from exc
    ctx = context or new_context(plan.operation, cancel_event=cancel_event)
    return (executor or _executor(settings)).execute(plan, request, ctx)


def generate(
    *,
    prompt: str,
    quality: str = "standard",
    style: str = "vivid",
    size: str = "1024x1024",
    user: Optional[str] = None,
    **kwargs: Any,
) -> GenerationResult:
    request = GenerationRequest(
        prompt=prompt,
        operation="generate",
        quality=quality,
        style=style,
        size=size,
        user=user,
    )
    return run(request, **kwargs)


def edit(
    *,
    prompt: str,
    source_image: MediaInput,
    mask: Optional[MediaInput] = None,
    strength: Optional[float] = None,
    quality: str = "standard",
    style: str = "vivid",
    size: str = "1024x1024",
    user: Optional[str] = None,
    **kwargs: Any,
) -> GenerationResult:
    request = GenerationRequest(
        prompt=prompt,
        operation="edit",
        quality=quality,
        style=style,
        size=size,
        source_image=source_image,
        mask=mask,
        strength=strength,
        user=user,
    )
    return run(request, **kwargs)


def variation(
    *,
    source_image: MediaInput,
    prompt: str = "",
    size: str = "1024x1024",
    user: Optional[str] = None,
    **kwargs: Any,
) -> GenerationResult:
    request = GenerationRequest(
        prompt=prompt,
        operation="variation",
        size=size,
        source_image=source_image,
        user=user,
    )
    return run(request, **kwargs)


def stream_chat(
    messages: Sequence[MessageLike],
    *,
    classify: bool = True,
    file_uri: Optional[str] = None,
    file_mime_type: Optional[str] = None,
    transcription: Optional[Transcription] = None,
    digest_source: Optional[DigestSource] = None,
    provider: Optional[ChatProvider] = None,
    settings: Optional[Settings] = None,
    context: Optional[RequestContext] = None,
) -> Iterator[str]:
    """Yield encoded stream frames for one chat completion.

    The sequence always ends with exactly one Done or Error frame, including
    when the conversation cannot be turned into a request at all.
    """
    ctx = context or new_context("chat")
    try:
        settings = settings or load_settings()
        source = digest_source if digest_source is not None else NewsSentimentStore(settings.news_dir)
        chat = provider or get_chat_provider()
        request = prepare_chat(
            messages,
            model=settings.chat_model,
            classify=classify,
            digest_source=source,
            file_uri=file_uri,
            file_mime_type=file_mime_type,
            transcription=transcription,
            context=ctx,
        )
    except GenerationError as exc:
        ctx.logger.warning("Chat request rejected: %s", exc)
        yield from error_stream(describe_error(exc.kind, str(exc)))
        return
    except ValueError as exc:
        ctx.logger.error("Chat is misconfigured: %s", exc)
        yield from error_stream(describe_error(ErrorKind.UNKNOWN, str(exc)))
        return
    ctx.logger.info("Streaming %s with %d history turn(s)", request.model, len(request.history))
    yield from encode_stream(chat.stream_chat(request), ctx, chat.classify_error)


def describe_plans(operation: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> List[dict]:
    operations = [operation] if operation else list(OPERATIONS)
    return [describe_plan(build_plan(op, environ=environ)) for op in operations]
