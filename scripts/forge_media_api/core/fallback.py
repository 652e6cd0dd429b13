"""Ordered fallback across candidates of a plan."""

from __future__ import annotations

from typing import Callable, List, Optional

from .contracts import (
    Attempt,
    Candidate,
    FallbackPlan,
    GenerationRequest,
    GenerationResult,
    ImmediateResult,
    ResolvedRequest,
    TaskHandle,
)
from .errors import ChainExhaustedError, ErrorKind, GenerationError
from .observability import RequestContext, new_context, sanitize_payload
from .poller import TaskPoller
from .solver import resolve_request, validate_request


ADVANCE = "advance"
SURFACE = "surface"


def next_step(kind: ErrorKind) -> str:
    """Advance on an unavailable model; surface every other kind."""
    return ADVANCE if kind == ErrorKind.MODEL_UNAVAILABLE else SURFACE


def _artifact_label(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        return None
    return str(value)


class FallbackChainExecutor:
    def __init__(self, get_adapter: Optional[Callable] = None, poller: Optional[TaskPoller] = None) -> None:
        if get_adapter is None:
            from forge_media_api.providers import get_adapter as default_get_adapter

            get_adapter = default_get_adapter
        self._get_adapter = get_adapter
        self._poller = poller or TaskPoller()

    def execute(
        self,
        plan: FallbackPlan,
        request: GenerationRequest,
        context: Optional[RequestContext] = None,
    ) -> GenerationResult:
        ctx = context or new_context(plan.operation)
        if request.operation != plan.operation:
            raise GenerationError(
                ErrorKind.INVALID_PARAMETERS,
                f"Request operation '{request.operation}' does not match plan '{plan.operation}'.",
            )
        validate_request(request)

        attempts: List[Attempt] = []
        total = len(plan.candidates)
        for index, candidate in enumerate(plan.candidates):
            ctx.logger.info("Attempting candidate %d/%d: %s", index + 1, total, candidate.label)
            try:
                resolved = resolve_request(request, candidate)
                for warning in resolved.warnings:
                    ctx.logger.info("%s", warning)
                result = self._attempt(candidate, resolved, ctx)
            except Exception as exc:
                kind, task_id = self._classify(candidate, exc)
                attempts.append(Attempt(candidate=candidate.label, kind=kind.value, message=str(exc), task_id=task_id))
                if next_step(kind) == SURFACE:
                    ctx.logger.warning("%s failed (%s); not advancing: %s", candidate.label, kind.value, exc)
                    if isinstance(exc, GenerationError):
                        exc.attempts = tuple(attempts)
                        raise
                    raise GenerationError(
                        kind,
                        str(exc),
                        provider=candidate.provider,
                        model=candidate.model,
                        attempts=attempts,
                    ) from exc
                ctx.logger.warning("%s unavailable: %s", candidate.label, exc)
                continue

            artifact, revised_prompt, task_id = result
            attempts.append(Attempt(candidate=candidate.label, task_id=task_id))
            if index > 0:
                ctx.logger.info("Fallback used: %s served the request", candidate.label)
            return GenerationResult(
                artifact=artifact,
                provider=candidate.provider,
                model=candidate.model,
                operation=plan.operation,
                candidate_index=index,
                requested_quality=resolved.requested_quality,
                quality_used=resolved.quality,
                requested_size=resolved.requested_size,
                size_used=resolved.size,
                requested_style=resolved.requested_style,
                style_used=resolved.style,
                prompt=resolved.prompt,
                revised_prompt=revised_prompt,
                task_id=task_id,
                source_image=_artifact_label(request.source_image),
                attempts=tuple(attempts),
                warnings=tuple(resolved.warnings),
            )

        ctx.logger.error("Fallback chain exhausted for %s", plan.operation)
        raise ChainExhaustedError(plan.operation, attempts)

    def _attempt(self, candidate: Candidate, resolved: ResolvedRequest, ctx: RequestContext):
        adapter = self._get_adapter(candidate.provider)
        submitted = adapter.submit(resolved)
        if isinstance(submitted, ImmediateResult):
            ctx.logger.debug("%s returned immediately: %s", candidate.label, sanitize_payload(submitted.raw))
            return submitted.artifact, submitted.revised_prompt, None
        if isinstance(submitted, TaskHandle):
            ctx.logger.info("%s accepted task %s", candidate.label, submitted.task_id)
            task = self._poller.run(adapter, submitted, ctx)
            return task.result, None, task.provider_task_id
        raise TypeError(f"{candidate.label} submit returned {type(submitted).__name__}")

    def _classify(self, candidate: Candidate, exc: Exception):
        task_id = getattr(exc, "task_id", None)
        if isinstance(exc, GenerationError):
            return exc.kind, task_id
        adapter = self._get_adapter(candidate.provider)
        return adapter.classify_error(exc), task_id
