"""Bounded polling of asynchronous provider tasks."""

from __future__ import annotations

from typing import Optional

from .contracts import GenerationTask, TaskHandle, TaskState
from .errors import ErrorKind, GenerationError, TaskCancelledError, TaskFailedError, TaskTimedOutError
from .observability import RequestContext, new_context


DEFAULT_POLL_INTERVAL = 0.1
DEFAULT_MAX_ATTEMPTS = 600


class TaskPoller:
    """Drive one ``TaskHandle`` to a terminal state.

    Polls the adapter at a fixed interval, at most ``max_attempts`` times.
    Poll errors the adapter classifies as transient are retried within the
    budget. Any other poll error, and any provider-reported failure, ends
    polling immediately with the adapter's classification. The
    remote task is never cancelled: timing out or being cancelled only stops
    this side from asking.
    """

    def __init__(self, interval: float = DEFAULT_POLL_INTERVAL, max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if interval < 0:
            raise ValueError("interval must not be negative")
        self.interval = interval
        self.max_attempts = max_attempts

    def run(self, adapter, handle: TaskHandle, context: Optional[RequestContext] = None) -> GenerationTask:
        ctx = context or new_context("poll")
        task = GenerationTask(provider=handle.provider, model=handle.model, provider_task_id=handle.task_id)
        label = f"{handle.provider}/{handle.model} task {handle.task_id}"
        ctx.logger.info("Polling %s (interval=%.2fs, attempts=%d)", label, self.interval, self.max_attempts)

        for attempt in range(1, self.max_attempts + 1):
            if ctx.cancelled:
                raise self._cancelled(task, label, ctx)
            last_attempt = attempt == self.max_attempts
            task.polls = attempt
            try:
                status = adapter.poll(handle)
            except Exception as exc:
                kind = exc.kind if isinstance(exc, GenerationError) else adapter.classify_error(exc)
                if kind != ErrorKind.TRANSIENT:
                    task.transition(TaskState.FAILED, error=str(exc))
                    ctx.logger.warning("Polling %s failed (%s): %s", label, kind.value, exc)
                    raise GenerationError(
                        kind,
                        f"Polling {label} failed: {exc}",
                        provider=handle.provider,
                        model=handle.model,
                    ) from exc
                if last_attempt:
                    task.transition(TaskState.TIMED_OUT, error=str(exc))
                    ctx.logger.warning("Final poll of %s failed: %s", label, exc)
                    raise TaskTimedOutError(
                        f"Polling {label} failed on the final attempt: {exc}",
                        provider=handle.provider,
                        model=handle.model,
                        task_id=handle.task_id,
                    ) from exc
                ctx.logger.debug("Poll %d of %s failed, retrying: %s", attempt, label, exc)
            else:
                if status.state == TaskState.COMPLETED and status.output:
                    task.transition(TaskState.COMPLETED, result=status.output)
                    ctx.logger.info("%s completed after %d poll(s)", label, attempt)
                    return task
                if status.state == TaskState.FAILED:
                    detail = status.error or "Unknown error"
                    task.transition(TaskState.FAILED, error=detail)
                    failure = TaskFailedError(f"Task failed: {detail}", provider=handle.provider)
                    kind = adapter.classify_error(failure)
                    ctx.logger.warning("%s failed (%s): %s", label, kind.value, detail)
                    raise GenerationError(
                        kind,
                        failure.args[0],
                        provider=handle.provider,
                        model=handle.model,
                    ) from failure
                if status.state == TaskState.QUEUED and task.status == TaskState.QUEUED:
                    task.transition(TaskState.QUEUED)
                else:
                    task.transition(TaskState.PROCESSING)
                if attempt % 50 == 0:
                    ctx.logger.info("Still processing %s (%d polls)", label, attempt)

            if last_attempt:
                break
            if ctx.cancel_event.wait(self.interval):
                raise self._cancelled(task, label, ctx)

        task.transition(TaskState.TIMED_OUT, error="attempt budget exhausted")
        ctx.logger.warning("%s timed out after %d polls", label, self.max_attempts)
        raise TaskTimedOutError(
            f"Task {handle.task_id} timed out after {self.max_attempts} polls.",
            provider=handle.provider,
            model=handle.model,
            task_id=handle.task_id,
        )

    def _cancelled(self, task: GenerationTask, label: str, ctx: RequestContext) -> TaskCancelledError:
        ctx.logger.info("Polling %s cancelled after %d poll(s)", label, task.polls)
        return TaskCancelledError(
            f"Polling {label} was cancelled.",
            provider=task.provider,
            model=task.model,
            task_id=task.provider_task_id,
        )
