import pathlib
import sys
import threading
import unittest

ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "scripts"))

from forge_media_api.core.contracts import TaskHandle, TaskState, TaskStatus
from forge_media_api.core.errors import (
    ErrorKind,
    GenerationError,
    ProviderError,
    TaskCancelledError,
    TaskTimedOutError,
    classify_message,
)
from forge_media_api.core.observability import new_context
from forge_media_api.core.poller import TaskPoller


HANDLE = TaskHandle(provider="fake", model="fake-model", task_id="task-1")


class ScriptedAdapter:
    """Replays one scripted poll outcome per call; exceptions are raised."""

    name = "fake"

    def __init__(self, script, on_poll=None) -> None:
        self.script = list(script)
        self.polls = 0
        self.on_poll = on_poll

    def poll(self, handle):
        self.polls += 1
        if self.on_poll is not None:
            self.on_poll(self.polls)
        outcome = self.script[min(self.polls, len(self.script)) - 1]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def classify_error(self, error):
        if isinstance(error, ConnectionError):
            return ErrorKind.TRANSIENT
        return classify_message(str(error)) or ErrorKind.UNKNOWN


PROCESSING = TaskStatus(state=TaskState.PROCESSING)


class TestTaskPoller(unittest.TestCase):
    def test_processing_then_completed(self) -> None:
        done = TaskStatus(state=TaskState.COMPLETED, output="https://cdn.example.com/out.png")
        adapter = ScriptedAdapter([PROCESSING, PROCESSING, PROCESSING, done])
        task = TaskPoller(interval=0, max_attempts=10).run(adapter, HANDLE)
        self.assertEqual(
            task.history,
            [
                TaskState.QUEUED,
                TaskState.PROCESSING,
                TaskState.PROCESSING,
                TaskState.PROCESSING,
                TaskState.COMPLETED,
            ],
        )
        self.assertEqual(task.result, "https://cdn.example.com/out.png")
        self.assertEqual(adapter.polls, 4)

    def test_times_out_after_exact_budget(self) -> None:
        adapter = ScriptedAdapter([PROCESSING])
        with self.assertRaises(TaskTimedOutError) as caught:
            TaskPoller(interval=0, max_attempts=5).run(adapter, HANDLE)
        self.assertEqual(adapter.polls, 5)
        self.assertEqual(caught.exception.kind, ErrorKind.TRANSIENT)
        self.assertTrue(caught.exception.retryable)
        self.assertEqual(caught.exception.task_id, "task-1")

    def test_completed_without_output_keeps_polling(self) -> None:
        empty = TaskStatus(state=TaskState.COMPLETED, output=None)
        done = TaskStatus(state=TaskState.COMPLETED, output="https://cdn.example.com/out.png")
        adapter = ScriptedAdapter([empty, done])
        task = TaskPoller(interval=0, max_attempts=3).run(adapter, HANDLE)
        self.assertEqual(task.status, TaskState.COMPLETED)
        self.assertEqual(adapter.polls, 2)

    def test_network_errors_are_retried(self) -> None:
        done = TaskStatus(state=TaskState.COMPLETED, output="https://cdn.example.com/out.png")
        adapter = ScriptedAdapter([ConnectionError("reset"), ConnectionError("reset"), done])
        task = TaskPoller(interval=0, max_attempts=5).run(adapter, HANDLE)
        self.assertEqual(task.result, "https://cdn.example.com/out.png")
        self.assertEqual(adapter.polls, 3)

    def test_network_error_on_final_attempt_times_out(self) -> None:
        adapter = ScriptedAdapter([PROCESSING, ConnectionError("reset")])
        with self.assertRaises(TaskTimedOutError):
            TaskPoller(interval=0, max_attempts=2).run(adapter, HANDLE)
        self.assertEqual(adapter.polls, 2)

    def test_definitive_poll_error_stops_immediately(self) -> None:
        rejected = ProviderError("status endpoint returned 401: invalid api key", provider="fake", status_code=401)
        adapter = ScriptedAdapter([PROCESSING, rejected])
        with self.assertRaises(GenerationError) as caught:
            TaskPoller(interval=0, max_attempts=50).run(adapter, HANDLE)
        self.assertNotIsInstance(caught.exception, TaskTimedOutError)
        self.assertEqual(caught.exception.kind, ErrorKind.UNKNOWN)
        self.assertIs(caught.exception.__cause__, rejected)
        self.assertEqual(adapter.polls, 2)

    def test_provider_failure_is_classified(self) -> None:
        failed = TaskStatus(state=TaskState.FAILED, error="NSFW content detected")
        adapter = ScriptedAdapter([PROCESSING, failed])
        with self.assertRaises(GenerationError) as caught:
            TaskPoller(interval=0, max_attempts=10).run(adapter, HANDLE)
        self.assertEqual(caught.exception.kind, ErrorKind.CONTENT_REJECTED)
        self.assertEqual(adapter.polls, 2)

    def test_queued_reports_keep_task_queued(self) -> None:
        queued = TaskStatus(state=TaskState.QUEUED)
        done = TaskStatus(state=TaskState.COMPLETED, output="out")
        task = TaskPoller(interval=0, max_attempts=5).run(ScriptedAdapter([queued, PROCESSING, done]), HANDLE)
        self.assertEqual(
            task.history,
            [TaskState.QUEUED, TaskState.QUEUED, TaskState.PROCESSING, TaskState.COMPLETED],
        )

    def test_cancellation_stops_polling_promptly(self) -> None:
        event = threading.Event()
        context = new_context("generate", cancel_event=event)

        def cancel_on_first(polls: int) -> None:
            if polls == 1:
                event.set()

        adapter = ScriptedAdapter([PROCESSING], on_poll=cancel_on_first)
        with self.assertRaises(TaskCancelledError) as caught:
            # A long interval would block for minutes if cancellation were ignored.
            TaskPoller(interval=60, max_attempts=1000).run(adapter, HANDLE, context)
        self.assertEqual(adapter.polls, 1)
        self.assertEqual(caught.exception.kind, ErrorKind.TRANSIENT)

    def test_already_cancelled_never_polls(self) -> None:
        context = new_context("generate")
        context.cancel()
        adapter = ScriptedAdapter([PROCESSING])
        with self.assertRaises(TaskCancelledError):
            TaskPoller(interval=0, max_attempts=3).run(adapter, HANDLE, context)
        self.assertEqual(adapter.polls, 0)

    def test_rejects_invalid_budget(self) -> None:
        with self.assertRaises(ValueError):
            TaskPoller(interval=0, max_attempts=0)


if __name__ == "__main__":
    unittest.main()
