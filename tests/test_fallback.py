import pathlib
import sys
import unittest

ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "scripts"))

from forge_media_api.core.contracts import (
    CapabilityDescriptor,
    Candidate,
    FallbackPlan,
    GenerationRequest,
    ImmediateResult,
    TaskHandle,
    TaskState,
    TaskStatus,
)
from forge_media_api.core.errors import ChainExhaustedError, ErrorKind, GenerationError, ProviderError
from forge_media_api.core.fallback import ADVANCE, SURFACE, FallbackChainExecutor, next_step
from forge_media_api.core.poller import TaskPoller


def _caps(provider: str, synchronous: bool = True, sizes=("1024x1024",)) -> CapabilityDescriptor:
    return CapabilityDescriptor(
        provider=provider,
        model=f"{provider}-model",
        operations=frozenset({"generate", "edit", "variation"}),
        qualities=("standard", "hd"),
        sizes=sizes,
        default_size="1024x1024",
        styles=frozenset({"vivid", "natural"}),
        synchronous=synchronous,
    )


def _plan(*providers: str) -> FallbackPlan:
    candidates = []
    for provider in providers:
        caps = _caps(provider)
        candidates.append(Candidate(provider=provider, model=caps.model, capabilities=caps))
    return FallbackPlan(operation="generate", candidates=tuple(candidates))


class FakeAdapter:
    """Fails with ``kind`` when given one, otherwise returns an immediate result."""

    def __init__(self, name: str, kind=None, async_statuses=None) -> None:
        self.name = name
        self.kind = kind
        self.async_statuses = list(async_statuses or [])
        self.submits = []

    def submit(self, resolved):
        self.submits.append(resolved)
        if self.kind is not None:
            raise ProviderError(f"{self.name} failed", provider=self.name)
        if self.async_statuses:
            return TaskHandle(provider=self.name, model=resolved.model, task_id=f"{self.name}-task")
        return ImmediateResult(artifact=f"https://{self.name}.example.com/img.png", revised_prompt="revised")

    def poll(self, handle):
        return self.async_statuses.pop(0)

    def classify_error(self, error):
        return self.kind or ErrorKind.UNKNOWN


class Registry:
    def __init__(self, *adapters: FakeAdapter) -> None:
        self.adapters = {adapter.name: adapter for adapter in adapters}

    def __call__(self, provider: str) -> FakeAdapter:
        return self.adapters[provider]


REQUEST = GenerationRequest(prompt="a fox in the snow", quality="hd", size="1024x1024")


class TestNextStep(unittest.TestCase):
    def test_only_model_unavailable_advances(self) -> None:
        for kind in ErrorKind:
            expected = ADVANCE if kind == ErrorKind.MODEL_UNAVAILABLE else SURFACE
            self.assertEqual(next_step(kind), expected)


class TestFallbackChainExecutor(unittest.TestCase):
    def _executor(self, *adapters: FakeAdapter) -> FallbackChainExecutor:
        return FallbackChainExecutor(get_adapter=Registry(*adapters), poller=TaskPoller(interval=0, max_attempts=5))

    def test_third_candidate_serves_after_two_unavailable(self) -> None:
        first = FakeAdapter("p1", ErrorKind.MODEL_UNAVAILABLE)
        second = FakeAdapter("p2", ErrorKind.MODEL_UNAVAILABLE)
        third = FakeAdapter("p3")
        result = self._executor(first, second, third).execute(_plan("p1", "p2", "p3"), REQUEST)
        self.assertEqual(result.provider, "p3")
        self.assertEqual(result.candidate_index, 2)
        self.assertTrue(result.fallback_used)
        self.assertEqual([len(a.submits) for a in (first, second, third)], [1, 1, 1])
        self.assertEqual([a.kind for a in result.attempts], ["model_unavailable", "model_unavailable", None])
        payload = result.to_payload()
        self.assertTrue(payload["metadata"]["fallbackUsed"])
        self.assertIn("note", payload["metadata"])

    def test_first_candidate_success_is_not_a_fallback(self) -> None:
        first = FakeAdapter("p1")
        second = FakeAdapter("p2")
        result = self._executor(first, second).execute(_plan("p1", "p2"), REQUEST)
        self.assertFalse(result.fallback_used)
        self.assertEqual(result.revised_prompt, "revised")
        self.assertEqual(second.submits, [])
        self.assertNotIn("note", result.to_payload()["metadata"])

    def test_request_errors_surface_without_advancing(self) -> None:
        for kind in (ErrorKind.CONTENT_REJECTED, ErrorKind.INVALID_PARAMETERS):
            with self.subTest(kind=kind):
                first = FakeAdapter("p1", kind)
                second = FakeAdapter("p2")
                with self.assertRaises(GenerationError) as caught:
                    self._executor(first, second).execute(_plan("p1", "p2"), REQUEST)
                self.assertEqual(caught.exception.kind, kind)
                self.assertEqual(second.submits, [])

    def test_retryable_errors_surface_without_advancing(self) -> None:
        for kind in (ErrorKind.RATE_LIMITED, ErrorKind.TRANSIENT, ErrorKind.UNKNOWN):
            with self.subTest(kind=kind):
                first = FakeAdapter("p1", ErrorKind.MODEL_UNAVAILABLE)
                second = FakeAdapter("p2", kind)
                third = FakeAdapter("p3")
                with self.assertRaises(GenerationError) as caught:
                    self._executor(first, second, third).execute(_plan("p1", "p2", "p3"), REQUEST)
                self.assertEqual(caught.exception.kind, kind)
                self.assertEqual(len(caught.exception.attempts), 2)
                self.assertEqual(third.submits, [])

    def test_exhausted_chain(self) -> None:
        first = FakeAdapter("p1", ErrorKind.MODEL_UNAVAILABLE)
        second = FakeAdapter("p2", ErrorKind.MODEL_UNAVAILABLE)
        with self.assertRaises(ChainExhaustedError) as caught:
            self._executor(first, second).execute(_plan("p1", "p2"), REQUEST)
        self.assertEqual(caught.exception.kind, ErrorKind.MODEL_UNAVAILABLE)
        self.assertEqual([a.candidate for a in caught.exception.attempts], ["p1/p1-model", "p2/p2-model"])
        self.assertEqual(len(first.submits), 1)
        self.assertEqual(len(second.submits), 1)

    def test_asynchronous_candidate_is_polled(self) -> None:
        statuses = [
            TaskStatus(state=TaskState.PROCESSING),
            TaskStatus(state=TaskState.COMPLETED, output="https://p1.example.com/async.png"),
        ]
        first = FakeAdapter("p1", async_statuses=statuses)
        result = self._executor(first).execute(_plan("p1"), REQUEST)
        self.assertEqual(result.artifact, "https://p1.example.com/async.png")
        self.assertEqual(result.task_id, "p1-task")
        self.assertEqual(result.quality_used, "hd")

    def test_poll_timeout_surfaces_as_transient(self) -> None:
        first = FakeAdapter("p1", async_statuses=[TaskStatus(state=TaskState.PROCESSING)] * 5)
        second = FakeAdapter("p2")
        with self.assertRaises(GenerationError) as caught:
            self._executor(first, second).execute(_plan("p1", "p2"), REQUEST)
        self.assertEqual(caught.exception.kind, ErrorKind.TRANSIENT)
        self.assertEqual(caught.exception.attempts[0].task_id, "p1-task")
        self.assertEqual(second.submits, [])

    def test_candidate_without_a_fitting_size_is_skipped(self) -> None:
        large_only = _caps("p1")
        small = _caps("p2", sizes=("512x512", "1024x1024"))
        plan = FallbackPlan(
            operation="generate",
            candidates=(
                Candidate(provider="p1", model=large_only.model, capabilities=large_only),
                Candidate(provider="p2", model=small.model, capabilities=small),
            ),
        )
        first = FakeAdapter("p1")
        second = FakeAdapter("p2")
        request = GenerationRequest(prompt="a fox", size="512x512")
        result = self._executor(first, second).execute(plan, request)
        self.assertEqual(first.submits, [])
        self.assertEqual(result.provider, "p2")
        self.assertEqual((result.requested_size, result.size_used), ("512x512", "512x512"))
        self.assertEqual(result.attempts[0].kind, "model_unavailable")

    def test_invalid_request_never_reaches_a_provider(self) -> None:
        first = FakeAdapter("p1")
        with self.assertRaises(GenerationError) as caught:
            self._executor(first).execute(_plan("p1"), GenerationRequest(prompt=""))
        self.assertEqual(caught.exception.kind, ErrorKind.INVALID_PARAMETERS)
        self.assertEqual(first.submits, [])

    def test_empty_plan_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            FallbackPlan(operation="generate", candidates=())


if __name__ == "__main__":
    unittest.main()
