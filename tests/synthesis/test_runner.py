"""
Unit tests for run_with_retry and classify_failure: retry budget, Retry-After, circuit breaker.
"""
import unittest
from types import SimpleNamespace
from unittest.mock import patch

import pybreaker

from teachkit.services.synthesis.base import SynthesisError, malformed
from teachkit.services.synthesis.failure_types import FailureType, classify_failure
from teachkit.services.synthesis.runner import run_with_retry


def _settings(attempts: int = 3, backoff: float = 2.0, respect_retry_after: bool = True):
    return SimpleNamespace(
        synthesis_retry_max_attempts=attempts,
        synthesis_retry_backoff_seconds=backoff,
        synthesis_retry_respect_retry_after=respect_retry_after,
    )


class _Flaky:
    """Raises the queued errors in order, then returns ``value``."""

    def __init__(self, errors, value="ok"):
        self.errors = list(errors)
        self.value = value
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.value


class TestRunWithRetry(unittest.TestCase):
    def setUp(self):
        self.sleeps: list[float] = []

    def _run(self, call, settings=None, breaker=None):
        return run_with_retry(
            call,
            settings or _settings(),
            capability="lesson",
            provider_name="fake",
            breaker=breaker,
            sleep=self.sleeps.append,
        )

    def test_success_first_try(self):
        call = _Flaky([])
        self.assertEqual(self._run(call), "ok")
        self.assertEqual(call.calls, 1)
        self.assertEqual(self.sleeps, [])

    def test_transient_failure_is_retried(self):
        call = _Flaky([SynthesisError("boom", detail={"http_status": 503})])
        self.assertEqual(self._run(call), "ok")
        self.assertEqual(call.calls, 2)
        self.assertEqual(len(self.sleeps), 1)
        self.assertGreaterEqual(self.sleeps[0], 2.0)
        self.assertLessEqual(self.sleeps[0], 3.0)

    def test_network_error_without_detail_is_retried(self):
        call = _Flaky([SynthesisError("connection reset")])
        self.assertEqual(self._run(call), "ok")
        self.assertEqual(call.calls, 2)

    def test_malformed_response_is_retried(self):
        call = _Flaky([malformed("not json")])
        self.assertEqual(self._run(call), "ok")

    def test_client_error_is_not_retried(self):
        call = _Flaky([SynthesisError("bad request", detail={"http_status": 400})])
        with self.assertRaises(SynthesisError) as ctx:
            self._run(call)
        self.assertEqual(call.calls, 1)
        self.assertEqual(self.sleeps, [])
        self.assertEqual(ctx.exception.detail["failure_type"], FailureType.CLIENT_NON_RETRIABLE.value)

    def test_budget_exhausted_raises_last_error(self):
        errors = [SynthesisError(f"down {n}", detail={"http_status": 502}) for n in range(5)]
        call = _Flaky(errors)
        with self.assertRaises(SynthesisError) as ctx:
            self._run(call, settings=_settings(attempts=3))
        self.assertEqual(call.calls, 3)
        self.assertEqual(len(self.sleeps), 2)
        self.assertEqual(str(ctx.exception), "down 2")

    @patch("teachkit.services.synthesis.runner.random.uniform", return_value=0.0)
    def test_retry_after_honoured_on_429(self, _):
        call = _Flaky([SynthesisError("slow down", detail={"http_status": 429, "retry_after": "7"})])
        self._run(call)
        self.assertEqual(self.sleeps, [7.0])

    @patch("teachkit.services.synthesis.runner.random.uniform", return_value=0.0)
    def test_retry_after_ignored_when_disabled(self, _):
        call = _Flaky([SynthesisError("slow down", detail={"http_status": 429, "retry_after": "7"})])
        self._run(call, settings=_settings(respect_retry_after=False))
        self.assertEqual(self.sleeps, [2.0])

    def test_open_circuit_fails_fast(self):
        breaker = pybreaker.CircuitBreaker(fail_max=1, reset_timeout=60)
        breaker.open()
        call = _Flaky([])
        with self.assertRaises(SynthesisError) as ctx:
            self._run(call, breaker=breaker)
        self.assertTrue(ctx.exception.detail["circuit_open"])
        self.assertEqual(call.calls, 0)


class TestClassifyFailure(unittest.TestCase):
    def test_http_statuses(self):
        self.assertEqual(classify_failure(429, {}), (FailureType.TRANSPORT_TRANSIENT, True))
        self.assertEqual(classify_failure(500, {}), (FailureType.TRANSPORT_TRANSIENT, True))
        self.assertEqual(classify_failure(401, {}), (FailureType.CLIENT_NON_RETRIABLE, False))

    def test_unsupported_capability(self):
        self.assertEqual(
            classify_failure(None, {"unsupported": True}),
            (FailureType.CLIENT_NON_RETRIABLE, False),
        )

    def test_blocked_prompt(self):
        result = classify_failure(None, {"prompt_feedback": {"blockReason": "SAFETY"}})
        self.assertEqual(result, (FailureType.PROMPT_BLOCKED, False))

    def test_finish_reasons(self):
        self.assertEqual(
            classify_failure(None, {"finish_reason": "SAFETY"}),
            (FailureType.RESPONSE_BLOCKED, True),
        )
        self.assertEqual(
            classify_failure(None, {"finish_reason": "prohibited_content"}),
            (FailureType.RESPONSE_BLOCKED_STRICT, False),
        )

    def test_empty_detail_is_transient(self):
        self.assertEqual(classify_failure(None, {}), (FailureType.TRANSPORT_TRANSIENT, True))
