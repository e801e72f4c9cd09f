"""
Tests for caller-directed transport retry.
"""

import pytest

from blobkit.storage import NotFoundError, TransportError, call_with_retry, transport_retry


class Flaky:
    """Callable that fails a fixed number of times before succeeding."""

    def __init__(self, failures: int, error: Exception):
        self.failures = failures
        self.error = error
        self.calls = 0

    def __call__(self, value: str) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return value


class TestTransportRetry:
    """Tests for retrying only TransportError."""

    def test_retries_transport_errors(self):
        flaky = Flaky(2, TransportError("busy"))

        result = call_with_retry(flaky, "ok", max_attempts=3, min_wait=0, max_wait=0)

        assert result == "ok"
        assert flaky.calls == 3

    def test_gives_up_after_max_attempts(self):
        flaky = Flaky(5, TransportError("down"))

        with pytest.raises(TransportError):
            call_with_retry(flaky, "ok", max_attempts=3, min_wait=0, max_wait=0)
        assert flaky.calls == 3

    def test_terminal_errors_not_retried(self):
        flaky = Flaky(1, NotFoundError("c1", "x"))

        with pytest.raises(NotFoundError):
            call_with_retry(flaky, "ok", max_attempts=3, min_wait=0, max_wait=0)
        assert flaky.calls == 1

    def test_non_retryable_transport_error(self):
        flaky = Flaky(1, TransportError("rejected", retryable=False))

        with pytest.raises(TransportError):
            call_with_retry(flaky, "ok", max_attempts=3, min_wait=0, max_wait=0)
        assert flaky.calls == 1

    def test_decorator(self):
        calls = []

        @transport_retry(max_attempts=2, min_wait=0, max_wait=0)
        def upload():
            calls.append(1)
            if len(calls) == 1:
                raise TransportError("reset")
            return "done"

        assert upload() == "done"
        assert len(calls) == 2
