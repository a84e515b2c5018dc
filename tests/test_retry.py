"""
Unit tests for the retry helper.
"""

import pytest
from structlog.testing import capture_logs

from firebase_verifier.retry import RetryConfig, RetryError, backoff_delay, retry_on_exception


class Flaky(Exception):
    pass


def _counting(failures: int, exc: Exception):
    calls = []

    async def operation():
        calls.append(1)
        if len(calls) <= failures:
            raise exc
        return "ok"

    return operation, calls


@pytest.mark.asyncio
async def test_succeeds_after_transient_failures():
    operation, calls = _counting(2, Flaky("boom"))
    wrapped = retry_on_exception((Flaky,), RetryConfig(max_attempts=3, base_delay=0.0))(operation)

    assert await wrapped() == "ok"
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_raises_retry_error_when_exhausted():
    operation, calls = _counting(5, Flaky("boom"))
    wrapped = retry_on_exception((Flaky,), RetryConfig(max_attempts=2, base_delay=0.0))(operation)

    with pytest.raises(RetryError) as exc_info:
        await wrapped()

    assert exc_info.value.attempts == 2
    assert isinstance(exc_info.value.last_exception, Flaky)
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_other_exceptions_are_not_retried():
    operation, calls = _counting(1, KeyError("kid"))
    wrapped = retry_on_exception((Flaky,), RetryConfig(max_attempts=3, base_delay=0.0))(operation)

    with pytest.raises(KeyError):
        await wrapped()

    assert len(calls) == 1


def test_backoff_delay_doubles_within_jitter():
    config = RetryConfig(base_delay=0.5, max_delay=60.0)

    assert 0.45 <= backoff_delay(1, config) <= 0.55
    assert 1.8 <= backoff_delay(3, config) <= 2.2


def test_backoff_delay_is_capped():
    config = RetryConfig(base_delay=1.0, max_delay=3.0)
    assert 2.7 <= backoff_delay(10, config) <= 3.3


@pytest.mark.asyncio
async def test_log_context_is_bound_to_retry_events():
    operation, _ = _counting(1, Flaky("connection reset"))
    wrapped = retry_on_exception(
        (Flaky,), RetryConfig(max_attempts=2, base_delay=0.0), url="https://keys.example"
    )(operation)

    with capture_logs() as logs:
        await wrapped()

    events = {entry["event"]: entry for entry in logs}
    assert events["Transient failure, retrying"]["url"] == "https://keys.example"
    assert events["Transient failure, retrying"]["cause"] == "connection reset"
    assert events["Retry succeeded"]["url"] == "https://keys.example"
