import httpx
import pytest

import stepflow.utils.retry as retry_mod
from stepflow.errors import HandlerError
from stepflow.utils.retry import compute_backoff, is_transient, retry


@pytest.fixture
def no_sleep(monkeypatch):
    delays = []

    async def fake_schedule(attempt, base, jitter):
        delays.append(attempt)

    monkeypatch.setattr(retry_mod, "schedule_retry", fake_schedule)
    return delays


def test_backoff_grows_with_attempts():
    assert compute_backoff(1, base=2.0, jitter=0) == 2.0
    assert compute_backoff(3, base=2.0, jitter=0) == 8.0
    assert 2.0 <= compute_backoff(1, base=2.0, jitter=0.5) <= 2.5


def test_transient_classification():
    assert is_transient(HandlerError("boom", retryable=True))
    assert not is_transient(HandlerError("bad request"))
    assert is_transient(httpx.ConnectError("refused"))
    assert not is_transient(ValueError("nope"))


@pytest.mark.asyncio
async def test_retries_transient_failures_until_success(no_sleep):
    calls = []

    @retry(attempts=3)
    async def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise HandlerError("503", retryable=True)
        return "ok"

    assert await flaky() == "ok"
    assert len(calls) == 3
    assert no_sleep == [1, 2]


@pytest.mark.asyncio
async def test_non_transient_failure_is_not_retried(no_sleep):
    calls = []

    @retry(attempts=5)
    async def rejected():
        calls.append(1)
        raise HandlerError("400")

    with pytest.raises(HandlerError):
        await rejected()
    assert len(calls) == 1
    assert no_sleep == []


@pytest.mark.asyncio
async def test_last_failure_propagates_after_attempts(no_sleep):
    calls = []

    @retry(attempts=2)
    async def down():
        calls.append(1)
        raise httpx.ConnectError("refused")

    with pytest.raises(httpx.ConnectError):
        await down()
    assert len(calls) == 2
    assert no_sleep == [1]


@pytest.mark.asyncio
async def test_unlisted_exceptions_propagate_immediately(no_sleep):
    @retry(attempts=3)
    async def broken():
        raise KeyError("x")

    with pytest.raises(KeyError):
        await broken()
    assert no_sleep == []
