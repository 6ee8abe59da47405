import asyncio
import pytest
from retry_policy import PollingTimeout, RetryPolicy


@pytest.mark.asyncio
async def test_first_result_accepted():
    calls = []

    async def func(x):
        calls.append(x)
        return x * 2

    policy = RetryPolicy(max_retries=2, delay=0.01)
    assert await policy.poll_until(func, lambda r: r == 6, 3) == 6
    assert calls == [3]


@pytest.mark.asyncio
async def test_polls_until_predicate_holds():
    results = iter(["NOT_READY", "NOT_READY", "ready"])

    async def probe():
        return next(results)

    attempts = []

    async def on_attempt(attempt, result):
        attempts.append((attempt, result))

    policy = RetryPolicy(max_retries=3, delay=0.01)
    assert await policy.poll_until(probe, lambda r: r == "ready", on_attempt=on_attempt) == "ready"
    assert attempts == [(1, "NOT_READY"), (2, "NOT_READY"), (3, "ready")]


@pytest.mark.asyncio
async def test_gives_up_with_last_result():
    calls = []

    async def probe():
        calls.append('probe')
        return len(calls)

    policy = RetryPolicy(max_retries=2, delay=0.01)
    with pytest.raises(PollingTimeout) as exc_info:
        await policy.poll_until(probe, lambda r: False)
    assert exc_info.value.attempts == 3
    assert exc_info.value.last_result == 3
    assert calls == ['probe', 'probe', 'probe']


@pytest.mark.asyncio
async def test_errors_are_not_retried():
    calls = []

    async def probe():
        calls.append('fail')
        raise RuntimeError("session closed")

    policy = RetryPolicy(max_retries=3, delay=0.01)
    with pytest.raises(RuntimeError):
        await policy.poll_until(probe, lambda r: True)
    assert calls == ['fail']


@pytest.mark.asyncio
async def test_backoff_delay(monkeypatch):
    delays = []
    orig_sleep = asyncio.sleep

    async def fake_sleep(secs):
        delays.append(secs)
        await orig_sleep(0)  # 실제로는 바로 통과

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)

    async def probe():
        return None

    policy = RetryPolicy(max_retries=3, delay=0.1, backoff_factor=2)
    with pytest.raises(PollingTimeout):
        await policy.poll_until(probe, lambda r: False)
    assert delays == pytest.approx([0.1, 0.2, 0.4])
