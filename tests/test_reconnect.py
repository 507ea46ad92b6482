# ==============================================================================
# FILE: tests/test_reconnect.py
# DESCRIPTION: Backoff counter, reconnection policy and connection monitor
# ==============================================================================

import asyncio

import pytest

from horizon.config import ReconnectConfig
from horizon.errors import MaxAttemptsExceeded
from horizon.reconnect import ConnectionMonitor, ReconnectionPolicy
from horizon.types import ReconnectCounter

from conftest import FakeSleep, eventually


BACKOFF = [1.0, 2.0, 4.0, 8.0, 16.0, 30.0, 30.0, 30.0, 30.0, 30.0]


def test_delay_schedule():
    counter = ReconnectCounter()

    assert [counter.delay_for(n) for n in range(1, 11)] == BACKOFF


def test_counter_resets_when_budget_is_spent():
    counter = ReconnectCounter(max_attempts=3)

    assert [counter.advance() for _ in range(3)] == [1.0, 2.0, 4.0]
    assert counter.exhausted
    assert counter.advance() is None
    assert counter.attempts == 0
    assert counter.advance() == 1.0


def test_max_attempts_message():
    error = MaxAttemptsExceeded(10)

    assert error.max_attempts == 10
    assert "10" in str(error)


@pytest.mark.asyncio
async def test_policy_gives_up_after_budget():
    sleep = FakeSleep(parked=())
    policy = ReconnectionPolicy(ReconnectConfig(), sleep=sleep)
    calls = []

    async def reopen():
        calls.append(policy.attempts)
        return False

    assert await policy.run(reopen, label="test") is False

    assert calls == list(range(1, 11))
    assert sleep.calls == BACKOFF
    assert policy.history == BACKOFF
    assert policy.attempts == 0


@pytest.mark.asyncio
async def test_policy_stops_on_success():
    sleep = FakeSleep(parked=())
    policy = ReconnectionPolicy(ReconnectConfig(base_delay_s=0.5, cap_s=1.5), sleep=sleep)
    results = iter([False, False, True])

    async def reopen():
        return next(results)

    assert await policy.run(reopen) is True
    assert sleep.calls == [0.5, 1.0, 1.5]
    assert policy.attempts == 3

    policy.reset()
    assert policy.attempts == 0


@pytest.mark.asyncio
async def test_monitor_triggers_only_when_needed():
    sleep = FakeSleep(parked=())
    needed = {"value": False}
    triggered = []

    async def trigger():
        triggered.append(True)
        needed["value"] = False

    monitor = ConnectionMonitor(lambda: needed["value"], trigger, interval_s=10.0, sleep=sleep)
    monitor.start()
    await eventually(lambda: len(sleep.calls) > 3)
    assert triggered == []

    needed["value"] = True
    await eventually(lambda: triggered)
    await monitor.stop()

    assert triggered == [True]
    assert set(sleep.calls) == {10.0}
    assert not monitor.running


@pytest.mark.asyncio
async def test_monitor_survives_trigger_errors():
    sleep = FakeSleep(parked=())
    calls = []

    async def trigger():
        calls.append(True)
        raise RuntimeError("boom")

    monitor = ConnectionMonitor(lambda: True, trigger, sleep=sleep)
    monitor.start()
    await eventually(lambda: len(calls) >= 2)
    await monitor.stop()
    await monitor.stop()

    assert monitor.running is False
