"""
Bounded polling tests.
"""

import pytest

from confidential_marketplace.core.errors import PollTimeout, RPCError
from confidential_marketplace.runtime.polling import poll_until


class SleepRecorder:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


def probe_returning(*results):
    """Probe that yields the given results (exceptions are raised)"""
    remaining = list(results)
    calls = []

    async def probe():
        calls.append(1)
        item = remaining.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    probe.calls = calls
    return probe


class TestPollUntil:

    @pytest.mark.asyncio
    async def test_immediate_result_does_not_sleep(self):
        """Test a ready probe returns on the first attempt"""
        sleep = SleepRecorder()
        result = await poll_until(probe_returning("done"), interval=2.0, max_attempts=60, sleep=sleep)
        assert result.value == "done"
        assert result.attempts == 1
        assert sleep.calls == []

    @pytest.mark.asyncio
    async def test_result_after_retries(self):
        sleep = SleepRecorder()
        result = await poll_until(probe_returning(None, None, 7), interval=2.0, max_attempts=5, sleep=sleep)
        assert result.value == 7
        assert result.attempts == 3
        assert sleep.calls == [2.0, 2.0]

    @pytest.mark.asyncio
    async def test_timeout_has_no_trailing_sleep(self):
        """Test exhaustion waits at most attempts * interval"""
        sleep = SleepRecorder()
        with pytest.raises(PollTimeout) as exc_info:
            await poll_until(probe_returning(None, None, None), interval=2.0, max_attempts=3, sleep=sleep)
        assert exc_info.value.attempts == 3
        assert len(sleep.calls) == 2
        assert sum(sleep.calls) <= 3 * 2.0

    @pytest.mark.asyncio
    async def test_transient_errors_consume_budget(self):
        """Test retryable errors count as attempts"""
        sleep = SleepRecorder()
        error = RPCError("ledger_call", -32603, "busy")
        probe = probe_returning(error, error)
        with pytest.raises(PollTimeout) as exc_info:
            await poll_until(probe, interval=1.0, max_attempts=2, retry_on=(RPCError,), sleep=sleep)
        assert len(probe.calls) == 2
        assert exc_info.value.last_error is error

    @pytest.mark.asyncio
    async def test_transient_error_then_result(self):
        sleep = SleepRecorder()
        probe = probe_returning(RPCError("ledger_call", -1, "x"), "ok")
        result = await poll_until(probe, interval=1.0, max_attempts=3, retry_on=(RPCError,), sleep=sleep)
        assert result.value == "ok"
        assert result.attempts == 2

    @pytest.mark.asyncio
    async def test_other_errors_propagate(self):
        sleep = SleepRecorder()
        with pytest.raises(KeyError):
            await poll_until(probe_returning(KeyError("boom")), interval=1.0, max_attempts=3, sleep=sleep)
        assert sleep.calls == []

    @pytest.mark.asyncio
    async def test_requires_positive_budget(self):
        with pytest.raises(ValueError):
            await poll_until(probe_returning("x"), interval=1.0, max_attempts=0)
