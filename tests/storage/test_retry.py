"""Tests for the async retry decorator."""

from unittest.mock import AsyncMock, patch

import pytest

from timecapsule.storage import RetryPolicy, retry_async


class TestRetryAsync:
    """Test exponential backoff retry."""

    @pytest.mark.asyncio
    async def test_success_first_try(self):
        calls = 0

        @retry_async(RetryPolicy(attempts=3, base_delay=0))
        async def op() -> str:
            nonlocal calls
            calls += 1
            return "ok"

        assert await op() == "ok"
        assert calls == 1

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        calls = 0

        @retry_async(RetryPolicy(attempts=3, base_delay=0))
        async def op() -> str:
            nonlocal calls
            calls += 1
            if calls < 3:
                raise ConnectionError("flaky")
            return "ok"

        assert await op() == "ok"
        assert calls == 3

    @pytest.mark.asyncio
    async def test_raises_last_exception_after_all_attempts(self):
        @retry_async(RetryPolicy(attempts=2, base_delay=0))
        async def op() -> None:
            raise ConnectionError("down")

        with pytest.raises(ConnectionError, match="down"):
            await op()

    @pytest.mark.asyncio
    async def test_only_listed_exceptions_retried(self):
        calls = 0

        @retry_async(RetryPolicy(attempts=3, base_delay=0, retry_on=(ConnectionError,)))
        async def op() -> None:
            nonlocal calls
            calls += 1
            raise KeyError("bad response")

        with pytest.raises(KeyError):
            await op()
        assert calls == 1

    @pytest.mark.asyncio
    async def test_exponential_backoff_capped(self):
        @retry_async(RetryPolicy(attempts=4, base_delay=1.0, max_delay=3.0))
        async def op() -> None:
            raise ConnectionError("down")

        with patch("timecapsule.storage.retry.asyncio.sleep", new_callable=AsyncMock) as sleep:
            with pytest.raises(ConnectionError):
                await op()
        assert [call.args[0] for call in sleep.await_args_list] == [1.0, 2.0, 3.0]
