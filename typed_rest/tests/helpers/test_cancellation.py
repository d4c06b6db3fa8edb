import asyncio
import threading
import time
from unittest.mock import Mock

import httpx
import pytest

from typed_rest.exceptions.clients import OperationCancelled
from typed_rest.helpers.cancellation import DEADLINE_EXCEEDED, CancellationToken
from typed_rest.helpers.retry import (
    CANCELLATION_EXTENSION,
    RetryConfig,
    RetryTransport,
)
from typed_rest.tests.conftest import RecordingHandler

URL = "https://contoso.example.com/widgets"
SLOW_RETRY = RetryConfig(max_attempts=5, base_delay=30, jitter_ratio=0)


class TestCancellationToken:
    def test_cancel_sets_reason_once(self) -> None:
        token = CancellationToken()

        token.cancel("first")
        token.cancel("second")

        assert token.is_cancelled
        assert token.reason == "first"

    def test_deadline_cancels_token(self) -> None:
        token = CancellationToken.with_timeout(0)

        assert token.is_cancelled
        assert token.reason == DEADLINE_EXCEEDED
        assert token.remaining() == 0

    def test_no_deadline_means_no_timeout(self) -> None:
        token = CancellationToken()

        assert token.deadline is None
        assert token.remaining() is None
        assert not token.is_cancelled

    def test_raise_if_cancelled(self) -> None:
        token = CancellationToken()
        token.raise_if_cancelled("Widgets.Get")

        token.cancel()

        with pytest.raises(OperationCancelled) as exc_info:
            token.raise_if_cancelled("Widgets.Get")
        assert exc_info.value.operation == "Widgets.Get"

    def test_register_runs_callbacks_once(self) -> None:
        token = CancellationToken()
        callback = Mock()
        removed = Mock()

        token.register(callback)
        unregister = token.register(removed)
        unregister()
        token.cancel()
        token.cancel()

        callback.assert_called_once()
        removed.assert_not_called()

    def test_register_after_cancel_runs_immediately(self) -> None:
        token = CancellationToken()
        token.cancel()
        callback = Mock()

        token.register(callback)

        callback.assert_called_once()

    def test_sleep_wakes_up_on_cancel(self) -> None:
        token = CancellationToken()
        threading.Timer(0.05, token.cancel).start()

        started = time.monotonic()
        assert token.sleep(30) is True
        assert time.monotonic() - started < 5

    def test_sleep_is_bounded_by_deadline(self) -> None:
        token = CancellationToken.with_timeout(0.05)

        started = time.monotonic()
        assert token.sleep(30) is True
        assert time.monotonic() - started < 5

    @pytest.mark.asyncio
    async def test_sleep_async_wakes_up_on_cancel(self) -> None:
        token = CancellationToken()
        asyncio.get_running_loop().call_later(0.05, token.cancel)

        started = time.monotonic()
        assert await token.sleep_async(30) is True
        assert time.monotonic() - started < 5

    @pytest.mark.asyncio
    async def test_race_returns_result(self) -> None:
        async def work() -> str:
            return "done"

        assert await CancellationToken().race(work()) == "done"

    @pytest.mark.asyncio
    async def test_race_cancels_pending_work(self) -> None:
        token = CancellationToken()
        finished = asyncio.Event()

        async def work() -> None:
            await asyncio.sleep(30)
            finished.set()

        asyncio.get_running_loop().call_later(0.05, token.cancel)

        with pytest.raises(OperationCancelled):
            await token.race(work(), operation="Widgets.Get")
        assert not finished.is_set()

    @pytest.mark.asyncio
    async def test_race_on_deadline(self) -> None:
        token = CancellationToken.with_timeout(0.05)

        with pytest.raises(OperationCancelled):
            await token.race(asyncio.sleep(30))
        assert token.reason == DEADLINE_EXCEEDED


class TestCancellationDuringRetries:
    def _request(self, token: CancellationToken) -> httpx.Request:
        return httpx.Request("GET", URL, extensions={CANCELLATION_EXTENSION: token})

    def test_cancelled_before_first_attempt(self) -> None:
        token = CancellationToken()
        token.cancel()
        handler = RecordingHandler([httpx.Response(200)])
        transport = RetryTransport(httpx.MockTransport(handler), SLOW_RETRY)

        with pytest.raises(OperationCancelled):
            transport.handle_request(self._request(token))
        assert handler.calls == 0

    def test_cancel_during_backoff_stops_retrying(self) -> None:
        token = CancellationToken()
        handler = RecordingHandler([httpx.Response(503)], repeat_last=True)
        transport = RetryTransport(httpx.MockTransport(handler), SLOW_RETRY)
        threading.Timer(0.05, token.cancel).start()

        started = time.monotonic()
        with pytest.raises(OperationCancelled):
            transport.handle_request(self._request(token))

        assert time.monotonic() - started < 5
        assert handler.calls == 1

    def test_deadline_bounds_retries(self) -> None:
        token = CancellationToken.with_timeout(0.1)
        handler = RecordingHandler([httpx.Response(503)], repeat_last=True)
        transport = RetryTransport(httpx.MockTransport(handler), SLOW_RETRY)

        started = time.monotonic()
        with pytest.raises(OperationCancelled):
            transport.handle_request(self._request(token))

        assert time.monotonic() - started < 5
        assert handler.calls == 1

    def test_deadline_is_applied_to_request_timeouts(self) -> None:
        token = CancellationToken.with_timeout(10)
        handler = RecordingHandler([httpx.Response(200)])
        transport = RetryTransport(httpx.MockTransport(handler), SLOW_RETRY)

        transport.handle_request(self._request(token))

        timeouts = handler.requests[0].extensions["timeout"]
        assert 0 < timeouts["read"] <= 10

    def test_cancel_during_blocking_attempt(self) -> None:
        token = CancellationToken()

        def cancel_then_answer(request: httpx.Request) -> httpx.Response:
            token.cancel()
            return httpx.Response(200)

        handler = RecordingHandler([cancel_then_answer])
        transport = RetryTransport(httpx.MockTransport(handler), SLOW_RETRY)

        with pytest.raises(OperationCancelled):
            transport.handle_request(self._request(token))
        assert handler.calls == 1

    def test_cancel_during_blocking_attempt_from_another_thread(self) -> None:
        token = CancellationToken()

        def slow(request: httpx.Request) -> httpx.Response:
            time.sleep(0.2)
            return httpx.Response(503)

        handler = RecordingHandler([slow], repeat_last=True)
        transport = RetryTransport(httpx.MockTransport(handler), SLOW_RETRY)
        threading.Timer(0.05, token.cancel).start()

        started = time.monotonic()
        with pytest.raises(OperationCancelled):
            transport.handle_request(self._request(token))

        assert time.monotonic() - started < 5
        assert handler.calls == 1

    @pytest.mark.asyncio
    async def test_async_cancel_after_attempt_completes(self) -> None:
        token = CancellationToken()

        def cancel_then_answer(request: httpx.Request) -> httpx.Response:
            token.cancel()
            return httpx.Response(200)

        handler = RecordingHandler([cancel_then_answer])
        transport = RetryTransport(httpx.MockTransport(handler), SLOW_RETRY)

        with pytest.raises(OperationCancelled):
            await transport.handle_async_request(self._request(token))
        assert handler.calls == 1

    @pytest.mark.asyncio
    async def test_async_cancel_interrupts_in_flight_attempt(self) -> None:
        token = CancellationToken()

        async def hang(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(30)
            return httpx.Response(200)

        handler = RecordingHandler([hang])
        transport = RetryTransport(httpx.MockTransport(handler), SLOW_RETRY)
        asyncio.get_running_loop().call_later(0.05, token.cancel)

        started = time.monotonic()
        with pytest.raises(OperationCancelled):
            await transport.handle_async_request(self._request(token))

        assert time.monotonic() - started < 5
        assert handler.calls == 1

    @pytest.mark.asyncio
    async def test_async_cancel_during_backoff(self) -> None:
        token = CancellationToken()
        handler = RecordingHandler([httpx.Response(503)], repeat_last=True)
        transport = RetryTransport(httpx.MockTransport(handler), SLOW_RETRY)
        asyncio.get_running_loop().call_later(0.05, token.cancel)

        with pytest.raises(OperationCancelled):
            await transport.handle_async_request(self._request(token))
        assert handler.calls == 1
