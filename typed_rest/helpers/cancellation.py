import asyncio
import threading
import time
from typing import Any, Awaitable, Callable, TypeVar

from typed_rest.exceptions.clients import OperationCancelled

T = TypeVar("T")

DEADLINE_EXCEEDED = "deadline exceeded"


class CancellationToken:
    """
    Cooperative cancellation signal shared between a caller and an operation call.

    The token can be cancelled explicitly from any thread, or implicitly once its
    deadline passes. Timeouts are expressed this way: nothing in the client imposes
    one unless the caller creates a token with a deadline.

    ```python
    token = CancellationToken.with_timeout(30)
    client.get("composition-id", cancellation=token)
    ```
    """

    def __init__(self, deadline: float | None = None) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: dict[int, Callable[[], Any]] = {}
        self._next_callback_id = 0
        self._deadline = deadline
        self.reason: str | None = None

    @classmethod
    def with_timeout(cls, seconds: float) -> "CancellationToken":
        return cls(deadline=time.monotonic() + seconds)

    @property
    def deadline(self) -> float | None:
        return self._deadline

    @property
    def is_cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self.cancel(DEADLINE_EXCEEDED)
            return True
        return False

    def remaining(self) -> float | None:
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def cancel(self, reason: str = "cancelled by caller") -> None:
        with self._lock:
            if self._event.is_set():
                return
            self.reason = reason
            self._event.set()
            callbacks = list(self._callbacks.values())
            self._callbacks.clear()
        for callback in callbacks:
            callback()

    def register(self, callback: Callable[[], Any]) -> Callable[[], None]:
        """
        Runs `callback` once the token is cancelled, immediately if it already is.
        Returns a function that removes the registration.
        """
        with self._lock:
            if not self._event.is_set():
                callback_id = self._next_callback_id
                self._next_callback_id += 1
                self._callbacks[callback_id] = callback
                return lambda: self._unregister(callback_id)
        callback()
        return lambda: None

    def _unregister(self, callback_id: int) -> None:
        with self._lock:
            self._callbacks.pop(callback_id, None)

    def raise_if_cancelled(self, operation: str | None = None) -> None:
        if self.is_cancelled:
            raise OperationCancelled(
                f"Operation was cancelled: {self.reason}", operation=operation
            )

    def _bounded(self, seconds: float) -> tuple[float, bool]:
        remaining = self.remaining()
        if remaining is not None and remaining <= seconds:
            return remaining, True
        return seconds, False

    def sleep(self, seconds: float) -> bool:
        """Blocks for up to `seconds`. Returns True if the token was cancelled meanwhile."""
        timeout, hits_deadline = self._bounded(seconds)
        if not self._event.wait(timeout) and hits_deadline:
            self.cancel(DEADLINE_EXCEEDED)
        return self.is_cancelled

    async def sleep_async(self, seconds: float) -> bool:
        """Suspends for up to `seconds`. Returns True if the token was cancelled meanwhile."""
        timeout, hits_deadline = self._bounded(seconds)
        waiter = self._async_waiter()
        try:
            done, _ = await asyncio.wait({waiter.future}, timeout=timeout)
        finally:
            waiter.close()
        if not done and hits_deadline:
            self.cancel(DEADLINE_EXCEEDED)
        return self.is_cancelled

    async def race(
        self, awaitable: Awaitable[T], operation: str | None = None
    ) -> T:
        """
        Awaits `awaitable` unless the token fires first, in which case the pending
        work is cancelled and `OperationCancelled` is raised.
        """
        if self.is_cancelled and asyncio.iscoroutine(awaitable):
            awaitable.close()
        self.raise_if_cancelled(operation)
        task = asyncio.ensure_future(awaitable)
        waiter = self._async_waiter()
        try:
            await asyncio.wait(
                {task, waiter.future},
                timeout=self.remaining(),
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.close()

        if task.done():
            return task.result()

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        if not self.is_cancelled:
            self.cancel(DEADLINE_EXCEEDED)
        raise OperationCancelled(
            f"Operation was cancelled: {self.reason}", operation=operation
        )

    def _async_waiter(self) -> "_AsyncWaiter":
        return _AsyncWaiter(self)

    def __repr__(self) -> str:
        state = f"cancelled ({self.reason})" if self._event.is_set() else "active"
        return f"CancellationToken({state}, deadline={self._deadline})"


class _AsyncWaiter:
    """Bridges a (thread-safe) token cancellation onto the running event loop."""

    def __init__(self, token: CancellationToken) -> None:
        loop = asyncio.get_running_loop()
        self.future: asyncio.Future[None] = loop.create_future()

        def _wake() -> None:
            loop.call_soon_threadsafe(self._resolve)

        self._unregister = token.register(_wake)

    def _resolve(self) -> None:
        if not self.future.done():
            self.future.set_result(None)

    def close(self) -> None:
        self._unregister()
        if not self.future.done():
            self.future.cancel()
