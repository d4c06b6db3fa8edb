import asyncio
from collections import deque
from typing import (
    TYPE_CHECKING,
    Any,
    AsyncIterator,
    Generic,
    Iterator,
    TypeVar,
)

from loguru import logger

from typed_rest.clients.envelope import Page, ResponseEnvelope
from typed_rest.clients.operation import OperationSpec, PagingSpec
from typed_rest.clients.request_builder import OperationDescriptor
from typed_rest.clients.resolver import ResponseResolver
from typed_rest.exceptions.clients import MalformedResponse, OperationCancelled
from typed_rest.helpers.cancellation import CancellationToken

if TYPE_CHECKING:
    from typed_rest.clients.dispatcher import Dispatcher

T = TypeVar("T")


class _PageCursor(Generic[T]):
    """
    State shared by the blocking and asynchronous pagers: the item buffer, the
    continuation token and whether the traversal is over.

    A cursor is single-pass and must be driven from one call site at a time.
    Restarting means building a new cursor from the same seed.
    """

    def __init__(
        self,
        spec: OperationSpec,
        seed: OperationDescriptor,
        dispatcher: "Dispatcher",
        resolver: ResponseResolver,
        cancellation: CancellationToken | None = None,
    ) -> None:
        if spec.paging is None:
            raise ValueError(f"Operation {spec.name} is not a paged operation")
        self._spec = spec
        self._paging: PagingSpec = spec.paging
        self._seed = seed
        self._dispatcher = dispatcher
        self._resolver = resolver
        self._cancellation = cancellation
        self._buffer: deque[T] = deque()
        self._seen_tokens: set[str] = set()
        self._started = False
        self.continuation_token: str | None = None
        self.exhausted = False
        self.cancelled = False

    def _next_descriptor(self) -> OperationDescriptor:
        if not self._started:
            return self._paging.continuation.first(self._seed)
        return self._paging.continuation.next_request(
            self._seed, self.continuation_token  # type: ignore[arg-type]
        )

    def _accept(self, envelope: ResponseEnvelope) -> Page[T]:
        value = self._resolver.resolve(self._spec, envelope).value
        items: list[T] = list(getattr(value, self._paging.item_attr, None) or [])
        token = self._paging.continuation.token_from(value, envelope, items)
        if token is not None:
            if token in self._seen_tokens:
                raise MalformedResponse(
                    f"Service returned a continuation token twice: {token}",
                    operation=self._spec.name,
                    status_code=envelope.status_code,
                    request_id=envelope.request_id,
                    client_request_id=envelope.client_request_id,
                )
            self._seen_tokens.add(token)

        self._started = True
        self.continuation_token = token
        self.exhausted = token is None
        logger.debug(
            f"Fetched page of {len(items)} items for {self._spec.name}"
            + ("" if self.exhausted else ", more pages available")
        )
        return Page(items=items, envelope=envelope, continuation_token=token, raw=value)

    def _cancel(self) -> None:
        self._buffer.clear()
        self.exhausted = True
        self.cancelled = True

    def _stop(self) -> None:
        self._buffer.clear()
        self.exhausted = True

    def _restart_args(self) -> tuple[Any, ...]:
        return (
            self._spec,
            self._seed,
            self._dispatcher,
            self._resolver,
            self._cancellation,
        )


class Pager(_PageCursor[T], Iterator[T]):
    """
    Lazy iterator over the items of a paged operation. Pages are fetched one at a
    time, only when the buffered items run out, and yielded in server order.

    ```python
    for composition in client.list():
        print(composition.id)

    for page in client.list().by_page():
        print(len(page.items), page.envelope.request_id)
    ```
    """

    def __iter__(self) -> "Pager[T]":
        return self

    def __next__(self) -> T:
        while not self._buffer:
            if self.exhausted:
                raise StopIteration
            self._buffer.extend(self._fetch_page().items)
        return self._buffer.popleft()

    def _fetch_page(self) -> Page[T]:
        descriptor = self._next_descriptor()
        try:
            envelope = self._dispatcher.send(descriptor, self._cancellation)
            return self._accept(envelope)
        except OperationCancelled:
            self._cancel()
            raise
        except Exception:
            self._stop()
            raise

    def by_page(self) -> Iterator[Page[T]]:
        """Iterates whole pages, starting over from the original request."""
        cursor = self.restart()
        while not cursor.exhausted:
            yield cursor._fetch_page()

    def restart(self) -> "Pager[T]":
        return Pager(*self._restart_args())


class AsyncPager(_PageCursor[T], AsyncIterator[T]):
    """Asynchronous counterpart of `Pager`, driven with `async for`."""

    def __aiter__(self) -> "AsyncPager[T]":
        return self

    async def __anext__(self) -> T:
        while not self._buffer:
            if self.exhausted:
                raise StopAsyncIteration
            page = await self._fetch_page()
            self._buffer.extend(page.items)
        return self._buffer.popleft()

    async def _fetch_page(self) -> Page[T]:
        descriptor = self._next_descriptor()
        try:
            envelope = await self._dispatcher.send_async(descriptor, self._cancellation)
            return self._accept(envelope)
        except (OperationCancelled, asyncio.CancelledError):
            self._cancel()
            raise
        except Exception:
            self._stop()
            raise

    async def by_page(self) -> AsyncIterator[Page[T]]:
        """Iterates whole pages, starting over from the original request."""
        cursor = self.restart()
        while not cursor.exhausted:
            yield await cursor._fetch_page()

    def restart(self) -> "AsyncPager[T]":
        return AsyncPager(*self._restart_args())
