import asyncio
import random
import time
from datetime import datetime
from functools import partial
from http import HTTPStatus
from typing import (
    Any,
    Callable,
    Coroutine,
    Iterable,
    List,
    Mapping,
    Optional,
    Union,
)

import httpx
from dateutil.parser import isoparse

from typed_rest.exceptions.clients import OperationCancelled
from typed_rest.helpers.cancellation import CancellationToken

MAX_BACKOFF_WAIT_IN_SECONDS = 60
CANCELLATION_EXTENSION = "typed_rest.cancellation"
OPERATION_EXTENSION = "typed_rest.operation"
RETRYABLE_EXTENSION = "retryable"


class RetryConfig:
    """Configuration class for retry behavior that can be customized per client."""

    def __init__(
        self,
        max_attempts: int = 10,
        max_backoff_wait: float = MAX_BACKOFF_WAIT_IN_SECONDS,
        base_delay: float = 0.1,
        jitter_ratio: float = 0.1,
        respect_retry_after_header: bool = True,
        retryable_methods: Optional[Iterable[str]] = None,
        retry_after_headers: Optional[List[str]] = None,
        additional_retry_status_codes: Optional[Iterable[int]] = None,
    ):
        """
        Initialize retry configuration.

        Args:
            max_attempts: Maximum number of retry attempts after the first try
            max_backoff_wait: Maximum backoff wait time in seconds
            base_delay: Base delay for exponential backoff
            jitter_ratio: Jitter ratio for backoff (0-0.5)
            respect_retry_after_header: Whether to respect Retry-After style headers
            retryable_methods: HTTP methods that can be retried (overrides defaults if provided)
            retry_after_headers: Headers to check for retry timing, in order. Headers ending
                with `-ms` are read as milliseconds.
            additional_retry_status_codes: Additional status codes to retry (extends system defaults)
        """
        if max_attempts < 0:
            raise ValueError(f"max_attempts should not be negative, actual {max_attempts}")
        if jitter_ratio < 0 or jitter_ratio > 0.5:
            raise ValueError(
                f"Jitter ratio should be between 0 and 0.5, actual {jitter_ratio}"
            )

        self.max_attempts = max_attempts
        self.max_backoff_wait = max_backoff_wait
        self.base_delay = base_delay
        self.jitter_ratio = jitter_ratio
        self.respect_retry_after_header = respect_retry_after_header

        default_methods = frozenset(
            ["HEAD", "GET", "PUT", "DELETE", "OPTIONS", "TRACE"]
        )
        self.retryable_methods = (
            frozenset(method.upper() for method in retryable_methods)
            if retryable_methods
            else default_methods
        )

        default_status_codes = frozenset(
            [
                HTTPStatus.REQUEST_TIMEOUT,
                HTTPStatus.TOO_MANY_REQUESTS,
                HTTPStatus.INTERNAL_SERVER_ERROR,
                HTTPStatus.BAD_GATEWAY,
                HTTPStatus.SERVICE_UNAVAILABLE,
                HTTPStatus.GATEWAY_TIMEOUT,
            ]
        )
        additional_codes = (
            frozenset(additional_retry_status_codes)
            if additional_retry_status_codes
            else frozenset()
        )
        self.retry_status_codes = default_status_codes | additional_codes
        self.retry_after_headers = retry_after_headers or [
            "retry-after-ms",
            "x-ms-retry-after-ms",
            "Retry-After",
        ]


class RetryPolicy:
    """
    Pure retry decision: given how many retries were already made and what the
    last attempt produced, returns how long to wait before the next attempt, or
    None to give up. Only transport errors and the configured status codes are
    retried; business-level status handling happens after dispatch.
    """

    def __init__(self, config: RetryConfig | None = None) -> None:
        self.config = config or RetryConfig()

    def next_delay(
        self,
        retries_made: int,
        response: httpx.Response | None = None,
        error: Exception | None = None,
    ) -> float | None:
        if retries_made >= self.config.max_attempts:
            return None
        if error is not None:
            if not isinstance(error, httpx.TransportError):
                return None
            return self.calculate_sleep(retries_made + 1, {})
        if response is None or not self.is_retryable_status(response.status_code):
            return None
        return self.calculate_sleep(retries_made + 1, response.headers)

    def is_retryable_status(self, status_code: int) -> bool:
        return status_code in self.config.retry_status_codes

    def calculate_sleep(
        self, attempts_made: int, headers: Union[httpx.Headers, Mapping[str, str]]
    ) -> float:
        if self.config.respect_retry_after_header:
            for header_name in self.config.retry_after_headers:
                if header_value := (headers.get(header_name) or "").strip():
                    sleep_time = self.parse_retry_header(header_name, header_value)
                    if sleep_time is not None:
                        return min(sleep_time, self.config.max_backoff_wait)

        backoff = self.config.base_delay * (2 ** (attempts_made - 1))
        jitter = (backoff * self.config.jitter_ratio) * random.choice([1, -1])
        total_backoff = backoff + jitter
        return min(total_backoff, self.config.max_backoff_wait)

    @staticmethod
    def parse_retry_header(header_name: str, header_value: str) -> Optional[float]:
        """Parse retry header value and return sleep time in seconds.

        Args:
            header_name: The header the value came from; `-ms` headers carry milliseconds
            header_value: The header value to parse (e.g., "30", "2023-12-01T12:00:00Z")

        Returns:
            Sleep time in seconds if parsing succeeds, None if the header value cannot be parsed
        """
        try:
            seconds = float(header_value)
        except ValueError:
            seconds = None
        if seconds is not None:
            if seconds < 0:
                return None
            return seconds / 1000 if header_name.lower().endswith("-ms") else seconds

        try:
            parsed_date = isoparse(header_value).astimezone()
            diff = (parsed_date - datetime.now().astimezone()).total_seconds()
            if diff > 0:
                return diff
        except ValueError:
            pass

        return None


# Adapted from https://github.com/encode/httpx/issues/108#issuecomment-1434439481
class RetryTransport(httpx.AsyncBaseTransport, httpx.BaseTransport):
    """
    A custom HTTP transport that automatically retries requests using an exponential backoff strategy
    for specific HTTP status codes and request methods.

    The transport honours the `CancellationToken` attached to a request under
    `CANCELLATION_EXTENSION`: the token is checked before every attempt, backoff
    waits end as soon as it fires, a token deadline bounds each attempt's
    timeouts, and asynchronous attempts are raced against the token. Once the
    token is cancelled no further attempt is made and `OperationCancelled` is raised.

    Args:
        wrapped_transport (Union[httpx.BaseTransport, httpx.AsyncBaseTransport]): The underlying HTTP transport
            to wrap and use for making requests.
        retry_config (RetryConfig, optional): Configuration for retry behavior. If not provided, uses defaults.
        retry_policy (RetryPolicy, optional): Decides whether and when to retry. Built from
            `retry_config` if not provided.
        logger (Any, optional): The logger to use for logging retries.
    """

    def __init__(
        self,
        wrapped_transport: Union[httpx.BaseTransport, httpx.AsyncBaseTransport],
        retry_config: Optional[RetryConfig] = None,
        retry_policy: Optional[RetryPolicy] = None,
        logger: Any | None = None,
    ) -> None:
        self._wrapped_transport = wrapped_transport
        self._retry_policy = retry_policy or RetryPolicy(retry_config)
        self._retry_config = self._retry_policy.config
        self._logger = logger

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        """
        Sends an HTTP request, possibly with retries.

        Args:
            request (httpx.Request): The request to send.

        Returns:
            httpx.Response: The response received.

        """
        transport: httpx.BaseTransport = self._wrapped_transport  # type: ignore
        send_method = partial(transport.handle_request)
        return self._retry_operation(request, send_method)

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        """Sends an HTTP request, possibly with retries.

        Args:
            request: The request to perform.

        Returns:
            The response.

        """
        transport: httpx.AsyncBaseTransport = self._wrapped_transport  # type: ignore
        send_method = partial(transport.handle_async_request)
        return await self._retry_operation_async(request, send_method)

    async def aclose(self) -> None:
        """
        Closes the underlying HTTP transport, terminating all outstanding connections and rejecting any further
        requests.
        """
        transport: httpx.AsyncBaseTransport = self._wrapped_transport  # type: ignore
        await transport.aclose()

    def close(self) -> None:
        """
        Closes the underlying HTTP transport, terminating all outstanding connections and rejecting any further
        requests.
        """
        transport: httpx.BaseTransport = self._wrapped_transport  # type: ignore
        transport.close()

    def _is_retryable_method(self, request: httpx.Request) -> bool:
        return (
            request.method in self._retry_config.retryable_methods
            or request.extensions.get(RETRYABLE_EXTENSION, False)
        )

    def _next_delay(
        self,
        request: httpx.Request,
        retries_made: int,
        response: httpx.Response | None = None,
        error: Exception | None = None,
    ) -> float | None:
        if not self._is_retryable_method(request):
            return None
        return self._retry_policy.next_delay(retries_made, response, error)

    @staticmethod
    def _cancellation(request: httpx.Request) -> CancellationToken | None:
        return request.extensions.get(CANCELLATION_EXTENSION)

    def _cancelled_error(
        self, request: httpx.Request, token: CancellationToken
    ) -> OperationCancelled:
        operation = request.extensions.get(OPERATION_EXTENSION)
        if self._logger:
            self._logger.warning(
                f"Request {request.method} {request.url} was cancelled: {token.reason}"
            )
        return OperationCancelled(
            f"Operation was cancelled: {token.reason}",
            operation=operation,
            client_request_id=request.headers.get("x-ms-client-request-id"),
        )

    @staticmethod
    def _apply_deadline(request: httpx.Request, token: CancellationToken | None) -> None:
        remaining = token.remaining() if token is not None else None
        if remaining is None:
            return
        timeouts = dict(request.extensions.get("timeout") or {})
        for key in ("connect", "read", "write", "pool"):
            current = timeouts.get(key)
            timeouts[key] = remaining if current is None else min(current, remaining)
        request.extensions["timeout"] = timeouts

    def _log_error(
        self,
        request: httpx.Request,
        error: Exception | None,
    ) -> None:
        if not self._logger:
            return

        if isinstance(error, httpx.ConnectTimeout):
            self._logger.error(
                f"Request {request.method} {request.url} failed to connect: {str(error)}"
            )
        elif isinstance(error, httpx.TimeoutException):
            self._logger.error(
                f"Request {request.method} {request.url} failed with a timeout exception: {str(error)}"
            )
        elif isinstance(error, httpx.HTTPError):
            self._logger.error(
                f"Request {request.method} {request.url} failed with an HTTP error: {str(error)}"
            )

    def _log_before_retry(
        self,
        request: httpx.Request,
        sleep_time: float,
        response: httpx.Response | None,
        error: Exception | None,
    ) -> None:
        if self._logger and response:
            self._logger.warning(
                f"Request {request.method} {request.url} failed with status code:"
                f" {response.status_code}, retrying in {sleep_time} seconds."
            )
        elif self._logger and error:
            self._logger.warning(
                f"Request {request.method} {request.url} failed with exception:"
                f" {type(error).__name__} - {str(error) or 'No error message'}, retrying in {sleep_time} seconds."
            )

    async def _retry_operation_async(
        self,
        request: httpx.Request,
        send_method: Callable[..., Coroutine[Any, Any, httpx.Response]],
    ) -> httpx.Response:
        token = self._cancellation(request)
        retries_made = 0
        while True:
            if token is not None and token.is_cancelled:
                raise self._cancelled_error(request, token)

            self._apply_deadline(request, token)
            try:
                if token is not None:
                    response = await token.race(send_method(request))
                else:
                    response = await send_method(request)
            except OperationCancelled:
                raise self._cancelled_error(request, token)  # type: ignore[arg-type]
            except httpx.TransportError as e:
                if token is not None and token.is_cancelled:
                    raise self._cancelled_error(request, token) from e
                sleep_time = self._next_delay(request, retries_made, error=e)
                if sleep_time is None:
                    self._log_error(request, e)
                    raise
                self._log_before_retry(request, sleep_time, None, e)
            else:
                response.request = request
                if token is not None and token.is_cancelled:
                    await response.aclose()
                    raise self._cancelled_error(request, token)
                sleep_time = self._next_delay(request, retries_made, response=response)
                if sleep_time is None:
                    return response
                self._log_before_retry(request, sleep_time, response, None)
                await response.aclose()

            if token is not None:
                if await token.sleep_async(sleep_time):
                    raise self._cancelled_error(request, token)
            else:
                await asyncio.sleep(sleep_time)
            retries_made += 1

    def _retry_operation(
        self,
        request: httpx.Request,
        send_method: Callable[..., httpx.Response],
    ) -> httpx.Response:
        token = self._cancellation(request)
        retries_made = 0
        while True:
            if token is not None and token.is_cancelled:
                raise self._cancelled_error(request, token)

            self._apply_deadline(request, token)
            try:
                response = send_method(request)
            except httpx.TransportError as e:
                if token is not None and token.is_cancelled:
                    raise self._cancelled_error(request, token) from e
                sleep_time = self._next_delay(request, retries_made, error=e)
                if sleep_time is None:
                    self._log_error(request, e)
                    raise
                self._log_before_retry(request, sleep_time, None, e)
            else:
                response.request = request
                if token is not None and token.is_cancelled:
                    response.close()
                    raise self._cancelled_error(request, token)
                sleep_time = self._next_delay(request, retries_made, response=response)
                if sleep_time is None:
                    return response
                self._log_before_retry(request, sleep_time, response, None)
                response.close()

            if token is not None:
                if token.sleep(sleep_time):
                    raise self._cancelled_error(request, token)
            else:
                time.sleep(sleep_time)
            retries_made += 1
