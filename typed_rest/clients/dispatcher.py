import uuid
from typing import Any

import httpx
from loguru import logger

from typed_rest.clients.envelope import CLIENT_REQUEST_ID_HEADER, ResponseEnvelope
from typed_rest.clients.request_builder import OperationDescriptor
from typed_rest.config.settings import DEFAULT_USER_AGENT
from typed_rest.exceptions.clients import TransportFailure
from typed_rest.helpers.async_client import RestAsyncClient, RestClient
from typed_rest.helpers.cancellation import CancellationToken
from typed_rest.helpers.retry import (
    CANCELLATION_EXTENSION,
    OPERATION_EXTENSION,
    RETRYABLE_EXTENSION,
    RetryConfig,
)
from typed_rest.helpers.tracing import LoguruTracer, SafeScope, Tracer


class Dispatcher:
    """
    Sends `OperationDescriptor`s through the HTTP pipeline and hands back raw
    `ResponseEnvelope`s. Blocking (`send`) and asynchronous (`send_async`) forms
    share the same pipeline: credential, retry transport, cancellation and tracing.

    The underlying httpx clients are created lazily, one per form, and reused by
    every call. Neither form imposes a timeout unless one is configured.
    """

    def __init__(
        self,
        *,
        retry_config: RetryConfig | None = None,
        auth: httpx.Auth | None = None,
        tracer: Tracer | None = None,
        timeout: float | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: httpx.BaseTransport | None = None,
        async_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._retry_config = retry_config
        self._auth = auth
        self._tracer: Tracer = tracer or LoguruTracer()
        self._timeout = httpx.Timeout(timeout)
        self._user_agent = user_agent
        self._transport = transport
        self._async_transport = async_transport
        self._client: RestClient | None = None
        self._async_client: RestAsyncClient | None = None

    @property
    def client(self) -> RestClient:
        if self._client is None:
            self._client = RestClient(
                retry_config=self._retry_config,
                transport=self._transport,
                timeout=self._timeout,
                auth=self._auth,
                headers={"User-Agent": self._user_agent},
            )
        return self._client

    @property
    def async_client(self) -> RestAsyncClient:
        if self._async_client is None:
            self._async_client = RestAsyncClient(
                retry_config=self._retry_config,
                transport=self._async_transport,
                timeout=self._timeout,
                auth=self._auth,
                headers={"User-Agent": self._user_agent},
            )
        return self._async_client

    def _build_request(
        self,
        http_client: httpx.Client | httpx.AsyncClient,
        descriptor: OperationDescriptor,
        cancellation: CancellationToken | None,
    ) -> httpx.Request:
        headers = dict(descriptor.headers)
        if not any(name.lower() == CLIENT_REQUEST_ID_HEADER for name in headers):
            headers[CLIENT_REQUEST_ID_HEADER] = str(uuid.uuid4())

        extensions: dict[str, Any] = {OPERATION_EXTENSION: descriptor.operation}
        if cancellation is not None:
            extensions[CANCELLATION_EXTENSION] = cancellation
        if descriptor.retryable:
            extensions[RETRYABLE_EXTENSION] = True

        return http_client.build_request(
            descriptor.method,
            descriptor.url,
            headers=headers,
            content=descriptor.body,
            extensions=extensions,
        )

    def _span_attributes(
        self, descriptor: OperationDescriptor, request: httpx.Request
    ) -> dict[str, Any]:
        return {
            "operation": descriptor.operation,
            "http_method": request.method,
            "url": str(request.url),
            "client_request_id": request.headers.get(CLIENT_REQUEST_ID_HEADER),
        }

    def _transport_failure(
        self, descriptor: OperationDescriptor, request: httpx.Request, error: Exception
    ) -> TransportFailure:
        logger.error(
            f"Couldn't send request {request.method} to url {request.url}: {str(error)}"
        )
        return TransportFailure(
            f"Request failed: {type(error).__name__} - {str(error) or 'No error message'}",
            operation=descriptor.operation,
            client_request_id=request.headers.get(CLIENT_REQUEST_ID_HEADER),
        )

    def send(
        self,
        descriptor: OperationDescriptor,
        cancellation: CancellationToken | None = None,
    ) -> ResponseEnvelope:
        if cancellation is not None:
            cancellation.raise_if_cancelled(descriptor.operation)

        request = self._build_request(self.client, descriptor, cancellation)
        with SafeScope(
            self._tracer, descriptor.operation, self._span_attributes(descriptor, request)
        ):
            logger.debug(f"Sending {request.method} {request.url}")
            try:
                response = self.client.send(request)
            except httpx.HTTPError as e:
                raise self._transport_failure(descriptor, request, e) from e
            logger.debug(
                f"Received {response.status_code} for {request.method} {request.url}"
            )
            return ResponseEnvelope.from_httpx(response)

    async def send_async(
        self,
        descriptor: OperationDescriptor,
        cancellation: CancellationToken | None = None,
    ) -> ResponseEnvelope:
        if cancellation is not None:
            cancellation.raise_if_cancelled(descriptor.operation)

        request = self._build_request(self.async_client, descriptor, cancellation)
        with SafeScope(
            self._tracer, descriptor.operation, self._span_attributes(descriptor, request)
        ):
            logger.debug(f"Sending {request.method} {request.url}")
            try:
                response = await self.async_client.send(request)
            except httpx.HTTPError as e:
                raise self._transport_failure(descriptor, request, e) from e
            logger.debug(
                f"Received {response.status_code} for {request.method} {request.url}"
            )
            return ResponseEnvelope.from_httpx(response)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    async def aclose(self) -> None:
        if self._async_client is not None:
            await self._async_client.aclose()
            self._async_client = None
        self.close()
