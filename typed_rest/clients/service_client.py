from typing import Any, Mapping, Sequence, TypeVar

import httpx
from loguru import logger

from typed_rest.clients.auth import BearerTokenAuth, Credential
from typed_rest.clients.dispatcher import Dispatcher
from typed_rest.clients.envelope import Response
from typed_rest.clients.operation import OperationSpec
from typed_rest.clients.pager import AsyncPager, Pager
from typed_rest.clients.request_builder import OperationDescriptor, RequestBuilder
from typed_rest.clients.resolver import ResponseResolver
from typed_rest.config.settings import DEFAULT_USER_AGENT, ClientSettings
from typed_rest.helpers.cancellation import CancellationToken
from typed_rest.helpers.retry import RetryConfig
from typed_rest.helpers.tracing import Tracer
from typed_rest.log.logger_setup import setup_logger
from typed_rest.models.base import Model

TClient = TypeVar("TClient", bound="ServiceClient")


class ServiceClient:
    """
    Base class for service clients. Runs an `OperationSpec` through the request
    builder, the dispatcher and the response resolver, or wraps it in a pager for
    list operations. Service clients subclass it and expose one typed method per
    operation.
    """

    def __init__(
        self,
        endpoint: str,
        credential: Credential | None = None,
        *,
        api_version: str | None = None,
        credential_scopes: Sequence[str] | None = None,
        retry_config: RetryConfig | None = None,
        tracer: Tracer | None = None,
        timeout: float | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: httpx.BaseTransport | None = None,
        async_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._builder = RequestBuilder(endpoint, api_version)
        auth = None
        if credential is not None:
            scopes = credential_scopes or [f"{self._builder.endpoint}/.default"]
            auth = BearerTokenAuth(credential, *scopes)
        self._dispatcher = Dispatcher(
            retry_config=retry_config,
            auth=auth,
            tracer=tracer,
            timeout=timeout,
            user_agent=user_agent,
            transport=transport,
            async_transport=async_transport,
        )
        self._resolver = ResponseResolver()

    @classmethod
    def from_settings(
        cls: type[TClient],
        settings: ClientSettings,
        credential: Credential | None = None,
        configure_logging: bool = True,
        **kwargs: Any,
    ) -> TClient:
        """
        Builds a client from `ClientSettings`. Unless `configure_logging` is False,
        the loguru stdout handler is installed at `settings.log_level` first.
        """
        if configure_logging:
            setup_logger(settings.log_level)
        logger.info(f"Creating {cls.__name__} for {settings.endpoint}")
        return cls(
            settings.endpoint,
            credential,
            api_version=settings.api_version,
            credential_scopes=settings.scopes,
            retry_config=settings.retry.to_retry_config(),
            timeout=settings.timeout,
            user_agent=settings.user_agent,
            **kwargs,
        )

    @property
    def endpoint(self) -> str:
        return self._builder.endpoint

    @property
    def api_version(self) -> str | None:
        return self._builder.api_version

    def build_request(
        self,
        spec: OperationSpec,
        *,
        path_params: Mapping[str, Any] | None = None,
        query: Mapping[str, Any] | None = None,
        headers: Mapping[str, Any] | None = None,
        body: Model | None = None,
    ) -> OperationDescriptor:
        return self._builder.build(spec, path_params, query, headers, body)

    def send_operation(
        self,
        spec: OperationSpec,
        *,
        path_params: Mapping[str, Any] | None = None,
        query: Mapping[str, Any] | None = None,
        headers: Mapping[str, Any] | None = None,
        body: Model | None = None,
        cancellation: CancellationToken | None = None,
    ) -> Response[Any]:
        descriptor = self.build_request(
            spec, path_params=path_params, query=query, headers=headers, body=body
        )
        envelope = self._dispatcher.send(descriptor, cancellation)
        return self._resolver.resolve(spec, envelope)

    async def asend_operation(
        self,
        spec: OperationSpec,
        *,
        path_params: Mapping[str, Any] | None = None,
        query: Mapping[str, Any] | None = None,
        headers: Mapping[str, Any] | None = None,
        body: Model | None = None,
        cancellation: CancellationToken | None = None,
    ) -> Response[Any]:
        descriptor = self.build_request(
            spec, path_params=path_params, query=query, headers=headers, body=body
        )
        envelope = await self._dispatcher.send_async(descriptor, cancellation)
        return self._resolver.resolve(spec, envelope)

    def list_operation(
        self,
        spec: OperationSpec,
        *,
        path_params: Mapping[str, Any] | None = None,
        query: Mapping[str, Any] | None = None,
        headers: Mapping[str, Any] | None = None,
        cancellation: CancellationToken | None = None,
    ) -> Pager[Any]:
        seed = self.build_request(
            spec, path_params=path_params, query=query, headers=headers
        )
        return Pager(spec, seed, self._dispatcher, self._resolver, cancellation)

    def alist_operation(
        self,
        spec: OperationSpec,
        *,
        path_params: Mapping[str, Any] | None = None,
        query: Mapping[str, Any] | None = None,
        headers: Mapping[str, Any] | None = None,
        cancellation: CancellationToken | None = None,
    ) -> AsyncPager[Any]:
        seed = self.build_request(
            spec, path_params=path_params, query=query, headers=headers
        )
        return AsyncPager(spec, seed, self._dispatcher, self._resolver, cancellation)

    def close(self) -> None:
        self._dispatcher.close()

    async def aclose(self) -> None:
        await self._dispatcher.aclose()

    def __enter__(self: TClient) -> TClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    async def __aenter__(self: TClient) -> TClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()
