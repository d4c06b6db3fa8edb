from typing import Any, Type

import httpx
from loguru import logger

from typed_rest.helpers.retry import RetryConfig, RetryTransport


class RestAsyncClient(httpx.AsyncClient):
    """
    This class is a wrapper around httpx.AsyncClient that uses a custom transport class.
    This is done to allow passing our custom transport class to the AsyncClient constructor while still allowing
    all the default AsyncClient behavior that is changed when passing a custom transport instance.

    A transport passed explicitly (a mock transport in tests, for instance) is wrapped
    with the retry transport as well, so every request goes through the same retry
    and cancellation handling.
    """

    def __init__(
        self,
        transport_class: Type[RetryTransport] = RetryTransport,
        transport_kwargs: dict[str, Any] | None = None,
        retry_config: RetryConfig | None = None,
        **kwargs: Any,
    ):
        self._transport_kwargs = transport_kwargs
        self._transport_class = transport_class
        self._retry_config = retry_config
        super().__init__(**kwargs)

    def _init_transport(  # type: ignore[override]
        self,
        transport: httpx.AsyncBaseTransport | None = None,
        **kwargs: Any,
    ) -> httpx.AsyncBaseTransport:
        return self._transport_class(
            wrapped_transport=transport or httpx.AsyncHTTPTransport(**kwargs),
            retry_config=self._retry_config,
            logger=logger,
            **(self._transport_kwargs or {}),
        )

    def _init_proxy_transport(  # type: ignore[override]
        self, proxy: httpx.Proxy, **kwargs: Any
    ) -> httpx.AsyncBaseTransport:
        return self._transport_class(
            wrapped_transport=httpx.AsyncHTTPTransport(proxy=proxy, **kwargs),
            retry_config=self._retry_config,
            logger=logger,
            **(self._transport_kwargs or {}),
        )


class RestClient(httpx.Client):
    """Blocking counterpart of `RestAsyncClient`."""

    def __init__(
        self,
        transport_class: Type[RetryTransport] = RetryTransport,
        transport_kwargs: dict[str, Any] | None = None,
        retry_config: RetryConfig | None = None,
        **kwargs: Any,
    ):
        self._transport_kwargs = transport_kwargs
        self._transport_class = transport_class
        self._retry_config = retry_config
        super().__init__(**kwargs)

    def _init_transport(  # type: ignore[override]
        self,
        transport: httpx.BaseTransport | None = None,
        **kwargs: Any,
    ) -> httpx.BaseTransport:
        return self._transport_class(
            wrapped_transport=transport or httpx.HTTPTransport(**kwargs),
            retry_config=self._retry_config,
            logger=logger,
            **(self._transport_kwargs or {}),
        )

    def _init_proxy_transport(  # type: ignore[override]
        self, proxy: httpx.Proxy, **kwargs: Any
    ) -> httpx.BaseTransport:
        return self._transport_class(
            wrapped_transport=httpx.HTTPTransport(proxy=proxy, **kwargs),
            retry_config=self._retry_config,
            logger=logger,
            **(self._transport_kwargs or {}),
        )
