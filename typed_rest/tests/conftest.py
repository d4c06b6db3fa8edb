from typing import Any, Callable, Iterable

import httpx

from typed_rest.clients.continuation import ContinuationStrategy, NextLinkContinuation
from typed_rest.clients.operation import OperationSpec, PagingSpec
from typed_rest.clients.service_client import ServiceClient
from typed_rest.helpers.retry import RetryConfig
from typed_rest.models import Field, ListOf, Model

ENDPOINT = "https://contoso.example.com"
API_VERSION = "2024-01-01"


class Widget(Model):
    name = Field("name", str, required=True)
    size = Field("size", int)
    note = Field("note", str, nullable=True)


class WidgetList(Model):
    value = Field("value", ListOf(Widget), required=True)
    next_link = Field("nextLink", str, nullable=True)


GET_WIDGET = OperationSpec(
    name="Widgets.Get",
    method="GET",
    path="/widgets/{widgetName}",
    response_type=Widget,
)


def list_widgets_spec(
    continuation: ContinuationStrategy | None = None,
) -> OperationSpec:
    return OperationSpec(
        name="Widgets.List",
        method="GET",
        path="/widgets",
        response_type=WidgetList,
        query_params=("$filter",),
        paging=PagingSpec(continuation=continuation or NextLinkContinuation()),
    )


class RecordingHandler:
    """Serves canned responses in order and records every request it receives."""

    def __init__(
        self,
        responses: Iterable[httpx.Response | Callable[[httpx.Request], Any]],
        repeat_last: bool = False,
    ) -> None:
        self._responses = list(responses)
        self._repeat_last = repeat_last
        self.requests: list[httpx.Request] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    def _next(self) -> Any:
        if len(self._responses) > 1 or not self._repeat_last:
            return self._responses.pop(0)
        response = self._responses[0]
        if isinstance(response, httpx.Response):
            # responses are closed once consumed, hand out a fresh copy each time
            return httpx.Response(
                response.status_code, headers=response.headers, content=response.content
            )
        return response

    def __call__(self, request: httpx.Request) -> Any:
        self.requests.append(request)
        response = self._next()
        if callable(response) and not isinstance(response, httpx.Response):
            return response(request)
        return response


def widget_page(names: list[str], next_link: str | None = None) -> httpx.Response:
    return httpx.Response(
        200,
        json={"value": [{"name": name} for name in names], "nextLink": next_link},
    )


def make_client(
    handler: Callable[[httpx.Request], Any],
    retry_config: RetryConfig | None = None,
    **kwargs: Any,
) -> ServiceClient:
    transport = httpx.MockTransport(handler)
    return ServiceClient(
        ENDPOINT,
        api_version=API_VERSION,
        retry_config=retry_config or RetryConfig(max_attempts=3, base_delay=0, jitter_ratio=0),
        transport=transport,
        async_transport=transport,
        **kwargs,
    )
