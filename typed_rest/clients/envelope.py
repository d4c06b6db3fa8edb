import json
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

import httpx

T = TypeVar("T")

REQUEST_ID_HEADER = "x-ms-request-id"
CLIENT_REQUEST_ID_HEADER = "x-ms-client-request-id"


@dataclass(frozen=True)
class ResponseEnvelope:
    """Status, headers and raw body of a single dispatched request."""

    status_code: int
    headers: httpx.Headers
    content: bytes
    method: str
    url: str
    reason_phrase: str = ""
    client_request_id: str | None = None

    @classmethod
    def from_httpx(cls, response: httpx.Response) -> "ResponseEnvelope":
        return cls(
            status_code=response.status_code,
            headers=response.headers,
            content=response.content,
            method=response.request.method,
            url=str(response.request.url),
            reason_phrase=response.reason_phrase,
            client_request_id=response.headers.get(CLIENT_REQUEST_ID_HEADER)
            or response.request.headers.get(CLIENT_REQUEST_ID_HEADER),
        )

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    @property
    def request_id(self) -> str | None:
        return self.headers.get(REQUEST_ID_HEADER)

    def json(self) -> Any:
        return json.loads(self.content)


@dataclass(frozen=True)
class Response(Generic[T]):
    """A decoded operation result together with the envelope it came from."""

    value: T
    envelope: ResponseEnvelope

    @property
    def status_code(self) -> int:
        return self.envelope.status_code

    @property
    def headers(self) -> httpx.Headers:
        return self.envelope.headers


@dataclass(frozen=True)
class Page(Generic[T]):
    items: list[T]
    envelope: ResponseEnvelope
    continuation_token: str | None = None
    raw: Any = field(default=None, repr=False)
