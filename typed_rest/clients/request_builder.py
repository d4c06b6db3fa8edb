import json
import re
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Mapping
from urllib.parse import quote, urljoin

import httpx

from typed_rest.exceptions.clients import InvalidArgument
from typed_rest.models.base import Model
from typed_rest.models.enums import ExtensibleEnum

if TYPE_CHECKING:
    from typed_rest.clients.operation import OperationSpec

PATH_PARAMETER_PATTERN = re.compile(r"\{(\w+)\}")
API_VERSION_PARAMETER = "api-version"
JSON_CONTENT_TYPE = "application/json"


@dataclass(frozen=True)
class OperationDescriptor:
    """A fully assembled request that has not been sent yet."""

    operation: str
    method: str
    endpoint: str
    path: str
    path_params: tuple[tuple[str, str], ...] = ()
    query: tuple[tuple[str, str], ...] = ()
    headers: tuple[tuple[str, str], ...] = ()
    body: bytes | None = None
    next_link: str | None = None
    retryable: bool = False

    @property
    def url(self) -> str:
        if self.next_link is not None:
            return self.next_link
        url = self.endpoint.rstrip("/") + self.path
        if self.query:
            url += "?" + "&".join(
                f"{quote(name, safe='$')}={quote(value, safe='')}"
                for name, value in self.query
            )
        return url

    def with_query(self, name: str, value: Any) -> "OperationDescriptor":
        """Returns a copy with `name` set to `value`, keeping the position of an existing entry."""
        value = to_wire_string(value)
        query = list(self.query)
        for index, (existing, _) in enumerate(query):
            if existing == name:
                query[index] = (name, value)
                break
        else:
            query.append((name, value))
        return replace(self, query=tuple(query))

    def with_header(self, name: str, value: str) -> "OperationDescriptor":
        headers = [
            (existing, existing_value)
            for existing, existing_value in self.headers
            if existing.lower() != name.lower()
        ]
        headers.append((name, value))
        return replace(self, headers=tuple(headers))

    def follow_link(self, link: str) -> "OperationDescriptor":
        """Returns a GET descriptor for a server-provided next page link, used verbatim."""
        if not httpx.URL(link).is_absolute_url:
            link = urljoin(self.endpoint.rstrip("/") + "/", link)
        headers = tuple(
            (name, value)
            for name, value in self.headers
            if name.lower() != "content-type"
        )
        return replace(self, method="GET", body=None, headers=headers, next_link=link)


def to_wire_string(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, ExtensibleEnum):
        return value.to_wire()
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return ",".join(to_wire_string(item) for item in value)
    return str(value)


class RequestBuilder:
    """
    Assembles `OperationDescriptor`s from typed call parameters.

    Validation is local and synchronous: every argument problem raises
    `InvalidArgument` before anything is sent.
    """

    def __init__(
        self,
        endpoint: str,
        api_version: str | None = None,
        default_headers: Mapping[str, str] | None = None,
    ) -> None:
        if not endpoint:
            raise InvalidArgument("endpoint must not be empty")
        url = httpx.URL(endpoint)
        if url.scheme not in ("http", "https") or not url.host:
            raise InvalidArgument(f"endpoint must be an absolute http(s) url: {endpoint}")
        self.endpoint = endpoint.rstrip("/")
        self.api_version = api_version
        self.default_headers = dict(default_headers or {"Accept": JSON_CONTENT_TYPE})

    def build(
        self,
        spec: "OperationSpec",
        path_params: Mapping[str, Any] | None = None,
        query: Mapping[str, Any] | None = None,
        headers: Mapping[str, Any] | None = None,
        body: Model | None = None,
    ) -> OperationDescriptor:
        escaped_params = self._path_params(spec, path_params or {})
        path = PATH_PARAMETER_PATTERN.sub(
            lambda match: dict(escaped_params)[match.group(1)], spec.path
        )
        request_headers = self._headers(spec, headers or {})
        content = self._body(spec, body)
        if content is not None:
            request_headers.append(("Content-Type", spec.content_type))

        return OperationDescriptor(
            operation=spec.name,
            method=spec.method.upper(),
            endpoint=self.endpoint,
            path=path,
            path_params=escaped_params,
            query=self._query(spec, query or {}),
            headers=tuple(request_headers),
            body=content,
            retryable=spec.retryable,
        )

    def _path_params(
        self, spec: "OperationSpec", params: Mapping[str, Any]
    ) -> tuple[tuple[str, str], ...]:
        unknown = set(params) - set(spec.path_params)
        if unknown:
            raise InvalidArgument(
                f"Unknown path parameters: {sorted(unknown)}", operation=spec.name
            )
        escaped = []
        for name in spec.path_params:
            value = params.get(name)
            if value is None:
                raise InvalidArgument(f"{name} must not be None", operation=spec.name)
            value = to_wire_string(value)
            if not value:
                raise InvalidArgument(f"{name} must not be empty", operation=spec.name)
            escaped.append((name, quote(value, safe="")))
        return tuple(escaped)

    def _query(
        self, spec: "OperationSpec", params: Mapping[str, Any]
    ) -> tuple[tuple[str, str], ...]:
        unknown = set(params) - set(spec.query_params)
        if unknown:
            raise InvalidArgument(
                f"Unknown query parameters: {sorted(unknown)}", operation=spec.name
            )
        query: list[tuple[str, str]] = []
        if spec.versioned:
            if not self.api_version:
                raise InvalidArgument(
                    "api_version is required for this operation", operation=spec.name
                )
            query.append((API_VERSION_PARAMETER, self.api_version))
        for name in spec.query_params:
            value = params.get(name)
            if value is not None:
                query.append((name, to_wire_string(value)))
        return tuple(query)

    def _headers(
        self, spec: "OperationSpec", params: Mapping[str, Any]
    ) -> list[tuple[str, str]]:
        headers = list(self.default_headers.items())
        for name, value in params.items():
            if value is None:
                continue
            if not isinstance(name, str) or not name:
                raise InvalidArgument(
                    f"Invalid header name: {name!r}", operation=spec.name
                )
            headers.append((name, to_wire_string(value)))
        return headers

    def _body(self, spec: "OperationSpec", body: Model | None) -> bytes | None:
        if spec.body_type is None:
            if body is not None:
                raise InvalidArgument(
                    "This operation does not accept a body", operation=spec.name
                )
            return None
        if body is None:
            if spec.body_required:
                raise InvalidArgument("body must not be None", operation=spec.name)
            return None
        if not isinstance(body, spec.body_type):
            raise InvalidArgument(
                f"body must be a {spec.body_type.__name__}, got {type(body).__name__}",
                operation=spec.name,
            )
        payload = body.to_wire(include_read_only=False)
        return json.dumps(payload, separators=(",", ":")).encode("utf-8")
