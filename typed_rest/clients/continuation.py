from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

import httpx

if TYPE_CHECKING:
    from typed_rest.clients.envelope import ResponseEnvelope
    from typed_rest.clients.request_builder import OperationDescriptor

CONTINUATION_HEADER = "x-ms-continuation"


class ContinuationStrategy(ABC):
    """Decides how a paged operation finds and requests its next page."""

    def first(self, seed: "OperationDescriptor") -> "OperationDescriptor":
        return seed

    @abstractmethod
    def token_from(
        self, page: Any, envelope: "ResponseEnvelope", items: list[Any]
    ) -> str | None:
        """Returns the continuation token carried by a page, None on the last page."""

    @abstractmethod
    def next_request(
        self, seed: "OperationDescriptor", token: str
    ) -> "OperationDescriptor":
        pass


class NextLinkContinuation(ContinuationStrategy):
    """The page body carries the absolute url of the next page (`nextLink`)."""

    def __init__(self, attr: str = "next_link") -> None:
        self.attr = attr

    def token_from(
        self, page: Any, envelope: "ResponseEnvelope", items: list[Any]
    ) -> str | None:
        return getattr(page, self.attr, None) or None

    def next_request(
        self, seed: "OperationDescriptor", token: str
    ) -> "OperationDescriptor":
        return seed.follow_link(token)


class HeaderContinuation(ContinuationStrategy):
    """
    The token comes back in a response header and is replayed on the seed
    request, either as a query parameter or as the same request header.
    """

    def __init__(
        self, header: str = CONTINUATION_HEADER, query_param: str | None = None
    ) -> None:
        self.header = header
        self.query_param = query_param

    def token_from(
        self, page: Any, envelope: "ResponseEnvelope", items: list[Any]
    ) -> str | None:
        return envelope.headers.get(self.header) or None

    def next_request(
        self, seed: "OperationDescriptor", token: str
    ) -> "OperationDescriptor":
        if self.query_param:
            return seed.with_query(self.query_param, token)
        return seed.with_header(self.header, token)


class SkipTopContinuation(ContinuationStrategy):
    """
    Offset paging for APIs without tokens. The token is the offset of the next
    page; a page shorter than `page_size` is the last one.
    """

    def __init__(
        self, page_size: int = 100, skip_param: str = "$skip", top_param: str = "$top"
    ) -> None:
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self.page_size = page_size
        self.skip_param = skip_param
        self.top_param = top_param

    def first(self, seed: "OperationDescriptor") -> "OperationDescriptor":
        return seed.with_query(self.top_param, self.page_size)

    def token_from(
        self, page: Any, envelope: "ResponseEnvelope", items: list[Any]
    ) -> str | None:
        if len(items) < self.page_size:
            return None
        offset = int(httpx.URL(envelope.url).params.get(self.skip_param, "0"))
        return str(offset + len(items))

    def next_request(
        self, seed: "OperationDescriptor", token: str
    ) -> "OperationDescriptor":
        return self.first(seed).with_query(self.skip_param, token)
