from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from typed_rest.clients.continuation import ContinuationStrategy, NextLinkContinuation
from typed_rest.clients.request_builder import PATH_PARAMETER_PATTERN, JSON_CONTENT_TYPE
from typed_rest.models.base import Model


class StatusAction(str, Enum):
    DECODE = "decode"
    EMPTY = "empty"


@dataclass(frozen=True)
class PagingSpec:
    item_attr: str = "value"
    continuation: ContinuationStrategy = field(default_factory=NextLinkContinuation)


@dataclass(frozen=True)
class OperationSpec:
    """
    Static description of one REST operation.

    `statuses` is the operation's status table: every listed code either decodes
    the body as `response_type` or succeeds without a value. Any other code is a
    failure.
    """

    name: str
    method: str
    path: str
    statuses: Mapping[int, StatusAction] = field(
        default_factory=lambda: {200: StatusAction.DECODE}
    )
    response_type: Any = None
    query_params: tuple[str, ...] = ()
    body_type: type[Model] | None = None
    body_required: bool = False
    content_type: str = JSON_CONTENT_TYPE
    versioned: bool = True
    retryable: bool = False
    paging: PagingSpec | None = None

    @property
    def path_params(self) -> tuple[str, ...]:
        return tuple(PATH_PARAMETER_PATTERN.findall(self.path))

    def __post_init__(self) -> None:
        if not self.statuses:
            raise ValueError(f"Operation {self.name} must declare at least one status")
        if (
            any(action is StatusAction.DECODE for action in self.statuses.values())
            and self.response_type is None
        ):
            raise ValueError(
                f"Operation {self.name} decodes a body but declares no response_type"
            )
        if len(set(self.path_params)) != len(self.path_params):
            raise ValueError(f"Operation {self.name} repeats a path parameter")
