from typing import TYPE_CHECKING, Any

from typed_rest.exceptions.base import TypedRestException

if TYPE_CHECKING:
    from typed_rest.clients.envelope import ResponseEnvelope


class RestClientError(TypedRestException):
    """Base class for every failure surfaced by an operation call.

    Carries the context needed to root-cause a failure without re-running the
    call: the operation name, the HTTP status (when a response was received)
    and the service / client correlation ids.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        status_code: int | None = None,
        request_id: str | None = None,
        client_request_id: str | None = None,
    ):
        self.message = message
        self.operation = operation
        self.status_code = status_code
        self.request_id = request_id
        self.client_request_id = client_request_id
        super().__init__(message)

    def context(self) -> dict[str, Any]:
        return {
            key: value
            for key, value in (
                ("operation", self.operation),
                ("status_code", self.status_code),
                ("request_id", self.request_id),
                ("client_request_id", self.client_request_id),
            )
            if value is not None
        }

    def __str__(self) -> str:
        context = self.context()
        if not context:
            return self.message
        details = ", ".join(f"{key}={value}" for key, value in context.items())
        return f"{self.message} ({details})"


class InvalidArgument(RestClientError, ValueError):
    pass


class OperationCancelled(RestClientError):
    pass


class TransportFailure(RestClientError):
    pass


class MalformedResponse(RestClientError):
    pass


class UnhandledStatus(RestClientError):
    def __init__(
        self,
        message: str,
        *,
        envelope: "ResponseEnvelope",
        operation: str | None = None,
        error_code: str | None = None,
    ):
        self.envelope = envelope
        self.error_code = error_code
        self.body = envelope.text
        super().__init__(
            message,
            operation=operation,
            status_code=envelope.status_code,
            request_id=envelope.request_id,
            client_request_id=envelope.client_request_id,
        )

    def context(self) -> dict[str, Any]:
        context = super().context()
        if self.error_code:
            context["error_code"] = self.error_code
        return context
