from typing import Any

from loguru import logger

from typed_rest.clients.envelope import Response, ResponseEnvelope
from typed_rest.clients.operation import OperationSpec, StatusAction
from typed_rest.exceptions.clients import MalformedResponse, UnhandledStatus
from typed_rest.exceptions.models import ModelProjectionError
from typed_rest.models.fields import resolve_kind

DEFAULT_ERROR_MESSAGE = "Service request failed."


def parse_error_body(envelope: ResponseEnvelope) -> tuple[str | None, str | None]:
    """
    Best-effort extraction of `(code, message)` from an error body. Understands the
    `{"error": {"code": ..., "message": ...}}` shape and flat `code` / `message` keys.
    """
    try:
        data = envelope.json()
    except ValueError:
        return None, None
    if not isinstance(data, dict):
        return None, None

    error = data.get("error")
    if isinstance(error, dict):
        data = error
    elif isinstance(error, str) and "message" not in data:
        return None, error

    code = data.get("code") or data.get("Code")
    message = data.get("message") or data.get("Message")
    return (
        str(code) if code is not None else None,
        str(message) if message is not None else None,
    )


class ResponseResolver:
    """
    Turns a `ResponseEnvelope` into either a decoded `Response` or a raised failure,
    according to the operation's status table. Codes that are not in the table are
    always failures.
    """

    def resolve(self, spec: OperationSpec, envelope: ResponseEnvelope) -> Response[Any]:
        action = spec.statuses.get(envelope.status_code)
        if action is None:
            raise self.unhandled_status(spec, envelope)
        if action is StatusAction.EMPTY:
            return Response(value=None, envelope=envelope)
        return Response(value=self.decode(spec, envelope), envelope=envelope)

    def decode(self, spec: OperationSpec, envelope: ResponseEnvelope) -> Any:
        if not envelope.content.strip():
            raise self._malformed(
                spec, envelope, f"Expected a {self._type_name(spec)} body but got none"
            )
        try:
            data = envelope.json()
        except ValueError as e:
            raise self._malformed(
                spec, envelope, f"Response body is not valid JSON: {e}"
            ) from e
        try:
            return resolve_kind(spec.response_type).decode(data, "$")
        except ModelProjectionError as e:
            raise self._malformed(
                spec,
                envelope,
                f"Response body does not match {self._type_name(spec)}: {e}",
            ) from e

    def unhandled_status(
        self, spec: OperationSpec, envelope: ResponseEnvelope
    ) -> UnhandledStatus:
        error_code, message = parse_error_body(envelope)
        message = message or envelope.reason_phrase or DEFAULT_ERROR_MESSAGE
        log_message = (
            f"Request {envelope.method} {envelope.url} failed with status code: "
            f"{envelope.status_code}, Error: {envelope.text}"
        )
        if envelope.request_id:
            logger.bind(request_id=envelope.request_id).error(log_message)
        else:
            logger.error(log_message)
        return UnhandledStatus(
            message,
            envelope=envelope,
            operation=spec.name,
            error_code=error_code,
        )

    @staticmethod
    def _type_name(spec: OperationSpec) -> str:
        return getattr(spec.response_type, "__name__", None) or resolve_kind(
            spec.response_type
        ).name

    @staticmethod
    def _malformed(
        spec: OperationSpec, envelope: ResponseEnvelope, message: str
    ) -> MalformedResponse:
        return MalformedResponse(
            message,
            operation=spec.name,
            status_code=envelope.status_code,
            request_id=envelope.request_id,
            client_request_id=envelope.client_request_id,
        )
