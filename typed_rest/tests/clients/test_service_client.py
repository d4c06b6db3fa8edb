import httpx
import pytest

from typed_rest.clients.auth import StaticTokenCredential
from typed_rest.exceptions.clients import (
    InvalidArgument,
    MalformedResponse,
    OperationCancelled,
    UnhandledStatus,
)
from typed_rest.helpers.cancellation import CancellationToken
from typed_rest.tests.conftest import (
    API_VERSION,
    ENDPOINT,
    GET_WIDGET,
    RecordingHandler,
    Widget,
    list_widgets_spec,
    make_client,
)


class TestServiceClient:
    def test_send_operation(self) -> None:
        handler = RecordingHandler([httpx.Response(200, json={"name": "w1", "size": 3})])

        with make_client(handler) as client:
            response = client.send_operation(
                GET_WIDGET, path_params={"widgetName": "w1"}
            )

        assert response.value == Widget(name="w1", size=3)
        assert str(handler.requests[0].url) == (
            f"{ENDPOINT}/widgets/w1?api-version={API_VERSION}"
        )

    def test_invalid_arguments_fail_before_sending(self) -> None:
        handler = RecordingHandler([])
        client = make_client(handler)

        with pytest.raises(InvalidArgument):
            client.send_operation(GET_WIDGET, path_params={})
        with pytest.raises(InvalidArgument):
            client.list_operation(list_widgets_spec(), query={"color": "red"})
        assert handler.calls == 0

    def test_retries_then_fails_with_last_status(self) -> None:
        handler = RecordingHandler(
            [httpx.Response(503, json={"message": "busy"})], repeat_last=True
        )

        with pytest.raises(UnhandledStatus) as exc_info:
            make_client(handler).send_operation(
                GET_WIDGET, path_params={"widgetName": "w1"}
            )

        assert exc_info.value.status_code == 503
        assert exc_info.value.message == "busy"
        assert handler.calls == 4

    def test_malformed_body(self) -> None:
        handler = RecordingHandler([httpx.Response(200, json={"size": 3})])

        with pytest.raises(MalformedResponse):
            make_client(handler).send_operation(
                GET_WIDGET, path_params={"widgetName": "w1"}
            )

    def test_credential_scopes_default_to_endpoint(self) -> None:
        handler = RecordingHandler([httpx.Response(200, json={"name": "w1"})])
        client = make_client(handler, credential=StaticTokenCredential("abc"))

        client.send_operation(GET_WIDGET, path_params={"widgetName": "w1"})

        assert handler.requests[0].headers["Authorization"] == "Bearer abc"

    def test_cancelled_call(self) -> None:
        handler = RecordingHandler([])
        token = CancellationToken()
        token.cancel("shutting down")

        with pytest.raises(OperationCancelled) as exc_info:
            make_client(handler).send_operation(
                GET_WIDGET, path_params={"widgetName": "w1"}, cancellation=token
            )

        assert "shutting down" in str(exc_info.value)
        assert exc_info.value.operation == "Widgets.Get"

    @pytest.mark.asyncio
    async def test_asend_operation(self) -> None:
        handler = RecordingHandler([httpx.Response(200, json={"name": "w1"})])

        async with make_client(handler) as client:
            response = await client.asend_operation(
                GET_WIDGET, path_params={"widgetName": "w1"}
            )

        assert response.value.name == "w1"
        assert response.envelope.client_request_id is not None
