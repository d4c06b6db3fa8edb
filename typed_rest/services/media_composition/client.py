from typing import Any, Mapping

from typed_rest.clients.auth import Credential
from typed_rest.clients.envelope import Response
from typed_rest.clients.operation import OperationSpec, PagingSpec, StatusAction
from typed_rest.clients.pager import AsyncPager, Pager
from typed_rest.clients.service_client import ServiceClient
from typed_rest.helpers.cancellation import CancellationToken
from typed_rest.services.media_composition.models import (
    CompositionStreamState,
    MediaCompositionBody,
    MediaCompositionLayout,
    MediaCompositionList,
    MediaInput,
    MediaOutput,
)

DEFAULT_API_VERSION = "2022-07-16-preview1"
COMPOSITION_PATH = "/mediaCompositions/{mediaCompositionId}"

GET_OPERATION = OperationSpec(
    name="MediaComposition.Get",
    method="GET",
    path=COMPOSITION_PATH,
    response_type=MediaCompositionBody,
)
CREATE_OPERATION = OperationSpec(
    name="MediaComposition.Create",
    method="PUT",
    path=COMPOSITION_PATH,
    response_type=MediaCompositionBody,
    body_type=MediaCompositionBody,
    body_required=True,
)
UPDATE_OPERATION = OperationSpec(
    name="MediaComposition.Update",
    method="PATCH",
    path=COMPOSITION_PATH,
    response_type=MediaCompositionBody,
    body_type=MediaCompositionBody,
    body_required=True,
)
DELETE_OPERATION = OperationSpec(
    name="MediaComposition.Delete",
    method="DELETE",
    path=COMPOSITION_PATH,
    statuses={204: StatusAction.EMPTY},
)
START_OPERATION = OperationSpec(
    name="MediaComposition.Start",
    method="POST",
    path=COMPOSITION_PATH + "/:start",
    response_type=CompositionStreamState,
)
STOP_OPERATION = OperationSpec(
    name="MediaComposition.Stop",
    method="POST",
    path=COMPOSITION_PATH + "/:stop",
    response_type=CompositionStreamState,
)
LIST_OPERATION = OperationSpec(
    name="MediaComposition.List",
    method="GET",
    path="/mediaCompositions",
    response_type=MediaCompositionList,
    paging=PagingSpec(),
)


def _composition_body(
    id: str | None,
    layout: MediaCompositionLayout | None,
    inputs: Mapping[str, MediaInput] | None,
    outputs: Mapping[str, MediaOutput] | None,
    stream_state: CompositionStreamState | str | None,
) -> MediaCompositionBody:
    # unset arguments stay absent on the wire
    values: dict[str, Any] = {
        "id": id,
        "layout": layout,
        "inputs": dict(inputs) if inputs is not None else None,
        "outputs": dict(outputs) if outputs is not None else None,
        "stream_state": stream_state,
    }
    return MediaCompositionBody(
        **{name: value for name, value in values.items() if value is not None}
    )


class _MediaCompositionBase(ServiceClient):
    def __init__(
        self,
        endpoint: str,
        credential: Credential | None = None,
        *,
        api_version: str | None = DEFAULT_API_VERSION,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            endpoint, credential, api_version=api_version or DEFAULT_API_VERSION, **kwargs
        )

    @staticmethod
    def _id_param(media_composition_id: str) -> dict[str, str]:
        return {"mediaCompositionId": media_composition_id}


class MediaCompositionClient(_MediaCompositionBase):
    """
    Client for the media composition service.

    ```python
    with MediaCompositionClient(endpoint, credential) as client:
        composition = client.create("composition-1", layout=layout, inputs=inputs)
        client.start("composition-1")
    ```

    Every method accepts an optional `CancellationToken`; a token created with
    `CancellationToken.with_timeout` bounds the whole call including retries.
    """

    def get(
        self, media_composition_id: str, *, cancellation: CancellationToken | None = None
    ) -> Response[MediaCompositionBody]:
        return self.send_operation(
            GET_OPERATION,
            path_params=self._id_param(media_composition_id),
            cancellation=cancellation,
        )

    def create(
        self,
        media_composition_id: str,
        *,
        id: str | None = None,
        layout: MediaCompositionLayout | None = None,
        inputs: Mapping[str, MediaInput] | None = None,
        outputs: Mapping[str, MediaOutput] | None = None,
        stream_state: CompositionStreamState | str | None = None,
        cancellation: CancellationToken | None = None,
    ) -> Response[MediaCompositionBody]:
        return self.send_operation(
            CREATE_OPERATION,
            path_params=self._id_param(media_composition_id),
            body=_composition_body(id, layout, inputs, outputs, stream_state),
            cancellation=cancellation,
        )

    def update(
        self,
        media_composition_id: str,
        *,
        id: str | None = None,
        layout: MediaCompositionLayout | None = None,
        inputs: Mapping[str, MediaInput] | None = None,
        outputs: Mapping[str, MediaOutput] | None = None,
        stream_state: CompositionStreamState | str | None = None,
        cancellation: CancellationToken | None = None,
    ) -> Response[MediaCompositionBody]:
        return self.send_operation(
            UPDATE_OPERATION,
            path_params=self._id_param(media_composition_id),
            body=_composition_body(id, layout, inputs, outputs, stream_state),
            cancellation=cancellation,
        )

    def delete(
        self, media_composition_id: str, *, cancellation: CancellationToken | None = None
    ) -> Response[None]:
        return self.send_operation(
            DELETE_OPERATION,
            path_params=self._id_param(media_composition_id),
            cancellation=cancellation,
        )

    def start(
        self, media_composition_id: str, *, cancellation: CancellationToken | None = None
    ) -> Response[CompositionStreamState]:
        return self.send_operation(
            START_OPERATION,
            path_params=self._id_param(media_composition_id),
            cancellation=cancellation,
        )

    def stop(
        self, media_composition_id: str, *, cancellation: CancellationToken | None = None
    ) -> Response[CompositionStreamState]:
        return self.send_operation(
            STOP_OPERATION,
            path_params=self._id_param(media_composition_id),
            cancellation=cancellation,
        )

    def list(
        self, *, cancellation: CancellationToken | None = None
    ) -> Pager[MediaCompositionBody]:
        return self.list_operation(LIST_OPERATION, cancellation=cancellation)


class AsyncMediaCompositionClient(_MediaCompositionBase):
    """Asynchronous counterpart of `MediaCompositionClient`."""

    async def get(
        self, media_composition_id: str, *, cancellation: CancellationToken | None = None
    ) -> Response[MediaCompositionBody]:
        return await self.asend_operation(
            GET_OPERATION,
            path_params=self._id_param(media_composition_id),
            cancellation=cancellation,
        )

    async def create(
        self,
        media_composition_id: str,
        *,
        id: str | None = None,
        layout: MediaCompositionLayout | None = None,
        inputs: Mapping[str, MediaInput] | None = None,
        outputs: Mapping[str, MediaOutput] | None = None,
        stream_state: CompositionStreamState | str | None = None,
        cancellation: CancellationToken | None = None,
    ) -> Response[MediaCompositionBody]:
        return await self.asend_operation(
            CREATE_OPERATION,
            path_params=self._id_param(media_composition_id),
            body=_composition_body(id, layout, inputs, outputs, stream_state),
            cancellation=cancellation,
        )

    async def update(
        self,
        media_composition_id: str,
        *,
        id: str | None = None,
        layout: MediaCompositionLayout | None = None,
        inputs: Mapping[str, MediaInput] | None = None,
        outputs: Mapping[str, MediaOutput] | None = None,
        stream_state: CompositionStreamState | str | None = None,
        cancellation: CancellationToken | None = None,
    ) -> Response[MediaCompositionBody]:
        return await self.asend_operation(
            UPDATE_OPERATION,
            path_params=self._id_param(media_composition_id),
            body=_composition_body(id, layout, inputs, outputs, stream_state),
            cancellation=cancellation,
        )

    async def delete(
        self, media_composition_id: str, *, cancellation: CancellationToken | None = None
    ) -> Response[None]:
        return await self.asend_operation(
            DELETE_OPERATION,
            path_params=self._id_param(media_composition_id),
            cancellation=cancellation,
        )

    async def start(
        self, media_composition_id: str, *, cancellation: CancellationToken | None = None
    ) -> Response[CompositionStreamState]:
        return await self.asend_operation(
            START_OPERATION,
            path_params=self._id_param(media_composition_id),
            cancellation=cancellation,
        )

    async def stop(
        self, media_composition_id: str, *, cancellation: CancellationToken | None = None
    ) -> Response[CompositionStreamState]:
        return await self.asend_operation(
            STOP_OPERATION,
            path_params=self._id_param(media_composition_id),
            cancellation=cancellation,
        )

    def list(
        self, *, cancellation: CancellationToken | None = None
    ) -> AsyncPager[MediaCompositionBody]:
        return self.alist_operation(LIST_OPERATION, cancellation=cancellation)
