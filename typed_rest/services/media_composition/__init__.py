from typed_rest.services.media_composition.client import (
    AsyncMediaCompositionClient,
    MediaCompositionClient,
)
from typed_rest.services.media_composition.models import (
    CompositionStreamState,
    LayoutResolution,
    LayoutType,
    MediaCompositionBody,
    MediaCompositionLayout,
    MediaCompositionList,
    MediaInput,
    MediaInputType,
    MediaOutput,
    MediaOutputType,
)

__all__ = [
    "AsyncMediaCompositionClient",
    "CompositionStreamState",
    "LayoutResolution",
    "LayoutType",
    "MediaCompositionBody",
    "MediaCompositionClient",
    "MediaCompositionLayout",
    "MediaCompositionList",
    "MediaInput",
    "MediaInputType",
    "MediaOutput",
    "MediaOutputType",
]
