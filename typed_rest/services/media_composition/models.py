from typed_rest.models import DictOf, ExtensibleEnum, Field, ListOf, Model


class CompositionStreamState(ExtensibleEnum):
    NOT_STARTED = "notStarted"
    RUNNING = "running"
    STOPPED = "stopped"


class LayoutType(ExtensibleEnum):
    GRID = "grid"
    AUTO_GRID = "autoGrid"
    PRESENTATION = "presentation"
    PRESENTER = "presenter"
    CUSTOM = "custom"


class MediaInputType(ExtensibleEnum):
    PARTICIPANT = "participant"
    GROUP_CALL = "groupCall"
    ROOM = "room"
    TEAMS_MEETING = "teamsMeeting"
    RTMP = "rtmp"
    SRT = "srt"


class MediaOutputType(ExtensibleEnum):
    GROUP_CALL = "groupCall"
    ROOM = "room"
    TEAMS_MEETING = "teamsMeeting"
    RTMP = "rtmp"
    SRT = "srt"


class LayoutResolution(Model):
    width = Field("width", int, required=True)
    height = Field("height", int, required=True)


class MediaCompositionLayout(Model):
    kind = Field("kind", LayoutType, required=True)
    resolution = Field("resolution", LayoutResolution)
    placeholder_image_uri = Field("placeholderImageUri", str, nullable=True)
    # grid layouts only
    rows = Field("rows", int)
    columns = Field("columns", int)
    input_ids = Field("inputIds", ListOf(ListOf(str)))


class MediaInput(Model):
    kind = Field("kind", MediaInputType, required=True)
    id = Field("id", str)
    call_id = Field("call", str)
    stream_url = Field("streamUrl", str)
    placeholder_image_uri = Field("placeholderImageUri", str, nullable=True)


class MediaOutput(Model):
    kind = Field("kind", MediaOutputType, required=True)
    id = Field("id", str)
    stream_url = Field("streamUrl", str)


class MediaCompositionBody(Model):
    """A media composition: the layout plus the named inputs and outputs it mixes."""

    id = Field("id", str)
    layout = Field("layout", MediaCompositionLayout)
    inputs = Field("inputs", DictOf(MediaInput))
    outputs = Field("outputs", DictOf(MediaOutput))
    stream_state = Field("streamState", CompositionStreamState)


class MediaCompositionList(Model):
    value = Field("value", ListOf(MediaCompositionBody), required=True)
    next_link = Field("nextLink", str, nullable=True)
