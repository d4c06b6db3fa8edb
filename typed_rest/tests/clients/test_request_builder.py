import json
from datetime import datetime, timezone

import pytest

from typed_rest.clients.operation import OperationSpec, StatusAction
from typed_rest.clients.request_builder import RequestBuilder, to_wire_string
from typed_rest.exceptions.clients import InvalidArgument
from typed_rest.models import Field, Model
from typed_rest.tests.conftest import API_VERSION, ENDPOINT, GET_WIDGET, Widget


class Gadget(Model):
    id = Field("id", str, read_only=True)
    name = Field("name", str, required=True)
    size = Field("size", int)


SEARCH = OperationSpec(
    name="Widgets.Search",
    method="get",
    path="/groups/{groupName}/widgets",
    response_type=Widget,
    query_params=("$filter", "$top", "includeDeleted"),
)
UPSERT = OperationSpec(
    name="Gadgets.Upsert",
    method="PUT",
    path="/gadgets/{gadgetName}",
    response_type=Gadget,
    body_type=Gadget,
    body_required=True,
)
PING = OperationSpec(
    name="Service.Ping",
    method="GET",
    path="/ping",
    statuses={204: StatusAction.EMPTY},
    versioned=False,
)


@pytest.fixture
def builder() -> RequestBuilder:
    return RequestBuilder(ENDPOINT + "/", API_VERSION)


class TestRequestBuilder:
    def test_builds_url_with_api_version_first(self, builder: RequestBuilder) -> None:
        descriptor = builder.build(
            SEARCH,
            path_params={"groupName": "east"},
            query={"includeDeleted": True, "$top": 5},
        )

        assert descriptor.method == "GET"
        assert descriptor.operation == "Widgets.Search"
        assert (
            descriptor.url
            == f"{ENDPOINT}/groups/east/widgets?api-version={API_VERSION}&$top=5&includeDeleted=true"
        )

    def test_path_parameters_are_escaped(self, builder: RequestBuilder) -> None:
        descriptor = builder.build(GET_WIDGET, path_params={"widgetName": "a b/c?d"})

        assert descriptor.path == "/widgets/a%20b%2Fc%3Fd"

    def test_query_values_are_escaped(self, builder: RequestBuilder) -> None:
        descriptor = builder.build(
            SEARCH,
            path_params={"groupName": "east"},
            query={"$filter": "name eq 'a&b'"},
        )

        assert descriptor.url.endswith("&$filter=name%20eq%20%27a%26b%27")

    def test_query_names_are_escaped(self, builder: RequestBuilder) -> None:
        descriptor = builder.build(SEARCH, path_params={"groupName": "east"})

        url = descriptor.with_query("tag name&x=1", "v").url

        assert url.endswith("&tag%20name%26x%3D1=v")
        assert url.split("?")[1].startswith(f"api-version={API_VERSION}")

    def test_none_query_values_are_skipped(self, builder: RequestBuilder) -> None:
        descriptor = builder.build(
            SEARCH, path_params={"groupName": "east"}, query={"$filter": None}
        )

        assert descriptor.query == (("api-version", API_VERSION),)

    @pytest.mark.parametrize("value", [None, ""])
    def test_missing_path_parameter(self, builder: RequestBuilder, value: str) -> None:
        with pytest.raises(InvalidArgument) as exc_info:
            builder.build(GET_WIDGET, path_params={"widgetName": value})

        assert exc_info.value.operation == "Widgets.Get"

    def test_unknown_parameters(self, builder: RequestBuilder) -> None:
        with pytest.raises(InvalidArgument):
            builder.build(GET_WIDGET, path_params={"widgetName": "a", "other": "b"})
        with pytest.raises(InvalidArgument):
            builder.build(
                GET_WIDGET, path_params={"widgetName": "a"}, query={"color": "red"}
            )

    def test_unversioned_operation(self) -> None:
        descriptor = RequestBuilder(ENDPOINT).build(PING)

        assert descriptor.url == f"{ENDPOINT}/ping"

    def test_versioned_operation_requires_api_version(self) -> None:
        with pytest.raises(InvalidArgument):
            RequestBuilder(ENDPOINT).build(GET_WIDGET, path_params={"widgetName": "a"})

    def test_body_is_compact_json_without_read_only_fields(
        self, builder: RequestBuilder
    ) -> None:
        gadget = Gadget.from_wire({"id": "/gadgets/g1", "name": "g1", "size": 3})

        descriptor = builder.build(
            UPSERT, path_params={"gadgetName": "g1"}, body=gadget
        )

        assert descriptor.body == b'{"name":"g1","size":3}'
        assert json.loads(descriptor.body) == {"name": "g1", "size": 3}
        assert ("Content-Type", "application/json") in descriptor.headers

    def test_body_validation(self, builder: RequestBuilder) -> None:
        with pytest.raises(InvalidArgument):
            builder.build(UPSERT, path_params={"gadgetName": "g1"})
        with pytest.raises(InvalidArgument):
            builder.build(
                UPSERT, path_params={"gadgetName": "g1"}, body=Widget(name="w")
            )
        with pytest.raises(InvalidArgument):
            builder.build(
                GET_WIDGET, path_params={"widgetName": "w"}, body=Widget(name="w")
            )

    def test_custom_headers(self, builder: RequestBuilder) -> None:
        descriptor = builder.build(
            GET_WIDGET,
            path_params={"widgetName": "w"},
            headers={"If-Match": "etag-1", "x-ms-skip": None},
        )

        assert ("If-Match", "etag-1") in descriptor.headers
        assert all(name != "x-ms-skip" for name, _ in descriptor.headers)

    @pytest.mark.parametrize("endpoint", ["", "contoso.example.com", "ftp://contoso"])
    def test_invalid_endpoint(self, endpoint: str) -> None:
        with pytest.raises(InvalidArgument):
            RequestBuilder(endpoint, API_VERSION)


class TestOperationDescriptor:
    def test_follow_link_is_a_verbatim_get(self, builder: RequestBuilder) -> None:
        seed = builder.build(UPSERT, path_params={"gadgetName": "g1"}, body=Gadget(name="g1"))
        link = "https://other.example.com/gadgets?$skipToken=a%2Bb&api-version=x"

        follow = seed.follow_link(link)

        assert follow.method == "GET"
        assert follow.body is None
        assert follow.url == link
        assert all(name.lower() != "content-type" for name, _ in follow.headers)

    def test_follow_relative_link(self, builder: RequestBuilder) -> None:
        seed = builder.build(GET_WIDGET, path_params={"widgetName": "w"})

        assert seed.follow_link("/widgets?page=2").url == f"{ENDPOINT}/widgets?page=2"

    def test_with_query_replaces_in_place(self, builder: RequestBuilder) -> None:
        seed = builder.build(SEARCH, path_params={"groupName": "east"}, query={"$top": 5})

        updated = seed.with_query("$top", 10).with_query("$skip", 10)

        assert updated.query == (
            ("api-version", API_VERSION),
            ("$top", "10"),
            ("$skip", "10"),
        )
        assert seed.query == (("api-version", API_VERSION), ("$top", "5"))

    def test_with_header_replaces_case_insensitively(
        self, builder: RequestBuilder
    ) -> None:
        seed = builder.build(GET_WIDGET, path_params={"widgetName": "w"})

        updated = seed.with_header("accept", "text/plain")

        assert ("accept", "text/plain") in updated.headers
        assert ("Accept", "application/json") not in updated.headers


def test_to_wire_string() -> None:
    assert to_wire_string(False) == "false"
    assert to_wire_string(["a", 1, True]) == "a,1,true"
    assert (
        to_wire_string(datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc))
        == "2024-01-02T03:04:05+00:00"
    )
