import pytest

from typed_rest.exceptions.clients import InvalidArgument
from typed_rest.exceptions.models import InvalidFieldValue
from typed_rest.models import ExtensibleEnum


class SkuConversionStatus(ExtensibleEnum):
    IN_PROGRESS = "InProgress"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


class OtherStatus(ExtensibleEnum):
    SUCCEEDED = "Succeeded"


def test_known_values_are_instances() -> None:
    assert isinstance(SkuConversionStatus.SUCCEEDED, SkuConversionStatus)
    assert SkuConversionStatus.values() == (
        SkuConversionStatus.IN_PROGRESS,
        SkuConversionStatus.SUCCEEDED,
        SkuConversionStatus.FAILED,
    )


def test_equality_ignores_case() -> None:
    assert SkuConversionStatus("succeeded") == SkuConversionStatus.SUCCEEDED
    assert hash(SkuConversionStatus("inprogress")) == hash(
        SkuConversionStatus.IN_PROGRESS
    )
    assert len({SkuConversionStatus("failed"), SkuConversionStatus.FAILED}) == 1


def test_different_enum_types_are_not_equal() -> None:
    assert SkuConversionStatus.SUCCEEDED != OtherStatus.SUCCEEDED


def test_plain_strings_are_not_equal_to_members() -> None:
    assert SkuConversionStatus.SUCCEEDED != "Succeeded"
    assert SkuConversionStatus.SUCCEEDED.value == "Succeeded"
    assert SkuConversionStatus.SUCCEEDED not in {"Succeeded"}
    assert {SkuConversionStatus.SUCCEEDED: 1}.get("Succeeded") is None


def test_unknown_values_round_trip_unchanged() -> None:
    status = SkuConversionStatus.from_wire("RollingBack")

    assert status.is_known is False
    assert status.to_wire() == "RollingBack"
    assert str(status) == "RollingBack"


def test_original_spelling_is_kept() -> None:
    assert SkuConversionStatus.from_wire("succeeded").to_wire() == "succeeded"
    assert SkuConversionStatus("succeeded").is_known is True


def test_none_is_rejected() -> None:
    with pytest.raises(InvalidArgument):
        SkuConversionStatus(None)  # type: ignore[arg-type]


def test_non_string_wire_value_is_rejected() -> None:
    with pytest.raises(InvalidFieldValue) as exc_info:
        SkuConversionStatus.from_wire(3, path="$.status")

    assert exc_info.value.path == "$.status"
