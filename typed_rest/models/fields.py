from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Generic, TypeVar, overload

from dateutil.parser import isoparse

from typed_rest.exceptions.models import (
    InvalidFieldValue,
    MissingRequiredField,
    UnexpectedNull,
)
from typed_rest.models.enums import ExtensibleEnum

if TYPE_CHECKING:
    from typed_rest.models.base import Model

T = TypeVar("T")


class _AbsentType:
    _instance: "_AbsentType | None" = None

    def __new__(cls) -> "_AbsentType":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"

    def __reduce__(self) -> str:
        return "ABSENT"


ABSENT: Any = _AbsentType()


class Presence(str, Enum):
    ABSENT = "absent"
    NULL = "null"
    VALUE = "value"


def join_path(parent: str, child: str | int) -> str:
    if isinstance(child, int):
        return f"{parent}[{child}]"
    return f"{parent}.{child}" if parent else child


class Kind:
    """Converts a single JSON value to and from its python representation."""

    name = "value"

    def decode(self, value: Any, path: str) -> Any:
        raise NotImplementedError

    def encode(self, value: Any, path: str, include_read_only: bool = True) -> Any:
        raise NotImplementedError

    def validate(self, value: Any, path: str) -> Any:
        """Checks a value assigned from python code. Returns the value to store."""
        return value


class ScalarKind(Kind):
    def __init__(self, python_type: type) -> None:
        self.python_type = python_type
        self.name = python_type.__name__

    def _accepts(self, value: Any) -> bool:
        if isinstance(value, bool):
            return self.python_type is bool
        if self.python_type is float:
            return isinstance(value, (int, float))
        return isinstance(value, self.python_type)

    def validate(self, value: Any, path: str) -> Any:
        if not self._accepts(value):
            raise InvalidFieldValue(path, self.name, value)
        return float(value) if self.python_type is float else value

    decode = validate

    def encode(self, value: Any, path: str, include_read_only: bool = True) -> Any:
        return value


class DateTimeKind(Kind):
    name = "ISO-8601 datetime"

    def validate(self, value: Any, path: str) -> Any:
        if not isinstance(value, datetime):
            raise InvalidFieldValue(path, "datetime", value)
        return value

    def decode(self, value: Any, path: str) -> datetime:
        if not isinstance(value, str):
            raise InvalidFieldValue(path, self.name, value)
        try:
            return isoparse(value)
        except ValueError as e:
            raise InvalidFieldValue(path, self.name, value) from e

    def encode(
        self, value: datetime, path: str, include_read_only: bool = True
    ) -> str:
        return value.isoformat()


class DateKind(DateTimeKind):
    name = "ISO-8601 date"

    def validate(self, value: Any, path: str) -> Any:
        if not isinstance(value, date) or isinstance(value, datetime):
            raise InvalidFieldValue(path, "date", value)
        return value

    def decode(self, value: Any, path: str) -> date:  # type: ignore[override]
        return super().decode(value, path).date()


class AnyKind(Kind):
    """Raw JSON passthrough, used for free-form payloads."""

    name = "json"

    def decode(self, value: Any, path: str) -> Any:
        return value

    def encode(self, value: Any, path: str, include_read_only: bool = True) -> Any:
        return value


class EnumKind(Kind):
    def __init__(self, enum_type: type[ExtensibleEnum]) -> None:
        self.enum_type = enum_type
        self.name = enum_type.__name__

    def validate(self, value: Any, path: str) -> Any:
        if isinstance(value, self.enum_type):
            return value
        if isinstance(value, str):
            return self.enum_type(value)
        raise InvalidFieldValue(path, self.name, value)

    def decode(self, value: Any, path: str) -> ExtensibleEnum:
        return self.enum_type.from_wire(value, path)

    def encode(
        self, value: ExtensibleEnum, path: str, include_read_only: bool = True
    ) -> str:
        return value.to_wire()


class ModelKind(Kind):
    def __init__(self, model_type: type["Model"]) -> None:
        self.model_type = model_type
        self.name = model_type.__name__

    def validate(self, value: Any, path: str) -> Any:
        if not isinstance(value, self.model_type):
            raise InvalidFieldValue(path, self.name, value)
        return value

    def decode(self, value: Any, path: str) -> "Model":
        return self.model_type.from_wire(value, path=path)

    def encode(
        self, value: "Model", path: str, include_read_only: bool = True
    ) -> dict[str, Any]:
        return value.to_wire(include_read_only=include_read_only)


class ListOf(Kind):
    def __init__(self, item: Any, nullable_items: bool = False) -> None:
        self.item = resolve_kind(item)
        self.nullable_items = nullable_items
        self.name = f"list[{self.item.name}]"

    def _each(
        self, values: Any, path: str, convert: Callable[[Any, str], Any]
    ) -> list[Any]:
        if not isinstance(values, (list, tuple)):
            raise InvalidFieldValue(path, self.name, values)
        result = []
        for index, value in enumerate(values):
            item_path = join_path(path, index)
            if value is None:
                if not self.nullable_items:
                    raise UnexpectedNull(item_path)
                result.append(None)
                continue
            result.append(convert(value, item_path))
        return result

    def validate(self, value: Any, path: str) -> list[Any]:
        return self._each(value, path, self.item.validate)

    def decode(self, value: Any, path: str) -> list[Any]:
        return self._each(value, path, self.item.decode)

    def encode(
        self, value: Any, path: str, include_read_only: bool = True
    ) -> list[Any]:
        return self._each(
            value,
            path,
            lambda item, item_path: self.item.encode(
                item, item_path, include_read_only
            ),
        )


class DictOf(Kind):
    def __init__(self, item: Any, nullable_items: bool = False) -> None:
        self.item = resolve_kind(item)
        self.nullable_items = nullable_items
        self.name = f"dict[str, {self.item.name}]"

    def _each(
        self, values: Any, path: str, convert: Callable[[Any, str], Any]
    ) -> dict[str, Any]:
        if not isinstance(values, dict):
            raise InvalidFieldValue(path, self.name, values)
        result = {}
        for key, value in values.items():
            item_path = join_path(path, key)
            if not isinstance(key, str):
                raise InvalidFieldValue(item_path, "string key", key)
            if value is None:
                if not self.nullable_items:
                    raise UnexpectedNull(item_path)
                result[key] = None
                continue
            result[key] = convert(value, item_path)
        return result

    def validate(self, value: Any, path: str) -> dict[str, Any]:
        return self._each(value, path, self.item.validate)

    def decode(self, value: Any, path: str) -> dict[str, Any]:
        return self._each(value, path, self.item.decode)

    def encode(
        self, value: Any, path: str, include_read_only: bool = True
    ) -> dict[str, Any]:
        return self._each(
            value,
            path,
            lambda item, item_path: self.item.encode(
                item, item_path, include_read_only
            ),
        )


def resolve_kind(kind: Any) -> Kind:
    from typed_rest.models.base import Model

    if isinstance(kind, Kind):
        return kind
    if kind is Any or kind is None:
        return AnyKind()
    if isinstance(kind, type):
        if issubclass(kind, Model):
            return ModelKind(kind)
        if issubclass(kind, ExtensibleEnum):
            return EnumKind(kind)
        if issubclass(kind, datetime):
            return DateTimeKind()
        if issubclass(kind, date):
            return DateKind()
        if kind in (str, int, float, bool):
            return ScalarKind(kind)
    raise TypeError(f"Unsupported field kind: {kind!r}")


class Field(Generic[T]):
    """
    Declares one property of a `Model`.

    `wire_key` is the JSON key, or a dotted path for properties the service nests
    inside a sub-object (``"properties.provisioningState"``). A field can be
    absent, null or hold a value. Only optional nullable fields may be null;
    required fields must always carry a value once decoded.
    """

    def __init__(
        self,
        wire_key: str,
        kind: Any = str,
        *,
        required: bool = False,
        nullable: bool = False,
        read_only: bool = False,
    ) -> None:
        if not wire_key:
            raise ValueError("wire_key must not be empty")
        self.wire_key = wire_key
        self.wire_path = tuple(wire_key.split("."))
        self._kind_spec = kind
        self._kind: Kind | None = None
        self.required = required
        self.nullable = nullable
        self.read_only = read_only
        self.name = ""

    @property
    def kind(self) -> Kind:
        # resolved lazily so models can reference classes declared later in a module
        if self._kind is None:
            self._kind = resolve_kind(self._kind_spec)
        return self._kind

    @property
    def accepts_null(self) -> bool:
        return self.nullable and not self.required

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    @overload
    def __get__(self, instance: None, owner: type) -> "Field[T]":
        ...

    @overload
    def __get__(self, instance: object, owner: type) -> T | None:
        ...

    def __get__(self, instance: Any, owner: type) -> Any:
        if instance is None:
            return self
        value = instance._values.get(self.name, ABSENT)
        return None if value is ABSENT else value

    def __set__(self, instance: Any, value: Any) -> None:
        checked = self.check(value, self.name)
        if checked is ABSENT:
            instance._values.pop(self.name, None)
        else:
            instance._values[self.name] = checked

    def __delete__(self, instance: Any) -> None:
        instance._values.pop(self.name, None)

    def check(self, value: Any, path: str) -> Any:
        if value is ABSENT:
            if self.required and not self.read_only:
                raise MissingRequiredField(path)
            return ABSENT
        if value is None:
            if not self.accepts_null:
                raise UnexpectedNull(path)
            return None
        return self.kind.validate(value, path)

    def __repr__(self) -> str:
        return f"Field({self.wire_key!r}, {self.kind.name})"
