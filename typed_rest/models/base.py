from typing import Any, ClassVar, Iterable, TypeVar

from typed_rest.exceptions.models import (
    InvalidFieldValue,
    MissingRequiredField,
    UnexpectedNull,
)
from typed_rest.models.fields import ABSENT, Field, Presence, join_path

TModel = TypeVar("TModel", bound="Model")


class Model:
    """
    Base class for wire models.

    Subclasses declare their properties with `Field` class attributes. The
    declaration order is the order properties are written on the wire.

    ```python
    class NameAvailability(Model):
        name_available = Field("nameAvailable", bool)
        reason = Field("reason", UnavailableReason)
        message = Field("message", str, nullable=True)
    ```

    Every field tracks whether it is absent, explicitly null or holds a value so
    that `Model.from_wire(m.to_wire()) == m` for any reachable state. Keys the
    model does not declare are kept in `additional_properties` and written back
    on encode.
    """

    _fields: ClassVar[tuple[Field[Any], ...]] = ()
    _wire_tree: ClassVar[dict[str, Any]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        fields: dict[str, Field[Any]] = {field.name: field for field in cls._fields}
        for name, value in vars(cls).items():
            if isinstance(value, Field):
                fields.pop(name, None)
                fields[name] = value
        cls._fields = tuple(fields.values())
        cls._wire_tree = _declared_tree(cls._fields)

    def __init__(self, **kwargs: Any) -> None:
        self._values: dict[str, Any] = {}
        self.additional_properties: dict[str, Any] = {}
        known = {field.name: field for field in self._fields}
        for name, value in kwargs.items():
            if name not in known:
                raise TypeError(
                    f"{type(self).__name__}.__init__() got an unexpected keyword argument '{name}'"
                )
            setattr(self, name, value)
        for field in self._fields:
            if field.required and not field.read_only and field.name not in kwargs:
                raise MissingRequiredField(field.name)

    @classmethod
    def wire_fields(cls) -> tuple[Field[Any], ...]:
        return cls._fields

    def presence(self, name: str) -> Presence:
        if name not in {field.name for field in self._fields}:
            raise AttributeError(f"{type(self).__name__} has no field '{name}'")
        if name not in self._values:
            return Presence.ABSENT
        if self._values[name] is None:
            return Presence.NULL
        return Presence.VALUE

    def unset(self, name: str) -> None:
        """Returns a field to the absent state."""
        field = getattr(type(self), name)
        if field.required and not field.read_only:
            raise MissingRequiredField(name)
        self._values.pop(name, None)

    @classmethod
    def from_wire(cls: type[TModel], data: Any, path: str = "") -> TModel:
        if not isinstance(data, dict):
            raise InvalidFieldValue(path or "$", f"{cls.__name__} object", data)

        instance = cls.__new__(cls)
        instance._values = {}
        instance.additional_properties = {}
        for field in cls._fields:
            field_path = join_path(path, field.wire_key)
            raw = _read_path(data, field.wire_path, path)
            if raw is ABSENT:
                if field.required:
                    raise MissingRequiredField(field_path)
                continue
            if raw is None:
                if not field.accepts_null:
                    raise UnexpectedNull(field_path)
                instance._values[field.name] = None
                continue
            instance._values[field.name] = field.kind.decode(raw, field_path)

        instance.additional_properties = _unknown_keys(data, cls._wire_tree)
        return instance

    def to_wire(self, include_read_only: bool = True) -> dict[str, Any]:
        """
        Encodes the model. Absent fields are omitted, null fields are written as
        explicit nulls. Request bodies pass `include_read_only=False` so that
        server-populated properties are not sent back.
        """
        result: dict[str, Any] = {}
        for field in self._fields:
            if field.name not in self._values:
                continue
            if field.read_only and not include_read_only:
                continue
            value = self._values[field.name]
            if value is not None:
                value = field.kind.encode(value, field.name, include_read_only)
            target = result
            for segment in field.wire_path[:-1]:
                target = target.setdefault(segment, {})
            target[field.wire_path[-1]] = value
        _merge_missing(result, self.additional_properties)
        return result

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return (
            self._values == other._values  # type: ignore[attr-defined]
            and self.additional_properties == other.additional_properties  # type: ignore[attr-defined]
        )

    def __repr__(self) -> str:
        values = ", ".join(
            f"{field.name}={self._values[field.name]!r}"
            for field in self._fields
            if field.name in self._values
        )
        return f"{type(self).__name__}({values})"


def _read_path(data: dict[str, Any], wire_path: tuple[str, ...], path: str) -> Any:
    current: Any = data
    for depth, segment in enumerate(wire_path):
        if depth:
            parent_path = join_path(path, ".".join(wire_path[:depth]))
            if current is None:
                raise UnexpectedNull(parent_path)
            if not isinstance(current, dict):
                raise InvalidFieldValue(parent_path, "object", current)
        if segment not in current:
            return ABSENT
        current = current[segment]
    return current


def _declared_tree(fields: Iterable[Field[Any]]) -> dict[str, Any]:
    """Nests declared wire paths, leaves are None."""
    tree: dict[str, Any] = {}
    for field in fields:
        node = tree
        for segment in field.wire_path[:-1]:
            child = node.setdefault(segment, {})
            if child is None:
                break
            node = child
        else:
            node[field.wire_path[-1]] = None
    return tree


def _unknown_keys(data: dict[str, Any], tree: dict[str, Any]) -> dict[str, Any]:
    # flattened parents keep their undeclared sub-keys, nested under the parent key
    extra: dict[str, Any] = {}
    for key, value in data.items():
        if key not in tree:
            extra[key] = value
            continue
        subtree = tree[key]
        if subtree is None or not isinstance(value, dict):
            continue
        nested = _unknown_keys(value, subtree)
        if nested or not any(name in value for name in subtree):
            extra[key] = nested
    return extra


def _merge_missing(target: dict[str, Any], extra: dict[str, Any]) -> None:
    for key, value in extra.items():
        if key not in target:
            target[key] = value
        elif isinstance(target[key], dict) and isinstance(value, dict):
            _merge_missing(target[key], value)
