from typing import Any, ClassVar, TypeVar

from typed_rest.exceptions.clients import InvalidArgument
from typed_rest.exceptions.models import InvalidFieldValue

TEnum = TypeVar("TEnum", bound="ExtensibleEnum")


class ExtensibleEnum:
    """
    A string-backed value with a set of well known constants.

    Services add new values over time, so any string is accepted and round-trips
    unchanged. Known values are declared as upper-case string class attributes and
    are turned into instances of the subclass when it is created:

    ```python
    class SkuConversionStatus(ExtensibleEnum):
        IN_PROGRESS = "InProgress"
        SUCCEEDED = "Succeeded"
        FAILED = "Failed"

    SkuConversionStatus("succeeded") == SkuConversionStatus.SUCCEEDED  # True
    ```

    Equality and hashing ignore case. Instances only compare equal to instances of
    the same enum; compare `.value` to match a plain string.
    """

    __slots__ = ("_value",)

    _known: ClassVar[dict[str, "ExtensibleEnum"]] = {}

    def __init__(self, value: str) -> None:
        if value is None:
            raise InvalidArgument(f"{type(self).__name__} value must not be None")
        if not isinstance(value, str):
            raise InvalidArgument(
                f"{type(self).__name__} value must be a string, got {type(value).__name__}"
            )
        self._value = value

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        known: dict[str, ExtensibleEnum] = {}
        for name, value in list(vars(cls).items()):
            if name.isupper() and isinstance(value, str):
                member = cls(value)
                setattr(cls, name, member)
                known[name] = member
        cls._known = known

    @property
    def value(self) -> str:
        return self._value

    @property
    def is_known(self) -> bool:
        return any(member == self for member in self._known.values())

    @classmethod
    def values(cls: type[TEnum]) -> tuple[TEnum, ...]:
        return tuple(cls._known.values())  # type: ignore[arg-type]

    @classmethod
    def from_wire(cls: type[TEnum], value: Any, path: str = "$") -> TEnum:
        if not isinstance(value, str):
            raise InvalidFieldValue(path, "string", value)
        return cls(value)

    def to_wire(self) -> str:
        return self._value

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ExtensibleEnum) and type(other) is type(self):
            return self._value.casefold() == other._value.casefold()
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._value.casefold())

    def __str__(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._value!r})"
