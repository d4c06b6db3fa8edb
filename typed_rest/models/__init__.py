from typed_rest.models.base import Model
from typed_rest.models.enums import ExtensibleEnum
from typed_rest.models.fields import ABSENT, DictOf, Field, ListOf, Presence

__all__ = [
    "ABSENT",
    "DictOf",
    "ExtensibleEnum",
    "Field",
    "ListOf",
    "Model",
    "Presence",
]
