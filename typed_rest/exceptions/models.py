from typing import Any

from typed_rest.exceptions.base import TypedRestException


class ModelProjectionError(TypedRestException):
    """Raised when a value cannot be projected between the wire and a model field."""

    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(f"{path}: {message}")


class MissingRequiredField(ModelProjectionError):
    def __init__(self, path: str):
        super().__init__(path, "required property is missing")


class UnexpectedNull(ModelProjectionError):
    def __init__(self, path: str):
        super().__init__(path, "non-nullable property is null")


class InvalidFieldValue(ModelProjectionError):
    def __init__(self, path: str, expected: str, value: Any):
        self.expected = expected
        super().__init__(
            path, f"expected {expected}, got {type(value).__name__} ({value!r:.80})"
        )
