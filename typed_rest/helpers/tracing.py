import time
from typing import Any, Mapping, Protocol

from loguru import logger


class DiagnosticScope(Protocol):
    def fail(self, error: BaseException) -> None:
        ...

    def dispose(self) -> None:
        ...


class Tracer(Protocol):
    def start_span(
        self, name: str, attributes: Mapping[str, Any] | None = None
    ) -> DiagnosticScope:
        ...


class LoguruScope:
    def __init__(self, name: str, attributes: Mapping[str, Any]) -> None:
        self.name = name
        self.attributes = dict(attributes)
        self.error: BaseException | None = None
        self._started = time.monotonic()
        logger.bind(**self.attributes).debug(f"Started {name}")

    def fail(self, error: BaseException) -> None:
        self.error = error
        logger.bind(**self.attributes).debug(
            f"{self.name} failed: {type(error).__name__} - {error}"
        )

    def dispose(self) -> None:
        elapsed = time.monotonic() - self._started
        outcome = "failed" if self.error is not None else "succeeded"
        logger.bind(**self.attributes).debug(
            f"Finished {self.name} ({outcome}) in {elapsed:.3f}s"
        )


class LoguruTracer:
    """Default tracer, records spans as debug log lines."""

    def start_span(
        self, name: str, attributes: Mapping[str, Any] | None = None
    ) -> LoguruScope:
        return LoguruScope(name, attributes or {})


class SafeScope:
    """
    Wraps a tracer scope so that a misbehaving tracer is logged and otherwise
    ignored. The operation result never depends on tracing.
    """

    def __init__(
        self, tracer: Tracer, name: str, attributes: Mapping[str, Any] | None = None
    ) -> None:
        self.name = name
        self._scope: DiagnosticScope | None = None
        try:
            self._scope = tracer.start_span(name, attributes)
        except Exception as e:
            logger.warning(f"Failed to start diagnostic span {name}: {e!r}")

    def fail(self, error: BaseException) -> None:
        if self._scope is None:
            return
        try:
            self._scope.fail(error)
        except Exception as e:
            logger.warning(f"Failed to record failure on span {self.name}: {e!r}")

    def dispose(self) -> None:
        if self._scope is None:
            return
        try:
            self._scope.dispose()
        except Exception as e:
            logger.warning(f"Failed to close diagnostic span {self.name}: {e!r}")
        finally:
            self._scope = None

    def __enter__(self) -> "SafeScope":
        return self

    def __exit__(self, exc_type: Any, exc: BaseException | None, tb: Any) -> None:
        if exc is not None:
            self.fail(exc)
        self.dispose()
