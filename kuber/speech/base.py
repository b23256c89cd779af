from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence

ResultHandler = Callable[[Sequence[str]], None]
EndHandler = Callable[[], None]
ErrorHandler = Callable[[BaseException], None]


class CaptureDevice(ABC):
    """A streaming recognizer that reports hypotheses through callbacks.

    Devices re-report their full hypothesis (every segment since their own
    ``start``) on each result event, and signal ``on_end`` whenever capture
    stops, whether that was requested or not. A capture that dies on a
    device fault signals ``on_error`` instead, so it is not mistaken for a
    timeout and restarted.
    """

    continuous: bool = True
    interim_results: bool = True
    language: str = "en-IN"
    # Devices that end on their own after a fixed duration.
    restarts_on_timeout: bool = False

    def __init__(self) -> None:
        self.on_result: ResultHandler | None = None
        self.on_end: EndHandler | None = None
        self.on_error: ErrorHandler | None = None

    def bind(self, on_result: ResultHandler, on_end: EndHandler, on_error: ErrorHandler | None = None) -> None:
        self.on_result = on_result
        self.on_end = on_end
        self.on_error = on_error

    def emit_result(self, segments: Sequence[str]) -> None:
        if self.on_result is not None:
            self.on_result(segments)

    def emit_end(self) -> None:
        if self.on_end is not None:
            self.on_end()

    def emit_error(self, exc: BaseException) -> None:
        if self.on_error is not None:
            self.on_error(exc)
        else:
            self.emit_end()

    @abstractmethod
    def start(self) -> None:
        """Begin capturing."""

    @abstractmethod
    def stop(self) -> None:
        """Stop capturing. Hypotheses not yet reported are dropped."""

    @abstractmethod
    def abort(self) -> None:
        """Stop capturing because the session was cancelled."""


__all__ = ["CaptureDevice", "ResultHandler", "EndHandler", "ErrorHandler"]
