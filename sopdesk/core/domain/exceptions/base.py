"""Root of the SOP engine exception hierarchy.

Every engine error carries a stable ``error_code`` that the HTTP layer maps
to a status and the log formatter emits as a structured field. Errors also
record the frame that raised them, so a log line points at the adapter or
service call that failed rather than at the handler that reported it.
"""

import inspect
import traceback
from dataclasses import dataclass
from types import FrameType
from typing import Any


@dataclass(frozen=True)
class RaiseSite:
    """Frame that constructed an engine error."""

    class_name: str
    method_name: str
    file_name: str
    line_number: int

    @classmethod
    def from_frame(cls, frame: FrameType | None) -> "RaiseSite":
        if frame is None:
            return cls("<unknown>", "<unknown>", "<unknown>", 0)
        owner = frame.f_locals.get("self")
        return cls(
            class_name=type(owner).__name__ if owner is not None else "<module>",
            method_name=frame.f_code.co_name,
            file_name=frame.f_code.co_filename.replace("\\", "/").rsplit("/", 1)[-1],
            line_number=frame.f_lineno,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "class": self.class_name,
            "method": self.method_name,
            "file": self.file_name,
            "line": self.line_number,
        }


def _caller_outside_hierarchy() -> FrameType | None:
    """First frame above the chain of SopDeskError ``__init__`` calls."""
    frame = inspect.currentframe()
    frame = frame.f_back if frame else None
    while frame is not None and frame.f_code.co_name == "__init__":
        if not isinstance(frame.f_locals.get("self"), SopDeskError):
            break
        frame = frame.f_back
    return frame


class SopDeskError(Exception):
    """Base exception for all SOP engine errors.

    Attributes:
        message: Human-readable error message.
        cause: Underlying exception, usually a transport or parse failure.
        extra_context: Key-value pairs identifying what was being worked on
            (page id, request path, database file).
        location: Where the error was constructed.
        stack_trace: Formatted traceback of ``cause`` when raised inside an
            ``except`` block, else None.

    Example:
        try:
            session.get(url)
        except requests.RequestException as e:
            raise SourceUnavailableError(
                "Failed to reach Confluence", cause=e, context={"url": url}
            ) from e
    """

    error_code: str = "SOP_ERR_001"

    def __init__(
        self,
        message: str,
        *,
        cause: Exception | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.extra_context = context or {}
        self.location = RaiseSite.from_frame(_caller_outside_hierarchy())
        self.stack_trace = traceback.format_exc() if cause else None

    def to_dict(self, include_trace: bool = False) -> dict[str, Any]:
        """Structured form used by API error bodies and JSON logs.

        Args:
            include_trace: Include ``stack_trace`` lines (debug mode only).

        Returns:
            Dictionary with ``error`` and ``location`` keys, plus ``context``,
            ``cause`` and ``stack_trace`` when present.
        """
        result: dict[str, Any] = {
            "error": {
                "type": type(self).__name__,
                "code": self.error_code,
                "message": self.message,
            },
            "location": self.location.to_dict(),
        }

        if self.extra_context:
            result["context"] = self.extra_context

        if include_trace and self.stack_trace:
            result["stack_trace"] = [line for line in self.stack_trace.split("\n") if line.strip()]

        if self.cause:
            result["cause"] = {
                "type": type(self.cause).__name__,
                "message": str(self.cause),
            }

        return result
