from __future__ import annotations

import logging
from typing import Any, Protocol


class EventSink(Protocol):
    """Receives structured diagnostic events (`event` name plus fields)."""
    def emit(self, event: str, **fields: Any) -> None: ...


class LoggingEventSink:
    """
    Forward events to a `logging.Logger` at DEBUG.

    Fields are attached to the log record through `extra` and rendered
    into the message as `key=[value]` pairs.
    """

    def __init__(self, logger: logging.Logger, level: int = logging.DEBUG) -> None:
        self.logger = logger
        self.level = level

    def emit(self, event: str, **fields: Any) -> None:
        if not self.logger.isEnabledFor(self.level):
            return
        rendered = " ".join(f"{k}=[{v}]" for k, v in fields.items())
        self.logger.log(self.level, f"{event}. {rendered}".rstrip(), extra={"event": event, "fields": fields})


class RecordingEventSink:
    """Keeps events in memory, in emission order."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def emit(self, event: str, **fields: Any) -> None:
        self.events.append((event, dict(fields)))

    def names(self) -> list[str]:
        return [e for e, _ in self.events]
