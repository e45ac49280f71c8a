from __future__ import annotations

from typing import Iterable

from upload_pipeline.messages import Message


class ApplicationError(Exception):
    """
    A user facing failure made of one or more `Message`s.

    `str()` joins the message texts in order, so line ordering of the
    messages is preserved in whatever gets printed.
    """

    def __init__(self, messages: Message | Iterable[Message]) -> None:
        if isinstance(messages, Message):
            messages = (messages,)
        self.messages: tuple[Message, ...] = tuple(messages)
        super().__init__(" ".join(m.text for m in self.messages))


class AggregateValidationError(ApplicationError):
    """Valid objects were requested from a result that holds errors."""


class EmptyInputError(ApplicationError):
    """The upload yielded neither valid records nor errors."""


class RecordFormatError(Exception):
    """A record could not be decoded into field values."""

    def __init__(self, record_number: int, detail: str, *, field_name: str | None = None) -> None:
        self.record_number = record_number
        self.field_name = field_name
        self.detail = detail
        super().__init__(f"record {record_number}: {detail}")


class SourceIOError(RuntimeError):
    """Reading from a record source failed irrecoverably; the whole run is aborted."""


class LayoutError(RuntimeError):
    """A layout definition could not be found or applied."""
