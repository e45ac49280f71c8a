from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, NoReturn, Protocol, Sequence, TypeVar

from upload_pipeline.errors import EmptyInputError, RecordFormatError
from upload_pipeline.messages import DEFAULT_CATALOG, Message, MessageCatalog
from upload_pipeline.parsing.schema import FormSchema
from upload_pipeline.parsing.types import Record, ValidationOutcome

T = TypeVar("T")


class ValidatingStrategy(Protocol[T]):
    """
    Per use case validation policy consumed by the validation driver.

    - `validate_record`: validate/convert one record. Ordinary validation
      failures are encoded in the outcome, never raised.
    - `handle_invalid_record`: turn an invalid outcome into the messages to keep.
    - `handle_invalid_format_record`: exactly one message for an undecodable record.
    - `handle_empty_input`: called once when the upload yielded nothing; expected to raise.
    """
    def validate_record(self, record: Record) -> ValidationOutcome[T]: ...

    def handle_invalid_record(self, record: Record, outcome: ValidationOutcome[T]) -> Sequence[Message]: ...

    def handle_invalid_format_record(self, error: RecordFormatError) -> Message: ...

    def handle_empty_input(self, identifier: str) -> None: ...


@dataclass(frozen=True, slots=True)
class ErrorMessageIds:
    """Message ids used by `BasicValidatingStrategy`."""
    on_format_error: str        # args: record number
    on_validation_error: str    # args: record number, original message text
    on_empty_input: str         # args: upload identifier (file name)


class BasicValidatingStrategy(Generic[T]):
    """
    Typical strategy: validate with a `FormSchema` profile and replace every
    message with the caller's message ids.
    """

    def __init__(
        self,
        form: FormSchema[T],
        validate_for: str,
        message_ids: ErrorMessageIds,
        *,
        catalog: MessageCatalog = DEFAULT_CATALOG,
    ) -> None:
        self.form = form
        self.validate_for = validate_for
        self.message_ids = message_ids
        self.catalog = catalog

    def validate_record(self, record: Record) -> ValidationOutcome[T]:
        return self.form.validate(record, validate_for=self.validate_for, catalog=self.catalog)

    def handle_invalid_record(self, record: Record, outcome: ValidationOutcome[T]) -> list[Message]:
        # one rewritten message per original, original text kept as an argument
        return [
            self.catalog.error(self.message_ids.on_validation_error, record.record_number, m.format_message())
            for m in outcome.messages
        ]

    def handle_invalid_format_record(self, error: RecordFormatError) -> Message:
        return self.catalog.error(self.message_ids.on_format_error, error.record_number)

    def handle_empty_input(self, identifier: str) -> NoReturn:
        raise EmptyInputError(self.catalog.error(self.message_ids.on_empty_input, identifier))
