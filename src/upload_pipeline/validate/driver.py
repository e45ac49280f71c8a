from __future__ import annotations

import logging
from typing import Any, Generic, TypeVar

from upload_pipeline.errors import RecordFormatError, SourceIOError
from upload_pipeline.events import EventSink, LoggingEventSink
from upload_pipeline.ingest.sources import RecordSource
from upload_pipeline.messages import DEFAULT_CATALOG, MessageCatalog
from upload_pipeline.parsing.schema import FormSchema
from upload_pipeline.db.importer import DEFAULT_BATCH_SIZE
from upload_pipeline.validate.result import BulkValidationResult
from upload_pipeline.validate.strategy import BasicValidatingStrategy, ErrorMessageIds, ValidatingStrategy

T = TypeVar("T")

logger = logging.getLogger(__name__)


class BulkValidationDriver(Generic[T]):
    """
    Validate every record of one source with one strategy.

    Per-record failures (format or validation) are recorded in the result and
    never abort the run. An `OSError` from the source aborts it as a
    `SourceIOError`. The source is closed exactly once on every path.
    """

    def __init__(
        self,
        strategy: ValidatingStrategy[T],
        source: RecordSource,
        identifier: str,
        *,
        events: EventSink | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        self.strategy = strategy
        self.source = source
        self.identifier = identifier
        self.events: EventSink = events if events is not None else LoggingEventSink(logger)
        self.result: BulkValidationResult[T] = BulkValidationResult(batch_size)

    def validate_all(self) -> BulkValidationResult[T]:
        try:
            self._validate_all_records()
        except OSError as e:
            raise SourceIOError(f"failed reading records from {self.identifier}: {e}") from e
        finally:
            self.source.close()

        if self.result.is_empty():
            self.events.emit("empty input", identifier=self.identifier)
            # expected to raise, an empty result is returned as-is otherwise
            self.strategy.handle_empty_input(self.identifier)
        return self.result

    def _validate_all_records(self) -> None:
        while self.source.has_next():
            try:
                record = self.source.read_next()
            except RecordFormatError as e:
                self.events.emit(
                    "format error",
                    line=e.record_number,
                    field_name=e.field_name,
                    detail=e.detail,
                )
                self.result.add_error(e.record_number, self.strategy.handle_invalid_format_record(e))
                continue

            outcome = self.strategy.validate_record(record)
            self.events.emit(
                "invoking validation",
                line=record.record_number,
                form=outcome.form_name,
                validate_for=outcome.validate_for,
                record=dict(record.values),
            )
            if outcome.is_valid:
                self.result.add_valid_object(outcome.create_object())
            else:
                self.events.emit(
                    "validation error",
                    line=record.record_number,
                    messages=[m.format_message() for m in outcome.messages],
                )
                messages = self.strategy.handle_invalid_record(record, outcome)
                self.result.add_errors(record.record_number, messages)


class BulkValidator:
    """Entry point for validating one uploaded file bound to a record source."""

    def __init__(self, source: RecordSource, identifier: str, *, events: EventSink | None = None) -> None:
        self.source = source
        self.identifier = identifier
        self.events = events

    def validate_all(self, strategy: ValidatingStrategy[T], *, batch_size: int = DEFAULT_BATCH_SIZE) -> BulkValidationResult[T]:
        return BulkValidationDriver(
            strategy,
            self.source,
            self.identifier,
            events=self.events,
            batch_size=batch_size,
        ).validate_all()

    def set_up_message_id_on_error(
        self,
        on_format_error: str,
        on_validation_error: str,
        on_empty_input: str,
    ) -> ErrorHandlingBulkValidator:
        return ErrorHandlingBulkValidator(
            self,
            ErrorMessageIds(
                on_format_error=on_format_error,
                on_validation_error=on_validation_error,
                on_empty_input=on_empty_input,
            ),
        )


class ErrorHandlingBulkValidator:
    """A `BulkValidator` with message ids bound, validating through `BasicValidatingStrategy`."""

    def __init__(self, validator: BulkValidator, message_ids: ErrorMessageIds) -> None:
        self.validator = validator
        self.message_ids = message_ids

    def validate_with(
        self,
        form: FormSchema[Any],
        validate_for: str,
        *,
        catalog: MessageCatalog = DEFAULT_CATALOG,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> BulkValidationResult[Any]:
        strategy = BasicValidatingStrategy(form, validate_for, self.message_ids, catalog=catalog)
        return self.validator.validate_all(strategy, batch_size=batch_size)
