from __future__ import annotations

import io
from typing import Any

import pytest

from upload_pipeline.errors import AggregateValidationError, EmptyInputError, RecordFormatError, SourceIOError
from upload_pipeline.events import RecordingEventSink
from upload_pipeline.ingest.layout import FieldLayout, Layout
from upload_pipeline.ingest.sources import CsvRecordSource
from upload_pipeline.messages import Message, MessageCatalog, MessageLevel
from upload_pipeline.parsing.profiles.cities import CITY_FORM, City
from upload_pipeline.parsing.types import Record, ValidationOutcome
from upload_pipeline.validate.driver import BulkValidationDriver, BulkValidator
from upload_pipeline.validate.strategy import BasicValidatingStrategy, ErrorMessageIds

CATALOG = MessageCatalog(
    {
        "MSG00098": "format error found in line {0}.",
        "MSG00099": "invalid value found in line {0}. [ {1} ]",
        "MSG00100": "empty file uploaded. file=[{0}]",
        "invalid_length": "{0} is not in the range {1} through {2}.",
    }
)
IDS = ErrorMessageIds("MSG00098", "MSG00099", "MSG00100")


def _strategy() -> BasicValidatingStrategy[City]:
    return BasicValidatingStrategy(CITY_FORM, "upload", IDS, catalog=CATALOG)


class AcceptAll:
    """Accepts every record as its plain dict of values."""

    def __init__(self) -> None:
        self.empty_calls: list[str] = []

    def validate_record(self, record: Record) -> ValidationOutcome[dict[str, Any]]:
        return ValidationOutcome(record.record_number, "any", "all", converted=dict(record.values))

    def handle_invalid_record(self, record: Record, outcome: ValidationOutcome[Any]) -> list[Message]:
        raise AssertionError("never invalid")

    def handle_invalid_format_record(self, error: RecordFormatError) -> Message:
        return Message(MessageLevel.error, "fmt", f"line {error.record_number}")

    def handle_empty_input(self, identifier: str) -> None:
        # does not raise on purpose
        self.empty_calls.append(identifier)


def test_all_valid_records_in_source_order(make_source) -> None:
    """Two well-formed records, always-valid strategy -> 2 valid objects in order."""
    source = make_source([Record(1, {"id": 1, "city": "tokyo"}), Record(2, {"id": 2, "city": "osaka"})])

    result = BulkValidationDriver(AcceptAll(), source, "cities.txt").validate_all()

    assert result.has_error() is False
    assert result.get_valid_objects() == [{"id": 1, "city": "tokyo"}, {"id": 2, "city": "osaka"}]
    assert source.close_calls == 1


def test_format_error_and_validation_error_are_both_kept(make_source) -> None:
    """Record 1 fails format conversion, record 2 fails a length rule."""
    source = make_source([
        RecordFormatError(1, "invalid zoned decimal 'Z'", field_name="id"),
        Record(2, {"id": 2, "city": "aa"}),
    ])

    result = BulkValidationDriver(_strategy(), source, "moge.txt").validate_all()

    errors = result.get_error_messages()
    assert errors.keys() == [1, 2]
    assert [m.message_id for m in errors[1]] == ["MSG00098"]
    assert errors[1][0].text == "format error found in line 1."
    assert [m.message_id for m in errors[2]] == ["MSG00099"]
    assert errors[2][0].text == "invalid value found in line 2. [ city is not in the range 3 through 10. ]"

    with pytest.raises(AggregateValidationError) as e:
        result.get_valid_objects()
    assert [m.message_id for m in e.value.messages] == ["MSG00098", "MSG00099"]
    assert "format error found in line 1." in str(e.value)
    assert "city is not in the range 3 through 10." in str(e.value)


def test_processing_continues_after_per_record_failures(make_source) -> None:
    source = make_source([
        Record(1, {"id": 1, "city": "tokyo"}),
        RecordFormatError(2, "bad"),
        Record(3, {"id": 3, "city": "x"}),
        Record(4, {"id": 4, "city": "kyoto"}),
    ])

    result = BulkValidationDriver(_strategy(), source, "f.txt").validate_all()

    assert source.pos == 4
    assert result.get_error_messages().keys() == [2, 3]
    assert result.has_error() is True


def test_format_failed_record_is_never_validated(make_source) -> None:
    calls: list[int] = []

    class Spy(AcceptAll):
        def validate_record(self, record: Record) -> ValidationOutcome[dict[str, Any]]:
            calls.append(record.record_number)
            return super().validate_record(record)

    source = make_source([RecordFormatError(1, "bad"), Record(2, {"id": 2})])
    BulkValidationDriver(Spy(), source, "f.txt").validate_all()
    assert calls == [2]


def test_empty_input_raises_with_identifier(make_source) -> None:
    source = make_source([])

    with pytest.raises(EmptyInputError) as e:
        BulkValidationDriver(_strategy(), source, "empty.txt").validate_all()

    assert [m.message_id for m in e.value.messages] == ["MSG00100"]
    assert "file=[empty.txt]" in str(e.value)
    assert source.close_calls == 1


def test_empty_input_handler_that_does_not_raise_returns_empty_result(make_source) -> None:
    strategy = AcceptAll()
    result = BulkValidationDriver(strategy, make_source([]), "empty.txt").validate_all()
    assert strategy.empty_calls == ["empty.txt"]
    assert result.is_empty() is True


def test_input_with_only_malformed_records_is_not_empty(make_source) -> None:
    """
    Every format error is recorded under its line, so an upload made only of
    malformed records is reported as errors, never as empty input.
    """
    strategy = AcceptAll()
    source = make_source([RecordFormatError(1, "bad"), RecordFormatError(2, "bad")])

    result = BulkValidationDriver(strategy, source, "junk.txt").validate_all()

    assert strategy.empty_calls == []
    assert result.is_empty() is False
    assert result.get_error_messages().keys() == [1, 2]


def test_invalid_record_with_no_rewritten_messages_still_counts_as_error(make_source) -> None:
    """A strategy returning no messages for an invalid record still leaves the line flagged."""

    class Silent(AcceptAll):
        def validate_record(self, record: Record) -> ValidationOutcome[Any]:
            return ValidationOutcome(
                record.record_number, "any", "all",
                messages=(Message(MessageLevel.error, "x", "x"),),
            )

        def handle_invalid_record(self, record: Record, outcome: ValidationOutcome[Any]) -> list[Message]:
            return []

    strategy = Silent()
    result = BulkValidationDriver(strategy, make_source([Record(1, {})]), "f.txt").validate_all()

    assert result.has_error() is True
    assert result.get_error_messages()[1] == []
    assert strategy.empty_calls == []


def test_io_failure_aborts_run_and_closes_source(make_source) -> None:
    source = make_source([Record(1, {"id": 1, "city": "tokyo"}), OSError("for testing.")])

    with pytest.raises(SourceIOError) as e:
        BulkValidationDriver(AcceptAll(), source, "hoge.txt").validate_all()

    assert isinstance(e.value.__cause__, OSError)
    assert "for testing." in str(e.value)
    assert "hoge.txt" in str(e.value)
    assert source.close_calls == 1


def test_unexpected_strategy_error_propagates_and_closes_source(make_source) -> None:
    source = make_source([Record(1, {"id": 1, "city": "tokyo"})])
    strategy = BasicValidatingStrategy(CITY_FORM, "no-such-profile", IDS, catalog=CATALOG)

    with pytest.raises(ValueError):
        BulkValidationDriver(strategy, source, "f.txt").validate_all()
    assert source.close_calls == 1


def test_events_are_emitted_per_record(make_source) -> None:
    events = RecordingEventSink()
    source = make_source([
        Record(1, {"id": 1, "city": "tokyo"}),
        RecordFormatError(2, "bad", field_name="id"),
        Record(3, {"id": 3, "city": "x"}),
    ])

    BulkValidationDriver(_strategy(), source, "f.txt", events=events).validate_all()

    assert events.names() == [
        "invoking validation",
        "format error",
        "invoking validation",
        "validation error",
    ]
    assert events.events[1][1]["field_name"] == "id"
    assert events.events[0][1]["line"] == 1


def test_bulk_validator_set_up_message_ids(make_source) -> None:
    source = make_source([Record(1, {"id": 1, "city": "tokyo"}), Record(2, {"id": 2, "city": "osaka"})])

    result = (
        BulkValidator(source, "fuga.txt")
        .set_up_message_id_on_error("MSG00098", "MSG00099", "MSG00100")
        .validate_with(CITY_FORM, "upload", catalog=CATALOG, batch_size=1)
    )

    assert result.get_valid_objects() == [City(1, "tokyo"), City(2, "osaka")]
    assert result.batch_size == 1
    assert source.close_calls == 1


def test_undecodable_csv_row_is_recorded_as_format_error() -> None:
    layout = Layout(file_type="csv", fields=(FieldLayout("id", "Z"), FieldLayout("city")))
    source = CsvRecordSource(io.BytesIO(b"id,city\n1,tokyo\n2,\xff\xfeosaka\n3,kyoto\n"), layout)

    result = BulkValidationDriver(_strategy(), source, "c.csv", events=RecordingEventSink()).validate_all()

    assert result.get_error_messages().keys() == [2]
    assert [m.text for m in result.get_error_messages()[2]] == ["format error found in line 2."]
    assert source.closed is True
