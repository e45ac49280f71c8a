from __future__ import annotations

from bisect import insort
from typing import Any, Generic, Iterator, Sequence, TypeVar

from psycopg import Connection

from upload_pipeline.db.importer import DEFAULT_BATCH_SIZE, InsertionPolicy, import_all
from upload_pipeline.db.writers import TableInsertion
from upload_pipeline.errors import AggregateValidationError
from upload_pipeline.messages import Message

T = TypeVar("T")


class ErrorMessages:
    """
    Error messages keyed by record number, iterated in ascending key order.

    A key is present as soon as `add` was called for it, even with an empty list.
    """

    def __init__(self) -> None:
        self._keys: list[int] = []                  # kept sorted
        self._by_line: dict[int, list[Message]] = {}

    def add(self, record_number: int, messages: Sequence[Message]) -> None:
        existing = self._by_line.get(record_number)
        if existing is None:
            insort(self._keys, record_number)
            self._by_line[record_number] = list(messages)
        else:
            existing.extend(messages)

    def get(self, record_number: int, default: Any = None) -> list[Message] | Any:
        msgs = self._by_line.get(record_number)
        return default if msgs is None else list(msgs)

    def __getitem__(self, record_number: int) -> list[Message]:
        return list(self._by_line[record_number])

    def __contains__(self, record_number: object) -> bool:
        return record_number in self._by_line

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self) -> Iterator[int]:
        return iter(list(self._keys))

    def keys(self) -> list[int]:
        return list(self._keys)

    def items(self) -> list[tuple[int, list[Message]]]:
        return [(k, list(self._by_line[k])) for k in self._keys]

    def is_empty(self) -> bool:
        return not self._keys

    def all_messages(self) -> list[Message]:
        """Every message, ascending record number then insertion order."""
        out: list[Message] = []
        for k in self._keys:
            out.extend(self._by_line[k])
        return out

    def copy(self) -> ErrorMessages:
        c = ErrorMessages()
        c._keys = list(self._keys)
        c._by_line = {k: list(v) for k, v in self._by_line.items()}
        return c

    def __repr__(self) -> str:
        return f"ErrorMessages({dict(self.items())!r})"


class BulkValidationResult(Generic[T]):
    """
    Outcome of validating a whole upload.

    Valid objects and errors are accumulated side by side, but valid objects
    can only be read (or imported) while no error is held.
    Only the validation driver mutates a result.
    """

    def __init__(self, batch_size: int = DEFAULT_BATCH_SIZE) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self.batch_size = batch_size
        self._valid_objects: list[T] = []
        self._error_messages = ErrorMessages()

    def has_error(self) -> bool:
        return not self._error_messages.is_empty()

    def get_error_messages(self) -> ErrorMessages:
        """A snapshot, adding to it leaves the result unchanged."""
        return self._error_messages.copy()

    def is_empty(self) -> bool:
        return not self._valid_objects and self._error_messages.is_empty()

    def get_valid_objects(self) -> list[T]:
        """Raises `AggregateValidationError` with all messages, in line order, if any error is held."""
        if self.has_error():
            raise AggregateValidationError(self._error_messages.all_messages())
        return list(self._valid_objects)

    def import_all(self, policy: InsertionPolicy[T]) -> int:
        """Insert every valid object through `policy`. Returns the number of objects inserted."""
        return import_all(self.get_valid_objects(), policy, batch_size=self.batch_size)

    def import_with(self, conn: Connection, table_name: str) -> int:
        """Insert into a whitelisted table over `conn`. The caller commits."""
        valid = self.get_valid_objects()
        return import_all(valid, TableInsertion(conn, table_name), batch_size=self.batch_size)

    ## -- driver only

    def add_valid_object(self, obj: T) -> None:
        self._valid_objects.append(obj)

    def add_errors(self, record_number: int, messages: Sequence[Message]) -> None:
        self._error_messages.add(record_number, messages)

    def add_error(self, record_number: int, message: Message) -> None:
        self._error_messages.add(record_number, [message])
