from __future__ import annotations

import logging
from typing import Protocol, Sequence, TypeVar

T = TypeVar("T")
T_contra = TypeVar("T_contra", contravariant=True)

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100


class BatchStatement(Protocol):
    """A prepared write that accumulates rows until `execute_batch` flushes them."""
    def execute_batch(self) -> None: ...


class InsertionPolicy(Protocol[T_contra]):
    """How to prepare a statement and add one object to its batch."""
    def prepare_statement(self, first: T_contra) -> BatchStatement: ...

    def add_batch(self, statement: BatchStatement, obj: T_contra) -> None: ...


def import_all(valid_objects: Sequence[T], policy: InsertionPolicy[T], *, batch_size: int = DEFAULT_BATCH_SIZE) -> int:
    """
    Insert `valid_objects` in order, flushing every `batch_size` objects.

    - Nothing is touched for an empty sequence (returns 0).
    - The statement is prepared once, from the first object.
    - The remainder is flushed once at the end, unless the count is an
      exact multiple of `batch_size` (never an empty flush).

    No commit/rollback here, the caller owns the transaction.
    Returns the number of objects handed to the store.
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")
    if not valid_objects:
        return 0

    statement = policy.prepare_statement(valid_objects[0])
    cnt = 0
    for obj in valid_objects:
        policy.add_batch(statement, obj)
        cnt += 1
        if cnt % batch_size == 0:
            statement.execute_batch()

    ## -- flush the remainder
    if cnt % batch_size != 0:
        statement.execute_batch()

    logger.debug("imported %d objects (batch_size=%d)", cnt, batch_size)
    return cnt
