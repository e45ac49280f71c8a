from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any, Mapping

from psycopg import Connection, sql


@dataclass(frozen=True)
class TableWriteSpec:
    """Whitelisted target-table contract used for safe SQL generation."""
    table_name: str
    columns: tuple[str, ...]


# wrap all importable tables together.
TABLE_SPECS: dict[str, TableWriteSpec] = {
    "upload_cities": TableWriteSpec(
        table_name="upload_cities",
        columns=("id", "city"),
    ),
}


def object_to_mapping(obj: Any) -> Mapping[str, Any]:
    """Column values of a validated object: `to_mapping()`, dataclass fields, a mapping, or attributes."""
    if hasattr(obj, "to_mapping"):
        return obj.to_mapping()
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: getattr(obj, f.name) for f in dataclasses.fields(obj)}
    if isinstance(obj, Mapping):
        return obj
    return vars(obj)


def get_table_write_spec(table_name: str) -> TableWriteSpec:
    try:
        return TABLE_SPECS[table_name]
    except KeyError:
        raise ValueError(f"Unknown table_name: {table_name}") from None


class PsycopgBatchStatement:
    """
    A parameterized INSERT plus its pending parameter rows.

    `execute_batch` sends the pending rows with `executemany` and clears them.
    """

    def __init__(self, conn: Connection, spec: TableWriteSpec) -> None:
        self.conn = conn
        self.spec = spec
        # identifiers are interpolated ONLY from the whitelisted `TABLE_SPECS`.
        self.query = sql.SQL("INSERT INTO {tbl} ({cols}) VALUES ({vals})").format(
            tbl=sql.Identifier(spec.table_name),
            cols=sql.SQL(", ").join(sql.Identifier(c) for c in spec.columns),
            vals=sql.SQL(", ").join(sql.Placeholder() for _ in spec.columns),
        )
        self.pending: list[tuple[Any, ...]] = []
        self.executed_batches = 0

    def add_batch_object(self, obj: Any) -> None:
        m = object_to_mapping(obj)
        self.pending.append(tuple(m.get(c) for c in self.spec.columns))

    def execute_batch(self) -> None:
        if not self.pending:
            return
        with self.conn.cursor() as cur:
            cur.executemany(self.query, self.pending)
        self.pending.clear()
        self.executed_batches += 1


class TableInsertion:
    """Insertion policy writing validated objects into a whitelisted table."""

    def __init__(self, conn: Connection, table_name: str) -> None:
        self.conn = conn
        self.spec = get_table_write_spec(table_name)

    def prepare_statement(self, first: Any) -> PsycopgBatchStatement:
        return PsycopgBatchStatement(self.conn, self.spec)

    def add_batch(self, statement: PsycopgBatchStatement, obj: Any) -> None:
        statement.add_batch_object(obj)
