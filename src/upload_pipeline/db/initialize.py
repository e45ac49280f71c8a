from __future__ import annotations

import logging
from pathlib import Path

import psycopg

from upload_pipeline.db.connect import connect

logger = logging.getLogger(__name__)


def run_sql_file(conn: psycopg.Connection, sql_path: Path) -> None:
    """Read and execute a `.sql` file, one statement at a time, then commit."""
    text = sql_path.read_text(encoding="utf-8")

    # split on semicolons so a failing statement can be surfaced.
    statements = [s.strip() for s in text.split(";") if s.strip()]

    with conn.cursor() as cur:
        for i, stmt in enumerate(statements, 1):
            try:
                cur.execute(stmt)
            except psycopg.Error as e:
                raise RuntimeError(
                    f"DB init failed in {sql_path} on statement #{i}\n"
                    f"Postgres raised with: {e}\n"
                    f"--- statement ---\n{stmt}\n--- end ---\n"
                ) from e
    conn.commit()
    logger.info("ran %d statement(s) from %s", len(statements), sql_path)


def db_init(*, sql_path: Path, database_url: str | None = None) -> None:
    """
    (Re-)initialize the schema.

    - If `sql_path` is a dir, run all `*.sql` files sorted ASC.
    - If `sql_path` is just one file, run just that file.
    """
    with connect(database_url) as conn:
        if sql_path.is_dir():
            for p in sorted(sql_path.glob("*.sql")):
                run_sql_file(conn, p)
        else:
            run_sql_file(conn, sql_path)
