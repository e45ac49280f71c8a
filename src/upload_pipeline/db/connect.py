from __future__ import annotations

from typing import Optional

import psycopg
from psycopg import Connection

from upload_pipeline.config import Settings


def connect(database_url: Optional[str] = None) -> Connection:
    """
    Return a psycopg connection.

    - Uses `UPLOAD_DSN` (through `Settings`), if not provided.
    - Leaves autocommit OFF (commits explicitly managed by the caller).
    """
    url = database_url or Settings.from_env().dsn
    return psycopg.connect(url)
