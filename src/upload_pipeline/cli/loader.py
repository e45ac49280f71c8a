from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from psycopg import Connection

from upload_pipeline.config import Settings
from upload_pipeline.events import EventSink
from upload_pipeline.ingest.summary import UploadSummary
from upload_pipeline.messages import DEFAULT_CATALOG
from upload_pipeline.parsing.registry import get_form_spec
from upload_pipeline.upload.helper import UploadedFile, UploadHelper
from upload_pipeline.validate.result import BulkValidationResult

logger = logging.getLogger(__name__)

MSG_FORMAT_ERROR = "upload.format_error"
MSG_VALIDATION_ERROR = "upload.validation_error"
MSG_EMPTY_INPUT = "upload.empty_input"

UPLOAD_CATALOG = DEFAULT_CATALOG.merged(
    {
        MSG_FORMAT_ERROR: "format error found in line {0}.",
        MSG_VALIDATION_ERROR: "invalid value found in line {0}. [ {1} ]",
        MSG_EMPTY_INPUT: "empty file uploaded. file=[{0}]",
    }
)


def validate_file(
    *,
    input_path: Path,
    layout_name: str,
    form_name: str,
    settings: Settings,
    validate_for: str | None = None,
    events: EventSink | None = None,
) -> BulkValidationResult[Any]:
    """
    Validate an uploaded file against a layout and a registered form.

    Raises `EmptyInputError` for an empty upload and `LayoutError` for a bad layout.
    Record level problems are returned inside the result.
    """
    spec = get_form_spec(form_name)
    helper = UploadHelper(UploadedFile(path=input_path, file_name=input_path.name), settings)

    return (
        helper.apply_format(layout_name, events=events)
        .set_up_message_id_on_error(MSG_FORMAT_ERROR, MSG_VALIDATION_ERROR, MSG_EMPTY_INPUT)
        .validate_with(
            spec.form,
            validate_for or spec.default_validate_for,
            catalog=UPLOAD_CATALOG,
            batch_size=settings.batch_size,
        )
    )


def import_file(
    conn: Connection,
    *,
    input_path: Path,
    layout_name: str,
    form_name: str,
    settings: Settings,
    validate_for: str | None = None,
    table_name: str | None = None,
) -> UploadSummary:
    """
    Validate then import an upload in one transaction.

    Raises `AggregateValidationError` (nothing written) if any record is invalid.
    Commits on success, rolls back on any failure during the import.
    """
    result = validate_file(
        input_path=input_path,
        layout_name=layout_name,
        form_name=form_name,
        settings=settings,
        validate_for=validate_for,
    )
    table = table_name or get_form_spec(form_name).table_name

    try:
        imported = result.import_with(conn, table)
        conn.commit()
    except Exception:
        conn.rollback()
        raise

    logger.info("imported %d rows from %s into %s", imported, input_path.name, table)
    return UploadSummary.from_result(result, identifier=input_path.name, form_name=form_name, imported=imported)
