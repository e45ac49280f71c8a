from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from upload_pipeline.cli.loader import import_file, validate_file
from upload_pipeline.config import Settings
from upload_pipeline.db.connect import connect
from upload_pipeline.db.initialize import db_init
from upload_pipeline.errors import ApplicationError, LayoutError, SourceIOError
from upload_pipeline.ingest.summary import UploadSummary
from upload_pipeline.parsing.registry import FORM_NAMES


def _print_messages(e: Exception) -> None:
    """One line per message, in line order, on stderr."""
    if isinstance(e, ApplicationError):
        for m in e.messages:
            print(f"{m.level.value} {m.message_id}: {m.text}", file=sys.stderr)
    else:
        print(f"ERROR: {e}", file=sys.stderr)


def _add_upload_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--input", required=True, help="Path to the uploaded file.")
    p.add_argument("--layout", required=True, help="Layout name, resolved as <format dir>/<name>.json.")
    p.add_argument("--form", required=True, choices=FORM_NAMES)
    p.add_argument("--validate-for", default=None, help="Validation profile of the form (default: form's own).")
    p.add_argument("--format-dir", default=None, help="Override UPLOAD_FORMAT_DIR.")


def main(argv: list[str] | None = None) -> int:
    """
    A CLI for validating uploaded record files and importing them into Postgres.

    ## validate
    Validate every record of a file, print the summary or every error message.
    - `upload validate --input data/cities.txt --layout cities_fixed --form cities`

    ## import
    Validate, then insert all records in batches (nothing is inserted if any record fails).
    - `upload import --input data/cities.txt --layout cities_fixed --form cities`

    ## db
    - `upload db init --sql sql` re-initializes the schema.
    """
    p = argparse.ArgumentParser(prog="upload")
    p.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    sub = p.add_subparsers(dest="cmd", required=True)

    # validate cmd
    validate = sub.add_parser("validate", help="Validate an uploaded file.")
    _add_upload_args(validate)

    # import cmd
    imp = sub.add_parser("import", help="Validate and import an uploaded file.")
    _add_upload_args(imp)
    imp.add_argument("--table", default=None, help="Target table (default: the form's table).")

    # db cmd
    db = sub.add_parser("db", help="Database utilities.")
    db_sub = db.add_subparsers(dest="db_cmd", required=True)
    db_init_p = db_sub.add_parser("init", help="Initialize DB schema from SQL file(s).")
    db_init_p.add_argument("--sql", default="sql", help="Path to schema SQL file OR a directory of `.sql` files.")

    args = p.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.cmd == "db" and args.db_cmd == "init":
        db_init(sql_path=Path(args.sql))
        print(f"Initialized schema from {args.sql}")
        return 0

    settings = Settings.from_env()
    if args.format_dir:
        settings = settings.with_base_directory("format", Path(args.format_dir))
    input_path = Path(args.input)

    try:
        if args.cmd == "validate":
            result = validate_file(
                input_path=input_path,
                layout_name=args.layout,
                form_name=args.form,
                settings=settings,
                validate_for=args.validate_for,
            )
            summary = UploadSummary.from_result(result, identifier=input_path.name, form_name=args.form)
            if result.has_error():
                for m in result.get_error_messages().all_messages():
                    print(f"{m.level.value} {m.message_id}: {m.text}", file=sys.stderr)
                print(summary.render_one_line())
                return 1
            print(summary.render_one_line())
            return 0

        if args.cmd == "import":
            with connect(settings.dsn) as conn:
                summary = import_file(
                    conn,
                    input_path=input_path,
                    layout_name=args.layout,
                    form_name=args.form,
                    settings=settings,
                    validate_for=args.validate_for,
                    table_name=args.table,
                )
            print(summary.render_one_line())
            return 0

    except (ApplicationError, LayoutError, SourceIOError, ValueError) as e:
        _print_messages(e)
        return 1

    return 2
