from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

from upload_pipeline.config import Settings
from upload_pipeline.errors import LayoutError
from upload_pipeline.events import EventSink
from upload_pipeline.ingest.layout import load_layout
from upload_pipeline.ingest.sources import PathRecordSource
from upload_pipeline.validate.driver import BulkValidator

logger = logging.getLogger(__name__)

LAYOUT_SUFFIX = ".json"


@dataclass(frozen=True)
class UploadedFile:
    """A file received from a client. `file_name` is the client side name."""
    path: Path
    file_name: str


class UploadHelper:
    """Operations on one uploaded file: move it, read it, or validate it against a layout."""

    def __init__(self, uploaded: UploadedFile, settings: Settings | None = None) -> None:
        self.uploaded = uploaded
        self.settings = settings or Settings.from_env()

    def move_file_to(self, base_dir_name: str, file_name: str) -> Path:
        """Move the upload into a configured base directory. Returns the new path."""
        dest_dir = self.settings.base_directory(base_dir_name)
        dest_dir.mkdir(parents=True, exist_ok=True)
        dest = dest_dir / file_name
        shutil.move(str(self.uploaded.path), dest)
        self.uploaded = UploadedFile(path=dest, file_name=self.uploaded.file_name)
        return dest

    def to_bytes(self) -> bytes:
        return self.uploaded.path.read_bytes()

    def apply_format(
        self,
        layout_name: str,
        base_dir_name: str = "format",
        *,
        events: EventSink | None = None,
    ) -> BulkValidator:
        """
        Bind the upload to the layout `<base dir>/<layout_name>.json`.

        Raises `LayoutError` naming both the logical and the resolved layout path
        if the layout is missing or malformed.
        """
        self._log_content_of_uploaded()

        layout_path = self.settings.base_directory(base_dir_name) / f"{layout_name}{LAYOUT_SUFFIX}"
        logger.debug(
            "applying layout file. base_dir_name=[%s] layout_name=[%s] layout_file=[%s]",
            base_dir_name, layout_name, layout_path.resolve(),
        )
        try:
            layout = load_layout(layout_path)
        except LayoutError as e:
            raise LayoutError(
                f"fail applying layout file. base_dir_name=[{base_dir_name}] "
                f"layout_name=[{layout_name}] "
                f"layout_file=[{layout_path.resolve()}] "
                f"uploaded=[{self.uploaded.file_name}]"
            ) from e

        # the upload is opened by the first read and closed by the validation run
        source = PathRecordSource(layout, self.uploaded.path)
        return BulkValidator(source, self.uploaded.file_name, events=events)

    def _log_content_of_uploaded(self) -> None:
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("content of uploaded file is [0x%s]", self.to_bytes().hex().upper())
