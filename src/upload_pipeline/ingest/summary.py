from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from upload_pipeline.validate.result import BulkValidationResult


@dataclass(frozen=True)
class UploadSummary:
    """Counts reported for one processed upload."""
    identifier: str
    form_name: str
    valid: int
    error_lines: int
    imported: int | None = None

    @classmethod
    def from_result(
        cls,
        result: BulkValidationResult[Any],
        *,
        identifier: str,
        form_name: str,
        imported: int | None = None,
    ) -> UploadSummary:
        errors = result.get_error_messages()
        valid = 0 if result.has_error() else len(result.get_valid_objects())
        return cls(
            identifier=identifier,
            form_name=form_name,
            valid=valid,
            error_lines=len(errors),
            imported=imported,
        )

    def render_one_line(self) -> str:
        """How the summary is formatted for the terminal."""
        line = f"{self.identifier}: form={self.form_name} valid={self.valid} error_lines={self.error_lines}"
        if self.imported is not None:
            line += f" imported={self.imported}"
        return line
