from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from upload_pipeline.errors import LayoutError

FileType = Literal["fixed", "csv"]
FieldKind = Literal["X", "Z"]       # X: text, Z: zoned (unsigned) digits

_FILE_TYPES = ("fixed", "csv")
_FIELD_KINDS = ("X", "Z")


@dataclass(frozen=True, slots=True)
class FieldLayout:
    """Position and kind of one field inside a record."""
    name: str
    kind: FieldKind = "X"
    width: int = 0          # only meaningful for fixed-length files


@dataclass(frozen=True)
class Layout:
    """
    Record layout of an uploaded file.

    For `fixed` files `record_length` must equal the sum of field widths.
    For `csv` files the field names are matched against the header row.
    """
    file_type: FileType
    fields: tuple[FieldLayout, ...]
    encoding: str = "utf-8"
    record_length: int | None = None

    def __post_init__(self) -> None:
        if self.file_type not in _FILE_TYPES:
            raise ValueError(f"unknown file_type {self.file_type!r}, expected one of {_FILE_TYPES}")
        if not self.fields:
            raise ValueError("layout has no fields")
        for f in self.fields:
            if f.kind not in _FIELD_KINDS:
                raise ValueError(f"{f.name}: unknown field kind {f.kind!r}")

        if self.file_type == "fixed":
            if any(f.width <= 0 for f in self.fields):
                raise ValueError("fixed-length fields must have a positive width")
            total = sum(f.width for f in self.fields)
            if self.record_length != total:
                raise ValueError(f"record_length {self.record_length} does not match field widths {total}")

    @property
    def field_names(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.fields)


def layout_from_mapping(raw: dict[str, Any]) -> Layout:
    """Build a `Layout` from its JSON shape."""
    return Layout(
        file_type=raw["file_type"],
        encoding=raw.get("encoding", "utf-8"),
        record_length=raw.get("record_length"),
        fields=tuple(
            FieldLayout(name=str(f["name"]), kind=f.get("kind", "X"), width=int(f.get("width", 0)))
            for f in raw["fields"]
        ),
    )


def load_layout(path: Path) -> Layout:
    """
    Read a layout definition (`.json`).

    Raises `LayoutError` naming the path on a missing file or any syntax problem.
    """
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            raise ValueError("layout must be a JSON object")
        return layout_from_mapping(raw)
    except (OSError, ValueError, KeyError, TypeError) as e:
        raise LayoutError(f"fail applying layout file. layout_file=[{path.resolve()}]: {e}") from e
