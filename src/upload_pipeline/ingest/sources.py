from __future__ import annotations

import csv
import io
import re
from pathlib import Path
from typing import Any, BinaryIO, Protocol

from upload_pipeline.errors import RecordFormatError
from upload_pipeline.parsing.types import Record

from .layout import FieldLayout, Layout


class RecordSource(Protocol):
    """
    Produces records from an upload.

    `read_next` may raise `RecordFormatError` for one record; reading continues
    with the following record. Any `OSError` is an unrecoverable failure.
    """
    def has_next(self) -> bool: ...

    def read_next(self) -> Record: ...

    def close(self) -> None: ...


class _ClosingSource:
    """`close()` once, and usable as a context manager."""

    _stream: Any

    def __init__(self) -> None:
        self._closed = False

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._stream.close()

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self):
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


def _decode_field(f: FieldLayout, raw: bytes, *, encoding: str, record_number: int) -> Any:
    """Decode one fixed-length field. `Z` fields become `int`."""
    try:
        text = raw.decode(encoding)
    except UnicodeDecodeError:
        raise RecordFormatError(record_number, f"undecodable bytes {raw!r}", field_name=f.name)

    if f.kind == "Z":
        if not text.isascii() or not text.isdigit():
            raise RecordFormatError(record_number, f"invalid zoned decimal {text!r}", field_name=f.name)
        return int(text)

    # X: pad is trailing spaces
    return text.rstrip(" ")


class FixedLengthRecordSource(_ClosingSource):
    """
    Yields `Record`s of `layout.record_length` bytes each.

    `record_number` is 1-based. A trailing partial record is reported as a
    format error and ends the input.
    """

    def __init__(self, stream: BinaryIO, layout: Layout) -> None:
        super().__init__()
        if layout.file_type != "fixed" or layout.record_length is None:
            raise ValueError("FixedLengthRecordSource needs a fixed-length layout")
        self._stream = stream
        self._layout = layout
        self._record_length = layout.record_length
        self._pending: bytes | None = None
        self._eof = False
        self._record_number = 0

    def _read_chunk(self) -> bytes:
        buf = b""
        # short reads are legal for raw streams, keep reading until full or EOF
        while len(buf) < self._record_length:
            part = self._stream.read(self._record_length - len(buf))
            if not part:
                break
            buf += part
        return buf

    def has_next(self) -> bool:
        if self._pending is None and not self._eof:
            chunk = self._read_chunk()
            if chunk:
                self._pending = chunk
            else:
                self._eof = True
        return self._pending is not None

    def read_next(self) -> Record:
        if not self.has_next():
            raise EOFError("no more records")
        chunk, self._pending = self._pending, None
        assert chunk is not None
        self._record_number += 1
        n = self._record_number

        if len(chunk) < self._record_length:
            self._eof = True
            raise RecordFormatError(
                n, f"invalid record length: expected {self._record_length} bytes, got {len(chunk)}"
            )

        values: dict[str, Any] = {}
        offset = 0
        for f in self._layout.fields:
            raw = chunk[offset:offset + f.width]
            offset += f.width
            values[f.name] = _decode_field(f, raw, encoding=self._layout.encoding, record_number=n)
        return Record(record_number=n, values=values)


class _BadRow:
    """A physical row the csv reader could not parse."""

    __slots__ = ("detail",)

    def __init__(self, detail: str) -> None:
        self.detail = detail


# bytes that did not decode, kept as lone surrogates by `surrogateescape`
_UNDECODABLE = re.compile("[\udc80-\udcff]")


class CsvRecordSource(_ClosingSource):
    """
    Yields `Record`s for CSV data rows.

    The first row is the header and is not counted: the first data row is
    record 1. Blank lines are skipped and not counted. A row whose column
    count differs from the header, a row holding bytes that are not valid in
    `layout.encoding` and a row the csv reader rejects are format errors for
    that record only.
    """

    def __init__(self, stream: BinaryIO, layout: Layout) -> None:
        super().__init__()
        if layout.file_type != "csv":
            raise ValueError("CsvRecordSource needs a csv layout")
        self._stream = io.TextIOWrapper(stream, encoding=layout.encoding, errors="surrogateescape", newline="")
        self._layout = layout
        self._reader = csv.reader(self._stream)
        self._header: list[str] | None = None
        self._pending: list[str] | _BadRow | None = None
        self._eof = False
        self._record_number = 0

    def _next_row(self) -> list[str] | _BadRow | None:
        while True:
            try:
                row = next(self._reader)
            except StopIteration:
                return None
            except csv.Error as e:
                return _BadRow(f"unparseable row: {e}")
            if row:
                return row

    def has_next(self) -> bool:
        if self._header is None and not self._eof:
            header = self._next_row()
            if header is None:
                self._eof = True
                return False
            if isinstance(header, _BadRow) or any(_UNDECODABLE.search(h) for h in header):
                # without a header no row can be mapped, report once and stop
                self._eof = True
                self._pending = header if isinstance(header, _BadRow) else _BadRow("undecodable header")
                self._header = []
                return True
            self._header = [h.strip() for h in header]
        if self._pending is None and not self._eof:
            self._pending = self._next_row()
            if self._pending is None:
                self._eof = True
        return self._pending is not None

    def read_next(self) -> Record:
        if not self.has_next():
            raise EOFError("no more records")
        row, self._pending = self._pending, None
        assert row is not None and self._header is not None
        self._record_number += 1
        n = self._record_number

        if isinstance(row, _BadRow):
            raise RecordFormatError(n, row.detail)
        if len(row) != len(self._header):
            raise RecordFormatError(n, f"expected {len(self._header)} columns, got {len(row)}")

        by_name = dict(zip(self._header, row))
        values: dict[str, Any] = {}
        for f in self._layout.fields:
            if f.name not in by_name:
                raise RecordFormatError(n, "missing column", field_name=f.name)
            v = by_name[f.name]
            if _UNDECODABLE.search(v):
                raise RecordFormatError(n, f"undecodable bytes in {f.name}", field_name=f.name)
            if f.kind == "Z":
                s = v.strip()
                if not s.isascii() or not s.isdigit():
                    raise RecordFormatError(n, f"invalid zoned decimal {v!r}", field_name=f.name)
                values[f.name] = int(s)
            else:
                values[f.name] = v
        return Record(record_number=n, values=values)


class PathRecordSource:
    """
    A record source over a file that is opened on the first read.

    Closing it before any read never opens the file.
    """

    def __init__(self, layout: Layout, path: Path) -> None:
        self._layout = layout
        self._path = path
        self._source: RecordSource | None = None
        self._closed = False

    def _opened(self) -> RecordSource:
        if self._source is None:
            if self._closed:
                raise ValueError(f"record source for {self._path} is closed")
            self._source = open_source(self._layout, self._path.open("rb"))
        return self._source

    def has_next(self) -> bool:
        return self._opened().has_next()

    def read_next(self) -> Record:
        return self._opened().read_next()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._source is not None:
            self._source.close()

    @property
    def opened(self) -> bool:
        return self._source is not None

    @property
    def closed(self) -> bool:
        return self._closed


def open_source(layout: Layout, stream: BinaryIO) -> RecordSource:
    """Pick the record source matching `layout.file_type`."""
    if layout.file_type == "fixed":
        return FixedLengthRecordSource(stream, layout)
    return CsvRecordSource(stream, layout)
