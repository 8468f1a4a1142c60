"""Record Encoder: row tuples to delimited text records.

Driver values are classified into a closed set of kinds and rendered
deterministically per kind:

==========  ====================================================
Kind        Rendering
==========  ====================================================
NULL        empty field
BYTES       raw decoding (UTF-8, undecodable bytes kept as-is)
TEXT        unchanged
BOOLEAN     ``true`` / ``false``
NUMBER      ``str()`` (int, float, Decimal)
OTHER       ``isoformat()`` for dates and times, else ``str()``
==========  ====================================================

Records use comma delimiters, minimal quoting (fields containing a comma,
quote or newline are quoted, embedded quotes doubled) and ``\\n``
terminators.

Usage:
    from pgs3backup.backup.records import RecordWriter, encode_fields

    writer = RecordWriter()
    writer.write(["id", "name"])
    writer.write(encode_fields((1, None), 2))
    writer.getvalue()  # b"id,name\\n1,\\n"
"""

import csv
import io
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Sequence

from pgs3backup.errors import RowScanError

# Encoding used for data documents.  surrogateescape lets bytea values that
# are not valid UTF-8 survive the decode/encode round trip byte-for-byte.
TEXT_ENCODING = "utf-8"
TEXT_ERRORS = "surrogateescape"


class ValueKind(Enum):
    NULL = "null"
    BYTES = "bytes"
    TEXT = "text"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OTHER = "other"


def classify(value: Any) -> ValueKind:
    """Return the ``ValueKind`` tag for a driver-native value."""
    if value is None:
        return ValueKind.NULL
    if isinstance(value, (bytes, bytearray, memoryview)):
        return ValueKind.BYTES
    if isinstance(value, str):
        return ValueKind.TEXT
    # bool before NUMBER: bool is an int subclass
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, (int, float, Decimal)):
        return ValueKind.NUMBER
    return ValueKind.OTHER


def render_value(value: Any) -> str:
    """Render one value as field text."""
    kind = classify(value)
    if kind is ValueKind.NULL:
        return ""
    if kind is ValueKind.BYTES:
        return bytes(value).decode(TEXT_ENCODING, TEXT_ERRORS)
    if kind is ValueKind.TEXT:
        return value
    if kind is ValueKind.BOOLEAN:
        return "true" if value else "false"
    if kind is ValueKind.NUMBER:
        return str(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return str(value)


def encode_fields(row: Sequence[Any], column_count: int) -> list[str]:
    """Render a row tuple as an ordered list of field strings.

    Raises:
        RowScanError: If the row width does not match ``column_count``.
    """
    if len(row) != column_count:
        raise RowScanError(
            f"Row has {len(row)} values, expected {column_count} columns"
        )
    return [render_value(value) for value in row]


class RecordWriter:
    """Accumulates delimited records for one data document.

    Records are encoded as they are written, so the document is held once,
    as bytes.
    """

    def __init__(self) -> None:
        self._buffer = io.BytesIO()
        self._text = io.TextIOWrapper(
            self._buffer,
            encoding=TEXT_ENCODING,
            errors=TEXT_ERRORS,
            newline="",
            write_through=True,
        )
        self._writer = csv.writer(
            self._text,
            delimiter=",",
            quotechar='"',
            doublequote=True,
            quoting=csv.QUOTE_MINIMAL,
            lineterminator="\n",
        )
        self.records = 0

    def write(self, fields: Sequence[str]) -> None:
        self._writer.writerow(fields)
        self.records += 1

    def getvalue(self) -> bytes:
        self._text.flush()
        return self._buffer.getvalue()
