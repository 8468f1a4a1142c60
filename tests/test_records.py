"""Tests for the Record Encoder.

Verifies value classification and rendering (null, bytes, booleans,
numbers, dates), minimal quoting of delimited records, and the row width
check.
"""

import csv
import io
from datetime import date, datetime, time, timezone
from decimal import Decimal
from uuid import UUID

import pytest

from pgs3backup.backup.records import (
    RecordWriter,
    ValueKind,
    classify,
    encode_fields,
    render_value,
)
from pgs3backup.errors import RowScanError


# ============================================================================
# Test: Classification
# ============================================================================


class TestClassify:
    """Verify every driver value maps to exactly one kind."""

    @pytest.mark.parametrize(
        ("value", "kind"),
        [
            (None, ValueKind.NULL),
            (b"raw", ValueKind.BYTES),
            (bytearray(b"raw"), ValueKind.BYTES),
            (memoryview(b"raw"), ValueKind.BYTES),
            ("text", ValueKind.TEXT),
            (True, ValueKind.BOOLEAN),
            (False, ValueKind.BOOLEAN),
            (42, ValueKind.NUMBER),
            (1.5, ValueKind.NUMBER),
            (Decimal("9.99"), ValueKind.NUMBER),
            (date(2024, 1, 2), ValueKind.OTHER),
            ([1, 2], ValueKind.OTHER),
        ],
    )
    def test_kind(self, value, kind: ValueKind) -> None:
        """classify() returns the expected tag."""
        assert classify(value) is kind

    def test_bool_is_not_a_number(self) -> None:
        """bool is tagged BOOLEAN even though it subclasses int."""
        assert classify(True) is not ValueKind.NUMBER


# ============================================================================
# Test: Rendering
# ============================================================================


class TestRenderValue:
    """Verify the per-kind rendering rules."""

    def test_null_renders_empty(self) -> None:
        """None renders as the empty string."""
        assert render_value(None) == ""

    def test_empty_string_renders_empty(self) -> None:
        """An empty string is indistinguishable from null in the output."""
        assert render_value("") == render_value(None)

    def test_bytes_render_raw(self) -> None:
        """Valid UTF-8 bytes render as their text."""
        assert render_value(b"hello") == "hello"

    def test_invalid_utf8_bytes_survive_round_trip(self) -> None:
        """Undecodable bytes come back byte-for-byte after encoding."""
        writer = RecordWriter()
        writer.write([render_value(b"\xff\xfeab")])
        assert writer.getvalue() == b"\xff\xfeab\n"

    def test_booleans(self) -> None:
        """Booleans render as lowercase words."""
        assert render_value(True) == "true"
        assert render_value(False) == "false"

    def test_numbers(self) -> None:
        """Numbers use their natural string form."""
        assert render_value(7) == "7"
        assert render_value(-1.25) == "-1.25"
        assert render_value(Decimal("1.50")) == "1.50"

    def test_dates_and_times_use_isoformat(self) -> None:
        """Temporal values render in ISO 8601."""
        assert render_value(date(2024, 1, 2)) == "2024-01-02"
        assert render_value(time(13, 5, 9)) == "13:05:09"
        assert (
            render_value(datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc))
            == "2024-01-02T03:04:05+00:00"
        )

    def test_other_values_use_str(self) -> None:
        """Anything else falls back to str()."""
        value = UUID("12345678-1234-5678-1234-567812345678")
        assert render_value(value) == "12345678-1234-5678-1234-567812345678"


# ============================================================================
# Test: Row encoding
# ============================================================================


class TestEncodeFields:
    """Verify rows become ordered field lists of the declared width."""

    def test_preserves_order(self) -> None:
        """Fields keep the column order of the row."""
        assert encode_fields((1, None, "x"), 3) == ["1", "", "x"]

    def test_width_mismatch_raises(self) -> None:
        """A row narrower than the header is a scan failure."""
        with pytest.raises(RowScanError, match="expected 2 columns"):
            encode_fields((1,), 2)


# ============================================================================
# Test: RecordWriter
# ============================================================================


class TestRecordWriter:
    """Verify quoting and termination of records."""

    def test_header_and_rows(self) -> None:
        """Header first, newline-terminated records, null as empty field."""
        writer = RecordWriter()
        writer.write(["id", "name"])
        writer.write(encode_fields((1, "Alice"), 2))
        writer.write(encode_fields((2, None), 2))
        assert writer.getvalue() == b"id,name\n1,Alice\n2,\n"
        assert writer.records == 3

    def test_minimal_quoting(self) -> None:
        """Only fields with a comma, quote or newline are quoted."""
        writer = RecordWriter()
        writer.write(["a,b", 'say "hi"', "line\nbreak", "plain"])
        assert writer.getvalue() == b'"a,b","say ""hi""","line\nbreak",plain\n'

    def test_round_trip_through_csv_reader(self) -> None:
        """A standard reader recovers the exact field values."""
        rows = [
            ["id", "note"],
            ["1", "comma, inside"],
            ["2", 'quote " inside'],
            ["3", "multi\nline"],
            ["4", ""],
        ]
        writer = RecordWriter()
        for row in rows:
            writer.write(row)
        parsed = list(csv.reader(io.StringIO(writer.getvalue().decode(), newline="")))
        assert parsed == rows

    def test_unicode_text(self) -> None:
        """Text is written as UTF-8."""
        writer = RecordWriter()
        writer.write(["café"])
        assert writer.getvalue() == "café\n".encode("utf-8")

    def test_records_are_encoded_as_written(self) -> None:
        """The document grows record by record as bytes."""
        writer = RecordWriter()
        writer.write(["id"])
        assert writer.getvalue() == b"id\n"
        writer.write([render_value(b"\xff")])
        writer.write(["é"])
        assert writer.getvalue() == b"id\n\xff\n\xc3\xa9\n"
