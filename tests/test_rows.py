"""Tests for the Row Source and the export Deadline.

Verifies lazy iteration, that the cursor is released on every exit path,
single-use iteration, and deadline enforcement.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from fakes import FakeDatabase, FakeTable, column, users_database
from pgs3backup.backup.deadline import Deadline
from pgs3backup.backup.rows import RowSource
from pgs3backup.errors import DeadlineExceeded, QueryError, RowScanError

USERS_SQL = 'SELECT * FROM "public"."users"'


def numbers_database(count: int, fail_at: int | None = None) -> FakeDatabase:
    return FakeDatabase(
        {
            ("public", "numbers"): FakeTable(
                columns=[column("n", "integer")],
                rows=[(i,) for i in range(count)],
                fail_at=fail_at,
            ),
        }
    )


# ============================================================================
# Test: Iteration
# ============================================================================


class TestRowSourceIteration:
    """Verify rows stream in order and the cursor is then released."""

    async def test_yields_rows_in_order(self) -> None:
        """All rows are produced, then the source is exhausted."""
        db = users_database()
        await db.connect()

        async with RowSource(db, USERS_SQL, deadline=Deadline()) as source:
            assert source.columns == ["id", "name"]
            rows = [row async for row in source]

        assert rows == [(1, "Alice"), (2, None)]
        assert db.open_cursors == []

    async def test_fetches_in_batches(self) -> None:
        """Rows arrive across several round trips."""
        db = numbers_database(7)
        await db.connect()

        source = RowSource(db, 'SELECT * FROM "public"."numbers"', deadline=Deadline(), batch_size=3)
        rows = [row async for row in source]

        assert [r[0] for r in rows] == list(range(7))
        assert db.open_cursors == []

    async def test_iteration_opens_lazily(self) -> None:
        """Iterating without open() executes the query on first use."""
        db = users_database()
        await db.connect()
        source = RowSource(db, USERS_SQL, deadline=Deadline())

        assert db.cursors == []
        assert len([row async for row in source]) == 2

    async def test_empty_result(self) -> None:
        """A query with no rows ends immediately."""
        db = numbers_database(0)
        await db.connect()

        async with RowSource(db, 'SELECT * FROM "public"."numbers"', deadline=Deadline()) as source:
            assert [row async for row in source] == []

    async def test_columns_before_open_raises(self) -> None:
        """Column names are only known once the query ran."""
        source = RowSource(users_database(), USERS_SQL, deadline=Deadline())
        with pytest.raises(RuntimeError, match="not opened"):
            source.columns


# ============================================================================
# Test: Release on every path
# ============================================================================


class TestRowSourceRelease:
    """Verify the cursor is closed on success, failure and early exit."""

    async def test_scan_failure_closes_cursor(self) -> None:
        """A decode failure mid-stream propagates and releases the cursor."""
        db = numbers_database(5, fail_at=3)
        await db.connect()

        seen = []
        with pytest.raises(RowScanError):
            async with RowSource(
                db, 'SELECT * FROM "public"."numbers"', deadline=Deadline(), batch_size=1
            ) as source:
                async for row in source:
                    seen.append(row[0])

        assert seen == [0, 1, 2]
        assert db.open_cursors == []

    async def test_consumer_failure_closes_cursor(self) -> None:
        """An exception raised by the consumer still releases the cursor."""
        db = users_database()
        await db.connect()

        with pytest.raises(ValueError, match="downstream"):
            async with RowSource(db, USERS_SQL, deadline=Deadline()) as source:
                async for _ in source:
                    raise ValueError("downstream")

        assert db.open_cursors == []

    async def test_close_is_idempotent(self) -> None:
        """Closing twice releases the cursor once."""
        db = users_database()
        await db.connect()
        source = RowSource(db, USERS_SQL, deadline=Deadline())
        await source.open()

        await source.close()
        await source.close()

        assert db.cursors[0].close_calls == 1

    async def test_value_error_from_cursor_is_scan_error(self) -> None:
        """Driver decode errors surface as RowScanError."""
        cursor = MagicMock()
        cursor.columns = ["a"]
        cursor.fetch = AsyncMock(side_effect=UnicodeDecodeError("utf-8", b"\xff", 0, 1, "bad"))
        cursor.close = AsyncMock()
        client = MagicMock()
        client.cursor = AsyncMock(return_value=cursor)

        with pytest.raises(RowScanError):
            async for _ in RowSource(client, "SELECT 1", deadline=Deadline()):
                pass

        cursor.close.assert_awaited_once()


# ============================================================================
# Test: Single use
# ============================================================================


class TestRowSourceNotRestartable:
    """Verify a source is consumed at most once."""

    async def test_second_iteration_raises(self) -> None:
        """Iterating a consumed source raises QueryError."""
        db = users_database()
        await db.connect()
        source = RowSource(db, USERS_SQL, deadline=Deadline())
        [row async for row in source]

        with pytest.raises(QueryError, match="not restartable"):
            source.__aiter__()

    async def test_open_after_close_raises(self) -> None:
        """A closed source cannot be reopened."""
        db = users_database()
        await db.connect()
        source = RowSource(db, USERS_SQL, deadline=Deadline())
        await source.close()

        with pytest.raises(QueryError, match="closed"):
            await source.open()

    async def test_query_error_propagates(self) -> None:
        """A rejected query raises QueryError from open()."""
        db = users_database(query_errors=("SELECT * FROM",))
        await db.connect()

        with pytest.raises(QueryError):
            async with RowSource(db, USERS_SQL, deadline=Deadline()):
                pass


# ============================================================================
# Test: Deadline
# ============================================================================


class TestDeadline:
    """Verify the shared export deadline."""

    def test_unbounded_deadline(self) -> None:
        """Deadline(None) never expires."""
        deadline = Deadline(None)
        assert deadline.remaining() is None
        assert not deadline.expired()

    def test_remaining_is_clamped(self) -> None:
        """An elapsed deadline reports zero seconds left."""
        deadline = Deadline(0)
        assert deadline.remaining() == 0.0
        assert deadline.expired()

    async def test_expired_deadline_fails_query(self) -> None:
        """Issuing a query after the deadline raises DeadlineExceeded."""
        db = users_database()
        await db.connect()

        with pytest.raises(DeadlineExceeded):
            await RowSource(db, USERS_SQL, deadline=Deadline(0)).open()

        assert db.cursors == []

    async def test_slow_query_is_interrupted(self) -> None:
        """A query still running at the deadline is cancelled."""

        async def hang(*args, **kwargs):
            await asyncio.sleep(10)

        client = MagicMock()
        client.cursor = AsyncMock(side_effect=hang)

        with pytest.raises(DeadlineExceeded):
            await RowSource(client, "SELECT pg_sleep(10)", deadline=Deadline(0.05)).open()

    def test_deadline_exceeded_is_query_error(self) -> None:
        """Callers catching QueryError also see deadline failures."""
        assert issubclass(DeadlineExceeded, QueryError)
