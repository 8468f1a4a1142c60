"""Row Source: a lazy, non-restartable stream of row tuples for one query.

Usage:
    from pgs3backup.backup.rows import RowSource

    async with RowSource(client, 'SELECT * FROM "public"."users"', deadline=deadline) as rows:
        print(rows.columns)
        async for row in rows:
            ...
"""

import logging
from typing import Any, AsyncIterator

from pgs3backup.adapters.base import DatabaseClient, RowCursor
from pgs3backup.backup.deadline import Deadline
from pgs3backup.errors import DeadlineExceeded, QueryError, RowScanError

logger = logging.getLogger(__name__)


class RowSource:
    """Streams the rows of one query through a ``RowCursor``.

    The cursor is held from ``open()`` until ``close()``.  Using the source
    as an async context manager guarantees the cursor is released on every
    exit path, including a failure downstream of the iteration.

    Args:
        client: Connected database client.
        sql: Query text.
        deadline: Export-wide deadline applied to every round trip.
        params: Optional named query parameters.
        batch_size: Rows fetched per round trip.
    """

    def __init__(
        self,
        client: DatabaseClient,
        sql: str,
        *,
        deadline: Deadline,
        params: dict[str, Any] | None = None,
        batch_size: int = 500,
    ) -> None:
        self._client = client
        self._sql = sql
        self._params = params
        self._deadline = deadline
        self._batch_size = batch_size
        self._cursor: RowCursor | None = None
        self._consumed = False
        self._closed = False

    @property
    def columns(self) -> list[str]:
        if self._cursor is None:
            raise RuntimeError("RowSource not opened. Use async with or call open().")
        return self._cursor.columns

    async def open(self) -> None:
        """Execute the query and hold its cursor."""
        if self._closed:
            raise QueryError("RowSource is closed; issue a new query to restart")
        if self._cursor is not None:
            return
        try:
            async with self._deadline.scope():
                self._cursor = await self._client.cursor(self._sql, self._params)
        except TimeoutError as e:
            raise DeadlineExceeded(f"Deadline exceeded executing: {self._sql}") from e

    async def close(self) -> None:
        """Release the cursor.  Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        cursor, self._cursor = self._cursor, None
        if cursor is not None:
            await cursor.close()

    async def __aenter__(self) -> "RowSource":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __aiter__(self) -> AsyncIterator[tuple]:
        if self._consumed:
            raise QueryError("RowSource is not restartable; issue a new query")
        self._consumed = True
        return self._iter_rows()

    async def _iter_rows(self) -> AsyncIterator[tuple]:
        await self.open()
        cursor = self._cursor
        try:
            while True:
                try:
                    async with self._deadline.scope():
                        batch = await cursor.fetch(self._batch_size)
                except TimeoutError as e:
                    raise DeadlineExceeded(f"Deadline exceeded fetching rows: {self._sql}") from e
                except (ValueError, UnicodeDecodeError) as e:
                    raise RowScanError(f"Failed to decode row: {e}") from e
                if not batch:
                    break
                for row in batch:
                    yield row
        finally:
            await self.close()
