"""Database client protocol definition.

Defines the ``DatabaseClient`` and ``RowCursor`` Protocols the backup
pipeline reads through.  All methods are ``async def`` -- the library is
async-first.

Implementations map driver exceptions onto the ``pgs3backup.errors``
taxonomy: ``DatabaseConnectionError`` from ``connect()``, ``QueryError``
from ``cursor()`` and ``RowScanError`` from ``RowCursor.fetch()``.

Usage:
    from pgs3backup.adapters.base import DatabaseClient

    async def count_rows(client: DatabaseClient) -> int:
        await client.connect()
        cursor = await client.cursor("SELECT * FROM users")
        try:
            total = 0
            while batch := await cursor.fetch(500):
                total += len(batch)
            return total
        finally:
            await cursor.close()
            await client.close()
"""

from typing import Any, Protocol


class RowCursor(Protocol):
    """An open, forward-only cursor over the rows of one query."""

    @property
    def columns(self) -> list[str]:
        """Column names of the result, in select-list order."""
        ...

    async def fetch(self, size: int) -> list[tuple]:
        """Fetch up to ``size`` rows.

        Returns:
            List of row tuples with driver-native values.  An empty list
            means the cursor is exhausted.

        Raises:
            RowScanError: If a row cannot be fetched or decoded.
        """
        ...

    async def close(self) -> None:
        """Release the cursor.  Closing twice is a no-op."""
        ...


class DatabaseClient(Protocol):
    """Database client interface that all adapters must implement.

    A client owns exactly one connection for the duration of an export.
    """

    async def connect(self) -> None:
        """Open the connection.

        Raises:
            DatabaseConnectionError: If the database cannot be reached.
        """
        ...

    async def cursor(self, sql: str, params: dict[str, Any] | None = None) -> RowCursor:
        """Execute a query and return a streaming cursor over its rows.

        Args:
            sql: SQL text, with ``:name`` placeholders for ``params``.
            params: Optional dict of named parameters.

        Raises:
            QueryError: If the query cannot be prepared or executed.

        Example:
            cursor = await client.cursor(
                "SELECT column_name FROM information_schema.columns "
                "WHERE table_name = :table",
                {"table": "users"},
            )
        """
        ...

    async def close(self) -> None:
        """Close the connection and release the engine.

        Closing twice is a no-op.
        """
        ...
