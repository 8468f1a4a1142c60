"""PostgreSQL schema introspection via information_schema.

This module queries the live database to extract what a backup needs:
- Base tables outside the system schemas, in discovery order
- Columns per table: name, data type, nullability, default
- ``CREATE TABLE`` text rebuilt from that metadata

Every query runs under the export's ``Deadline`` and any failure is
raised as ``MetadataError``.
"""

import logging

from pgs3backup.adapters.base import DatabaseClient
from pgs3backup.backup.deadline import Deadline
from pgs3backup.backup.rows import RowSource
from pgs3backup.errors import BackupStageError, MetadataError
from pgs3backup.schema.models import ColumnDescriptor, TableRef

logger = logging.getLogger(__name__)

TABLES_QUERY = """
    SELECT table_schema, table_name
    FROM information_schema.tables
    WHERE table_type = 'BASE TABLE'
      AND table_schema NOT IN ('pg_catalog', 'information_schema')
    ORDER BY table_schema, table_name
"""

COLUMNS_QUERY = """
    SELECT
        column_name,
        data_type,
        is_nullable,
        column_default
    FROM information_schema.columns
    WHERE table_schema = :schema
      AND table_name = :table
    ORDER BY ordinal_position
"""


def render_create_table(table: TableRef, columns: list[ColumnDescriptor]) -> str:
    """Build a ``CREATE TABLE`` statement with columns in physical order."""
    body = ",\n".join(f"\t{column.render()}" for column in columns)
    return f"CREATE TABLE {table.qualified_name} (\n{body}\n);"


class SchemaIntrospector:
    """Introspects PostgreSQL catalog metadata over a ``DatabaseClient``.

    The client must already be connected; the introspector never opens or
    closes the connection itself.

    Usage:
        introspector = SchemaIntrospector(client, deadline)
        tables = await introspector.list_tables()
        columns = await introspector.get_columns(tables[0])
    """

    def __init__(self, client: DatabaseClient, deadline: Deadline) -> None:
        self._client = client
        self._deadline = deadline

    async def list_tables(self) -> list[TableRef]:
        """Get all user base tables, sorted by schema then table name.

        The sort is repeated client-side on raw bytes so the order does not
        depend on the server collation.
        """
        rows = await self._fetch_all(TABLES_QUERY, None, "list tables")
        tables = sorted(
            (TableRef(schema_name=schema, table_name=name) for schema, name in rows),
            key=TableRef.sort_key,
        )
        logger.info("Discovered %d tables", len(tables))
        return tables

    async def get_columns(self, table: TableRef) -> list[ColumnDescriptor]:
        """Get columns for a table, ordered by physical position."""
        rows = await self._fetch_all(
            COLUMNS_QUERY,
            {"schema": table.schema_name, "table": table.table_name},
            f"read columns of {table}",
        )
        return [
            ColumnDescriptor(
                name=name,
                declared_type=data_type,
                nullable=(is_nullable != "NO"),
                default_expression=default or None,
            )
            for name, data_type, is_nullable, default in rows
        ]

    async def create_table_statement(self, table: TableRef) -> str:
        """Rebuild the ``CREATE TABLE`` statement for one table."""
        return render_create_table(table, await self.get_columns(table))

    async def _fetch_all(self, sql: str, params: dict | None, action: str) -> list[tuple]:
        try:
            async with RowSource(
                self._client, sql, params=params, deadline=self._deadline
            ) as source:
                return [row async for row in source]
        except BackupStageError as e:
            raise MetadataError(f"Failed to {action}: {e}") from e
