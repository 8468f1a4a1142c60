"""Table Extractor: schema text and data documents for discovered tables.

Tables are processed strictly one after another.  A failure on any table
aborts the export; there is no per-table retry.

Usage:
    extractor = TableExtractor(client, deadline)
    schema_sql = await extractor.schema_document(tables)
    csv_bytes = await extractor.data_document(tables[0])
"""

import logging

from pgs3backup.adapters.base import DatabaseClient
from pgs3backup.backup.deadline import Deadline
from pgs3backup.backup.records import RecordWriter, encode_fields
from pgs3backup.backup.rows import RowSource
from pgs3backup.errors import ExportError, QueryError, RowScanError
from pgs3backup.schema.introspector import SchemaIntrospector
from pgs3backup.schema.models import TableRef

logger = logging.getLogger(__name__)


class TableExtractor:
    """Builds the documents that go into the archive.

    Args:
        client: Connected database client, owned by the caller.
        deadline: Export-wide deadline shared by every query.
        batch_size: Rows fetched per round trip while exporting data.
    """

    def __init__(
        self,
        client: DatabaseClient,
        deadline: Deadline,
        batch_size: int = 500,
    ) -> None:
        self._client = client
        self._deadline = deadline
        self._batch_size = batch_size
        self.introspector = SchemaIntrospector(client, deadline)

    async def schema_document(self, tables: list[TableRef]) -> bytes:
        """Render ``schema.sql``: one ``CREATE TABLE`` per table, blank-line separated.

        Raises:
            MetadataError: If a catalog lookup fails.
        """
        parts: list[str] = []
        for table in tables:
            statement = await self.introspector.create_table_statement(table)
            parts.append(statement + "\n\n")
        return "".join(parts).encode("utf-8")

    async def data_document(self, table: TableRef) -> bytes:
        """Render the full delimited-text document of a table's rows.

        Raises:
            ExportError: Wrapping the ``QueryError`` / ``RowScanError`` that
                stopped the export of this table.
        """
        sql = f"SELECT * FROM {table.qualified_name}"
        writer = RecordWriter()
        try:
            async with RowSource(
                self._client, sql, deadline=self._deadline, batch_size=self._batch_size
            ) as source:
                columns = source.columns
                writer.write(columns)
                async for row in source:
                    writer.write(encode_fields(row, len(columns)))
        except (QueryError, RowScanError) as e:
            raise ExportError(str(table), e) from e
        logger.debug("Exported %s: %d rows", table, writer.records - 1)
        return writer.getvalue()
