"""Pipeline Coordinator: database -> archive -> gzip -> pipe -> sink.

The producer (table extraction, archive framing, optional compression)
runs as an asyncio task writing into a bounded ``AsyncPipe``; the sink
reads the other end concurrently.  Whichever side fails first closes the
pipe with its error.  A producer failure reaches the sink on its next
read; a sink failure cancels the producer task so no further query is
issued.  Either way ``run_backup()`` raises one ``BackupError`` naming
the failing stage.  The database connection, cursor, archive writer and compressor
are all released before ``run_backup()`` returns.

Usage:
    from pgs3backup.backup.pipeline import run_backup

    location = await run_backup(
        AsyncPostgresAdapter(url),
        S3Sink(bucket="backups", ...),
        name="mydb",
        prefix="nightly",
        compress=True,
        deadline=Deadline(300),
    )
"""

import asyncio
import logging

from pgs3backup.adapters.base import DatabaseClient
from pgs3backup.backup.archive import DEFAULT_CHUNK_SIZE, SCHEMA_ENTRY, ArchiveBuilder
from pgs3backup.backup.compress import GzipStage
from pgs3backup.backup.deadline import Deadline
from pgs3backup.backup.pipe import DEFAULT_CAPACITY, AsyncPipe, ByteWriter
from pgs3backup.backup.tables import TableExtractor
from pgs3backup.errors import BackupError, BackupStageError, SinkError
from pgs3backup.schema.models import TableRef
from pgs3backup.storage.base import BackupSink

logger = logging.getLogger(__name__)


async def write_archive(
    client: DatabaseClient,
    out: ByteWriter,
    *,
    deadline: Deadline,
    batch_size: int = 500,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> list[TableRef]:
    """Produce the full archive into ``out`` and close it.

    Connects ``client``, writes ``schema.sql`` and then one data document
    per table in discovery order.  On any failure the archive is aborted
    (no end-of-archive marker) with the error passed downstream.  The
    client is closed on every path.

    Returns:
        The tables written, in archive order.
    """
    archive = ArchiveBuilder(out, chunk_size=chunk_size)
    try:
        await client.connect()
        extractor = TableExtractor(client, deadline, batch_size=batch_size)
        tables = await extractor.introspector.list_tables()
        await archive.add(SCHEMA_ENTRY, await extractor.schema_document(tables))
        for table in tables:
            await archive.add(table.data_entry_name, await extractor.data_document(table))
        await archive.close()
    except BaseException as e:
        archive.abort(e)
        raise
    finally:
        await client.close()
    return tables


async def _produce(
    client: DatabaseClient,
    pipe: AsyncPipe,
    out: ByteWriter,
    deadline: Deadline,
    batch_size: int,
) -> list[TableRef]:
    try:
        return await write_archive(client, out, deadline=deadline, batch_size=batch_size)
    except BaseException as e:
        pipe.writer.abort(e)
        raise


async def _settle(task: asyncio.Task) -> BaseException | None:
    """Wait for ``task`` and return its exception without raising it."""
    await asyncio.wait([task])
    if task.cancelled():
        return None
    return task.exception()


def _as_backup_error(error: BaseException) -> BackupError:
    return BackupError(getattr(error, "stage", "backup"), error)


async def run_backup(
    client: DatabaseClient,
    sink: BackupSink,
    *,
    name: str,
    prefix: str = "backups",
    compress: bool = True,
    deadline: Deadline | None = None,
    capacity: int = DEFAULT_CAPACITY,
    batch_size: int = 500,
) -> str:
    """Run one export from ``client`` into ``sink``.

    Args:
        client: Database client; connected and closed by the pipeline.
        sink: Consumer of the byte stream.
        name: Logical backup name, usually the database name.
        prefix: Destination prefix handed to the sink.
        compress: Gzip the archive stream.
        deadline: Export-wide query deadline (default: 5 minutes from now).
        capacity: Pipe capacity in chunks.
        batch_size: Rows fetched per round trip.

    Returns:
        Location identifier returned by the sink.

    Raises:
        BackupError: Wrapping the first failure of any stage.
    """
    deadline = deadline or Deadline()
    pipe = AsyncPipe(capacity)
    out: ByteWriter = GzipStage(pipe.writer) if compress else pipe.writer

    logger.info("Starting backup of %s (compress=%s)", name, compress)
    producer = asyncio.create_task(_produce(client, pipe, out, deadline, batch_size))

    try:
        location = await sink.upload(pipe.reader, prefix, name, compress)
    except Exception as e:
        if isinstance(e, BackupStageError):
            error: BaseException = e
        else:
            error = SinkError(f"Upload failed: {e}")
            error.__cause__ = e
        pipe.reader.close(error)
        # No further queries once the upload has failed
        producer.cancel()
        await _settle(producer)
        failure = pipe.error or error
        logger.error("Backup of %s failed: %s", name, failure)
        raise _as_backup_error(failure) from failure
    except BaseException:
        pipe.reader.close()
        producer.cancel()
        await _settle(producer)
        raise

    if not pipe.reader.eof:
        pipe.reader.close(SinkError("Sink returned before the end of the stream"))
        producer.cancel()
    producer_error = await _settle(producer)
    failure = pipe.error or producer_error
    if failure is not None:
        logger.error("Backup of %s failed: %s", name, failure)
        raise _as_backup_error(failure) from failure

    tables = producer.result()
    logger.info(
        "Backup of %s complete: %d tables, %d bytes, stored at %s",
        name, len(tables), pipe.bytes_written, location,
    )
    return location
