"""Archive Builder: framed tar stream of named documents.

Each entry is written as a tar header carrying the entry name and its
exact byte length, followed by the body and NUL padding to the 512-byte
block size.  Because the header needs the length up front, each body is
fully rendered before its header is emitted; peak memory is bounded by the
largest single entry, never by the whole database.

Also provides ``validate_archive()``, a sync local-file check that reads
frames back sequentially and verifies the layout.

Usage:
    archive = ArchiveBuilder(writer)
    await archive.add("schema.sql", schema_bytes)
    await archive.add("data/public.users.csv", csv_bytes)
    await archive.close()

    report = validate_archive("backups/mydb_2026-01-15_10-00-00.dump.gz")
"""

import csv
import io
import logging
import re
import tarfile
import time
import zlib
from pathlib import Path

from pgs3backup.backup.pipe import ByteWriter
from pgs3backup.backup.records import TEXT_ENCODING, TEXT_ERRORS
from pgs3backup.errors import FramingError

logger = logging.getLogger(__name__)

SCHEMA_ENTRY = "schema.sql"
DATA_ENTRY_PATTERN = re.compile(r"^data/[^/]+\.[^/]+\.csv$")

BLOCKSIZE = tarfile.BLOCKSIZE
RECORDSIZE = tarfile.RECORDSIZE
DEFAULT_CHUNK_SIZE = 64 * 1024


class ArchiveBuilder:
    """Writes archive entries to a downstream ``ByteWriter``.

    Args:
        out: Downstream stage (compressor or pipe writer).
        chunk_size: Size of the slices a body is written in.
        mtime: Modification time stamped on entries (default: now).
    """

    def __init__(
        self,
        out: ByteWriter,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        mtime: int | None = None,
    ) -> None:
        self._out = out
        self._chunk_size = chunk_size
        self._mtime = mtime
        self._offset = 0
        self._finished = False
        self.entries: list[tuple[str, int]] = []

    async def add(self, name: str, body: bytes) -> None:
        """Write one entry: header with exact length, body, padding.

        Raises:
            FramingError: If the header cannot be built or the archive is
                already closed.
        """
        if self._finished:
            raise FramingError(f"Cannot add {name}: archive is closed")

        info = tarfile.TarInfo(name)
        info.size = len(body)
        info.mode = 0o600
        info.mtime = self._mtime if self._mtime is not None else int(time.time())
        try:
            header = info.tobuf(tarfile.PAX_FORMAT, TEXT_ENCODING, TEXT_ERRORS)
        except (ValueError, UnicodeError) as e:
            raise FramingError(f"Cannot build header for {name}: {e}") from e

        await self._emit(header)
        view = memoryview(body)
        for start in range(0, len(view), self._chunk_size):
            await self._emit(view[start:start + self._chunk_size])
        remainder = len(body) % BLOCKSIZE
        if remainder:
            await self._emit(tarfile.NUL * (BLOCKSIZE - remainder))

        self.entries.append((name, len(body)))
        logger.debug("Archived %s (%d bytes)", name, len(body))

    async def close(self) -> None:
        """Write the end-of-archive marker and close downstream."""
        if self._finished:
            return
        await self._emit(tarfile.NUL * (BLOCKSIZE * 2))
        remainder = self._offset % RECORDSIZE
        if remainder:
            await self._emit(tarfile.NUL * (RECORDSIZE - remainder))
        self._finished = True
        await self._out.close()

    def abort(self, error: BaseException | None = None) -> None:
        """Stop without an end-of-archive marker and abort downstream."""
        if self._finished:
            return
        self._finished = True
        self._out.abort(error)

    async def _emit(self, data: bytes | memoryview) -> None:
        await self._out.write(bytes(data))
        self._offset += len(data)


def _count_records(body: bytes) -> int:
    text = body.decode(TEXT_ENCODING, TEXT_ERRORS)
    return sum(1 for _ in csv.reader(io.StringIO(text, newline="")))


def validate_archive(archive_path: str | Path) -> dict:
    """Validate a local archive file by reading its frames back in order.

    Gzip-compressed and plain archives are both accepted.  Checks that
    ``schema.sql`` is the first entry, that every other entry is a data
    document named ``data/<schema>.<table>.csv``, that names are unique
    and that every frame is complete.

    This function is **sync** -- it only reads a local file.

    Returns:
        Dict with ``valid`` (bool), ``errors`` (list[str]),
        ``warnings`` (list[str]) and ``entries`` (list of dicts with
        ``name``, ``size`` and, for data documents, ``records``).
    """
    errors: list[str] = []
    warnings: list[str] = []
    entries: list[dict] = []

    path = Path(archive_path)
    if not path.exists():
        errors.append(f"Archive file not found: {path}")
        return {"valid": False, "errors": errors, "warnings": warnings, "entries": entries}

    seen: set[str] = set()
    try:
        with tarfile.open(path, "r:*") as tar:
            for member in tar:
                if not member.isfile():
                    warnings.append(f"Unexpected non-file entry: {member.name}")
                    continue
                handle = tar.extractfile(member)
                body = handle.read() if handle is not None else b""
                if len(body) != member.size:
                    errors.append(
                        f"Entry {member.name} declares {member.size} bytes "
                        f"but holds {len(body)}"
                    )
                entry: dict = {"name": member.name, "size": member.size}

                if member.name in seen:
                    errors.append(f"Duplicate entry: {member.name}")
                seen.add(member.name)

                if not entries and member.name != SCHEMA_ENTRY:
                    errors.append(f"First entry must be {SCHEMA_ENTRY}, found {member.name}")
                elif entries and not DATA_ENTRY_PATTERN.match(member.name):
                    warnings.append(f"Unexpected entry name: {member.name}")

                if DATA_ENTRY_PATTERN.match(member.name):
                    entry["records"] = _count_records(body)
                    if entry["records"] == 0:
                        errors.append(f"Data document {member.name} has no header record")
                entries.append(entry)
            # Read to the end so a truncated compressed stream is detected
            while tar.fileobj.read(RECORDSIZE):
                pass
    except (tarfile.TarError, EOFError, OSError, zlib.error) as e:
        errors.append(f"Unreadable or truncated archive: {e}")

    if not entries and not errors:
        errors.append("Archive contains no entries")

    valid = len(errors) == 0
    return {"valid": valid, "errors": errors, "warnings": warnings, "entries": entries}
