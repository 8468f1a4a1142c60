"""Local-directory sink.

Writes the stream to a hidden temporary file next to the destination and
renames it into place only after the stream ended cleanly, so a failed
backup never leaves a partial file under the final name.

Usage:
    sink = LocalDirectorySink("./backups")
    path = await sink.upload(pipe.reader, "nightly", "mydb", compressed=True)
"""

import asyncio
import logging
import os
from pathlib import Path

from pgs3backup.backup.pipe import PipeReader
from pgs3backup.errors import SinkError
from pgs3backup.storage.base import build_object_key

logger = logging.getLogger(__name__)


class LocalDirectorySink:
    """``BackupSink`` storing backups under a local directory.

    Args:
        directory: Root directory; the key's prefix becomes a subdirectory.
    """

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    async def upload(
        self,
        stream: PipeReader,
        prefix: str,
        name: str,
        compressed: bool,
    ) -> str:
        key = build_object_key(prefix, name, compressed)
        target = self.directory / key
        partial = target.with_name(f".{target.name}.partial")
        try:
            await asyncio.to_thread(target.parent.mkdir, parents=True, exist_ok=True)
            handle = await asyncio.to_thread(open, partial, "wb")
        except OSError as e:
            raise SinkError(f"Cannot write to {target.parent}: {e}") from e

        try:
            with handle:
                async for chunk in stream:
                    await asyncio.to_thread(handle.write, chunk)
            await asyncio.to_thread(os.replace, partial, target)
        except OSError as e:
            partial.unlink(missing_ok=True)
            raise SinkError(f"Failed to write {target}: {e}") from e
        except BaseException:
            partial.unlink(missing_ok=True)
            raise

        logger.info("Wrote backup to %s", target)
        return str(target.resolve())
