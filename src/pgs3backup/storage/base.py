"""Sink protocol and object naming shared by all storage backends.

Usage:
    from pgs3backup.storage.base import BackupSink, build_object_key

    key = build_object_key("backups", "mydb", compressed=True)
    # "backups/mydb_2026-01-15_10-00-00.dump.gz"
"""

from datetime import datetime, timezone
from typing import Protocol

from pgs3backup.backup.pipe import PipeReader

TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"


def build_object_key(
    prefix: str,
    name: str,
    compressed: bool,
    now: datetime | None = None,
) -> str:
    """Build ``<prefix>/<name>_<UTC timestamp>.dump[.gz]``.

    An empty prefix yields a key without a leading slash.
    """
    moment = now or datetime.now(timezone.utc)
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    filename = f"{name}_{moment.strftime(TIMESTAMP_FORMAT)}.dump"
    if compressed:
        filename += ".gz"
    prefix = prefix.strip("/")
    return f"{prefix}/{filename}" if prefix else filename


class BackupSink(Protocol):
    """Consumes the backup byte stream, all-or-nothing per call."""

    async def upload(
        self,
        stream: PipeReader,
        prefix: str,
        name: str,
        compressed: bool,
    ) -> str:
        """Read ``stream`` to its end and store it.

        Args:
            stream: Read side of the backup pipe.
            prefix: Destination prefix (folder).
            name: Logical backup name, usually the database name.
            compressed: Whether the stream is gzip-compressed.

        Returns:
            Location identifier of the stored backup.

        Raises:
            SinkError: If the store rejects the upload.  Failures read from
                ``stream`` propagate unchanged.
        """
        ...
