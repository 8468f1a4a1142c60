"""Storage sinks for the backup stream.

Usage:
    from pgs3backup.storage import S3Sink, LocalDirectorySink, build_object_key
"""

from pgs3backup.storage.base import BackupSink, build_object_key
from pgs3backup.storage.local import LocalDirectorySink
from pgs3backup.storage.s3 import S3Sink

__all__ = [
    "BackupSink",
    "build_object_key",
    "LocalDirectorySink",
    "S3Sink",
]
