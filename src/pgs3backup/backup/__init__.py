"""Streaming export pipeline.

Stages, leaf first: ``rows`` (Row Source), ``records`` (Record Encoder),
``tables`` (Table Extractor), ``archive`` (Archive Builder), ``compress``
(Compression Stage), ``pipe`` and ``pipeline`` (Pipeline Coordinator).

Usage:
    from pgs3backup.backup.pipeline import run_backup, write_archive
    from pgs3backup.backup import Deadline, AsyncPipe, validate_archive
"""

from pgs3backup.backup.archive import ArchiveBuilder, validate_archive
from pgs3backup.backup.compress import GzipStage
from pgs3backup.backup.deadline import Deadline
from pgs3backup.backup.pipe import AsyncPipe
from pgs3backup.backup.records import RecordWriter, encode_fields
from pgs3backup.backup.rows import RowSource

__all__ = [
    "ArchiveBuilder",
    "validate_archive",
    "GzipStage",
    "Deadline",
    "AsyncPipe",
    "RecordWriter",
    "encode_fields",
    "RowSource",
]
