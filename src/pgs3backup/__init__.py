"""pgs3backup: Streaming PostgreSQL export to S3-compatible object storage.

Reads every user table of a PostgreSQL database, frames the schema and one
CSV document per table into a tar archive, optionally gzips it, and streams
the result to an object store without staging the whole export in memory
or on disk.

Usage:
    from pgs3backup import AsyncPostgresAdapter, S3Sink, run_backup, Deadline
    from pgs3backup import load_backup_config, BackupConfig
    from pgs3backup import LocalDirectorySink, validate_archive
"""

__version__ = "0.1.0"

# Adapters
from pgs3backup.adapters.base import DatabaseClient
from pgs3backup.adapters.postgres import AsyncPostgresAdapter

# Config
from pgs3backup.config.loader import load_backup_config
from pgs3backup.config.models import BackupConfig

# Errors
from pgs3backup.errors import BackupError

# Schema
from pgs3backup.schema.introspector import SchemaIntrospector
from pgs3backup.schema.models import ColumnDescriptor, TableRef

# Pipeline
from pgs3backup.backup.archive import validate_archive
from pgs3backup.backup.deadline import Deadline
from pgs3backup.backup.pipeline import run_backup, write_archive

# Storage
from pgs3backup.storage.base import build_object_key
from pgs3backup.storage.local import LocalDirectorySink
from pgs3backup.storage.s3 import S3Sink

__all__ = [
    # Adapters
    "DatabaseClient",
    "AsyncPostgresAdapter",
    # Config
    "load_backup_config",
    "BackupConfig",
    # Errors
    "BackupError",
    # Schema
    "SchemaIntrospector",
    "ColumnDescriptor",
    "TableRef",
    # Pipeline
    "run_backup",
    "write_archive",
    "Deadline",
    "validate_archive",
    # Storage
    "build_object_key",
    "LocalDirectorySink",
    "S3Sink",
]
