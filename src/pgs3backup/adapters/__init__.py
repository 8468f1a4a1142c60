"""Database adapters package.

Provides the ``DatabaseClient`` / ``RowCursor`` Protocols and the async
PostgreSQL adapter used by the backup pipeline.

Usage:
    from pgs3backup.adapters import DatabaseClient, AsyncPostgresAdapter
"""

from pgs3backup.adapters.base import DatabaseClient, RowCursor
from pgs3backup.adapters.postgres import AsyncPostgresAdapter

__all__ = [
    "DatabaseClient",
    "RowCursor",
    "AsyncPostgresAdapter",
]
