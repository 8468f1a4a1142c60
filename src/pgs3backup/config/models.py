"""Pydantic models for backup configuration."""

from typing import Literal

from pydantic import BaseModel, Field
from sqlalchemy.engine import URL


# ============================================================================
# Configuration Models
# ============================================================================


class DatabaseSettings(BaseModel):
    """PostgreSQL connection parameters."""

    host: str = "localhost"
    port: int = Field(default=5432, ge=1, le=65535)
    name: str
    user: str = "postgres"
    password: str = ""
    sslmode: str = "disable"

    def url(self) -> URL:
        """SQLAlchemy URL for the ``asyncpg`` driver (password escaped)."""
        return URL.create(
            "postgresql+asyncpg",
            username=self.user,
            password=self.password or None,
            host=self.host,
            port=self.port,
            database=self.name,
            query={"ssl": self.sslmode} if self.sslmode else {},
        )


class StorageSettings(BaseModel):
    """S3-compatible object store parameters."""

    bucket: str
    region: str = "us-east-1"
    access_key: str
    secret_key: str
    endpoint: str | None = None  # MinIO and other S3-compatible stores


class BackupConfig(BaseModel):
    """Complete configuration of one backup run."""

    database: DatabaseSettings
    storage: StorageSettings | None = None  # None when writing to a local directory
    prefix: str = "backups"
    compress: bool = True
    timeout_seconds: float = Field(default=300.0, gt=0)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
