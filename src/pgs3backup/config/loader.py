"""Configuration loading from environment, ``.env`` and an optional TOML file.

Environment names follow the conventional ``DB_*`` / ``S3_*`` layout::

    DB_HOST, DB_PORT, DB_NAME, DB_USER, DB_PASSWORD, DB_SSLMODE
    S3_BUCKET, S3_REGION, S3_ACCESS_KEY, S3_SECRET_KEY, S3_ENDPOINT
    BACKUP_PREFIX, COMPRESS, BACKUP_TIMEOUT, LOG_LEVEL

A TOML file passed explicitly overrides the environment::

    [database]
    host = "db.internal"
    name = "app"

    [storage]
    bucket = "backups"
    endpoint = "http://minio:9000"

    [backup]
    prefix = "nightly"
    compress = true
    timeout = 600
"""

import tomllib
from pathlib import Path
from typing import Any

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from pgs3backup.config.models import BackupConfig, DatabaseSettings, StorageSettings

# TOML section -> {key: settings field}
_TOML_FIELDS: dict[str, dict[str, str]] = {
    "database": {
        "host": "db_host",
        "port": "db_port",
        "name": "db_name",
        "user": "db_user",
        "password": "db_password",
        "sslmode": "db_sslmode",
    },
    "storage": {
        "bucket": "s3_bucket",
        "region": "s3_region",
        "access_key": "s3_access_key",
        "secret_key": "s3_secret_key",
        "endpoint": "s3_endpoint",
    },
    "backup": {
        "prefix": "backup_prefix",
        "compress": "compress",
        "timeout": "backup_timeout",
        "log_level": "log_level",
    },
}


class EnvSettings(BaseSettings):
    """Flat settings read from the process environment and ``.env``."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = ""
    db_user: str = "postgres"
    db_password: str = ""
    db_sslmode: str = "disable"

    s3_bucket: str = ""
    s3_region: str = "us-east-1"
    s3_access_key: str = Field(
        default="",
        validation_alias=AliasChoices("S3_ACCESS_KEY", "AWS_ACCESS_KEY_ID"),
    )
    s3_secret_key: str = Field(
        default="",
        validation_alias=AliasChoices("S3_SECRET_KEY", "AWS_SECRET_ACCESS_KEY"),
    )
    s3_endpoint: str = ""

    backup_prefix: str = "backups"
    compress: bool = True
    backup_timeout: float = 300.0
    log_level: str = "INFO"


def _read_toml(config_path: Path) -> dict[str, Any]:
    """Flatten a TOML config file into ``EnvSettings`` field values."""
    if not config_path.exists():
        raise FileNotFoundError(f"Backup config not found: {config_path}")

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    values: dict[str, Any] = {}
    for section, table in data.items():
        if section not in _TOML_FIELDS:
            raise ValueError(f"Unknown config section [{section}] in {config_path.name}")
        if not isinstance(table, dict):
            raise ValueError(f"Config section [{section}] must be a table")
        for key, value in table.items():
            field = _TOML_FIELDS[section].get(key)
            if field is None:
                raise ValueError(f"Unknown key '{key}' in [{section}] of {config_path.name}")
            values[field] = value
    return values


def load_backup_config(
    config_path: Path | None = None,
    *,
    require_storage: bool = True,
    env_file: str | Path | None = ".env",
) -> BackupConfig:
    """Load backup configuration.

    Args:
        config_path: Optional TOML file; its values override the environment.
        require_storage: Require S3 bucket and credentials.  Pass ``False``
            when writing to a local directory.
        env_file: ``.env`` file to read (``None`` to skip).

    Returns:
        BackupConfig ready for ``run_backup()``.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist.
        ValueError: If required values are missing or invalid.
    """
    overrides = _read_toml(Path(config_path)) if config_path is not None else {}
    env = EnvSettings(_env_file=env_file, **overrides)

    if not env.db_name:
        raise ValueError("DB_NAME is required")

    storage_values = {
        "S3_BUCKET": env.s3_bucket,
        "S3_ACCESS_KEY": env.s3_access_key,
        "S3_SECRET_KEY": env.s3_secret_key,
    }
    missing = [name for name, value in storage_values.items() if not value]
    if require_storage and missing:
        raise ValueError(f"Missing required settings: {', '.join(missing)}")

    storage = None
    if not missing:
        storage = StorageSettings(
            bucket=env.s3_bucket,
            region=env.s3_region,
            access_key=env.s3_access_key,
            secret_key=env.s3_secret_key,
            endpoint=env.s3_endpoint or None,
        )

    return BackupConfig(
        database=DatabaseSettings(
            host=env.db_host,
            port=env.db_port,
            name=env.db_name,
            user=env.db_user,
            password=env.db_password,
            sslmode=env.db_sslmode,
        ),
        storage=storage,
        prefix=env.backup_prefix,
        compress=env.compress,
        timeout_seconds=env.backup_timeout,
        log_level=env.log_level.upper(),
    )
