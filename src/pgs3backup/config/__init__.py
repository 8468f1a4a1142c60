"""Configuration management: environment / TOML loading and config models.

Usage:
    >>> from pgs3backup.config import load_backup_config, BackupConfig
"""

from pgs3backup.config.loader import load_backup_config
from pgs3backup.config.models import BackupConfig, DatabaseSettings, StorageSettings

__all__ = ["load_backup_config", "BackupConfig", "DatabaseSettings", "StorageSettings"]
