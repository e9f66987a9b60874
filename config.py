"""
config.py
---------
Centralised configuration management for the forum migration core.

Loads settings from environment variables (with .env file support via
python-dotenv). Provides typed settings as frozen dataclasses so
configuration is immutable for the duration of a run.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

_env_path = Path(__file__).parent / ".env"
if _env_path.exists():
    load_dotenv(dotenv_path=_env_path)


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _env_path_or_none(name: str) -> Path | None:
    value = os.getenv(name)
    return Path(value) if value else None


@dataclass(frozen=True)
class SourceConfig:
    """Connection settings for the legacy forum database."""
    driver: str = field(
        default_factory=lambda: os.getenv("SOURCE_DB_DRIVER", "mysql").lower()
    )
    host: str = field(default_factory=lambda: os.getenv("SOURCE_DB_HOST", "localhost"))
    port: int | None = field(
        default_factory=lambda: int(os.environ["SOURCE_DB_PORT"])
        if os.getenv("SOURCE_DB_PORT") else None
    )
    database: str = field(default_factory=lambda: os.getenv("SOURCE_DB_NAME", ""))
    charset: str = field(default_factory=lambda: os.getenv("SOURCE_DB_CHARSET", "utf8mb4"))
    connect_timeout: int = field(
        default_factory=lambda: int(os.getenv("SOURCE_DB_CONNECT_TIMEOUT", "10"))
    )
    table_prefix: str = field(default_factory=lambda: os.getenv("SOURCE_TABLE_PREFIX", ""))
    # Root of the legacy installation; avatars and attachments live below it.
    file_system_path: Path | None = field(
        default_factory=lambda: _env_path_or_none("SOURCE_FILE_SYSTEM_PATH")
    )
    # Username / password are collected at runtime and never stored here.

    @property
    def default_port(self) -> int:
        if self.port:
            return self.port
        return 5432 if self.driver == "postgresql" else 3306


@dataclass(frozen=True)
class MigrationConfig:
    """Coordination settings for a migration run."""
    chunk_size: int = field(
        default_factory=lambda: int(os.getenv("MIGRATION_CHUNK_SIZE", "1000"))
    )
    mapping_file: Path | None = field(
        default_factory=lambda: _env_path_or_none("MIGRATION_MAPPING_FILE")
    )
    file_target_dir: Path = field(
        default_factory=lambda: Path(os.getenv("MIGRATION_FILE_TARGET_DIR", "imported_files"))
    )
    dry_run: bool = field(default_factory=lambda: _env_flag("MIGRATION_DRY_RUN"))
    discard_mappings: bool = field(
        default_factory=lambda: _env_flag("MIGRATION_DISCARD_MAPPINGS")
    )
    log_level: str = field(
        default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper()
    )
    log_file: str | None = field(
        default_factory=lambda: os.getenv("LOG_FILE")  # None -> log to stderr only
    )


@dataclass(frozen=True)
class AppConfig:
    """Root application configuration."""
    source: SourceConfig = field(default_factory=SourceConfig)
    migration: MigrationConfig = field(default_factory=MigrationConfig)
    app_name: str = "Forum Migration Core"
    app_version: str = "1.0.0"


def load_config() -> AppConfig:
    """
    Build and return the application configuration.

    Returns:
        AppConfig: Fully populated (and frozen) configuration object.

    Example::

        cfg = load_config()
        print(cfg.source.driver)          # "mysql"
        print(cfg.migration.chunk_size)   # 1000
    """
    return AppConfig()


# Module-level singleton used throughout the application
CONFIG: AppConfig = load_config()


def get_log_level() -> int:
    """Convert string log level from config to logging module constant."""
    level = getattr(logging, CONFIG.migration.log_level, None)
    if not isinstance(level, int):
        return logging.INFO
    return level
