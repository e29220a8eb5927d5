# ============================================================================
# tracker/base/config.py
# Application Configuration Management
# ============================================================================
#
# PURPOSE:
# Defines every tunable setting of the tracker in one place: where the
# database lives, how SQLite is configured when it is opened, whether
# migrations snapshot the database first, and how logging behaves.
#
# KEY CONCEPTS:
# 1. Dataclasses: frozen sections grouped under one TrackerConfig container
# 2. Environment Variables: every setting can be overridden (TRACKER_*)
# 3. Explicit Storage Location: there is NO default database file. Callers
#    pass a path (or ":memory:") or set TRACKER_DB_PATH.
# 4. Singleton Pattern: get_config() returns one shared instance
#
# ============================================================================

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from tracker.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Marker understood by SQLite for a private, non-persistent database
MEMORY_DB = ":memory:"

_JOURNAL_MODES = ("DELETE", "TRUNCATE", "PERSIST", "MEMORY", "WAL", "OFF")


# ============================================================================
# Storage Configuration
# ============================================================================
# Where the SQLite database lives and how each connection is tuned.

@dataclass(frozen=True)
class StorageConfig:
    # Path to the SQLite file, or ":memory:". None means "not configured";
    # opening a store from config without a path is a ConfigurationError.
    db_path: Optional[str] = None

    # WAL lets readers proceed while a writer is active (file stores only,
    # in-memory databases ignore it)
    journal_mode: str = "WAL"

    # How long SQLite waits on a locked database before failing (milliseconds)
    busy_timeout_ms: int = 5000

    # Snapshot the database file before applying pending migrations
    enable_backups: bool = True

    # Backups go next to the database file in this subdirectory
    backup_dir_name: str = ".db_backups"

    # Oldest snapshots beyond this count are garbage collected
    max_backups: int = 10

    @property
    def is_memory(self) -> bool:
        return self.db_path == MEMORY_DB

    def require_db_path(self) -> str:
        """Return the configured path, refusing to guess a default."""
        if not self.db_path:
            raise ConfigurationError(
                "No database location configured: pass a path or ':memory:', "
                "or set TRACKER_DB_PATH"
            )
        return self.db_path


# ============================================================================
# Logging Configuration
# ============================================================================

@dataclass(frozen=True)
class LogConfig:
    # DEBUG / INFO / WARNING / ERROR
    level: str = "INFO"

    format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

    # File logging is opt-in; a library should not write files on its own
    file_enabled: bool = False
    file_path: Optional[Path] = None

    # Rotation: 10 MB per file, 5 old files kept
    max_file_size_mb: int = 10
    backup_count: int = 5


# ============================================================================
# Master Configuration Container
# ============================================================================

@dataclass  # Not frozen because __post_init__ validates the sections
class TrackerConfig:
    storage: StorageConfig = field(default_factory=StorageConfig)
    log: LogConfig = field(default_factory=LogConfig)

    # Debug mode forces DEBUG logging
    debug: bool = False

    def __post_init__(self):
        if self.storage.journal_mode.upper() not in _JOURNAL_MODES:
            raise ConfigurationError(
                f"Unsupported journal mode: {self.storage.journal_mode}",
                details={"allowed": list(_JOURNAL_MODES)},
            )
        if self.storage.max_backups < 1:
            raise ConfigurationError("max_backups must be at least 1")
        if self.log.file_enabled and self.log.file_path is None:
            raise ConfigurationError("File logging enabled without a log file path")

    @classmethod
    def from_env(cls) -> "TrackerConfig":
        """Build a configuration from TRACKER_* environment variables."""
        storage = StorageConfig(
            db_path=os.getenv("TRACKER_DB_PATH") or None,
            journal_mode=os.getenv("TRACKER_JOURNAL_MODE", "WAL").upper(),
            busy_timeout_ms=_env_int("TRACKER_BUSY_TIMEOUT_MS", 5000),
            enable_backups=os.getenv("TRACKER_BACKUPS", "true").lower() == "true",
            max_backups=_env_int("TRACKER_MAX_BACKUPS", 10),
        )

        log_file = os.getenv("TRACKER_LOG_FILE")
        log = LogConfig(
            level=os.getenv("TRACKER_LOG_LEVEL", "INFO"),
            file_enabled=bool(log_file),
            file_path=Path(log_file) if log_file else None,
        )

        return cls(
            storage=storage,
            log=log,
            debug=os.getenv("TRACKER_DEBUG", "false").lower() == "true",
        )


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(
            f"{name} must be an integer, got {raw!r}", details={"variable": name}
        ) from e


# ============================================================================
# Global Configuration Singleton
# ============================================================================

_config: Optional[TrackerConfig] = None


def get_config() -> TrackerConfig:
    """
    Get the global configuration instance.

    Created from the environment on first use, then reused.
    """
    global _config
    if _config is None:
        _config = TrackerConfig.from_env()
    return _config


def set_config(config: Optional[TrackerConfig]) -> None:
    """
    Replace the global configuration (mainly used for testing).

    Passing None drops the cached instance so the next get_config()
    re-reads the environment.
    """
    global _config
    _config = config


def setup_logging(config: Optional[TrackerConfig] = None) -> None:
    """
    Configure Python's logging system based on our settings.

    Console output always; a rotating file when enabled. Call once at
    application startup (the CLI does).
    """
    cfg = config or get_config()

    handlers: List[logging.Handler] = [logging.StreamHandler()]

    if cfg.log.file_enabled and cfg.log.file_path is not None:
        from logging.handlers import RotatingFileHandler
        cfg.log.file_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            cfg.log.file_path,
            maxBytes=cfg.log.max_file_size_mb * 1024 * 1024,
            backupCount=cfg.log.backup_count,
        )
        handlers.append(file_handler)

    level = "DEBUG" if cfg.debug else cfg.log.level.upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format=cfg.log.format,
        handlers=handlers,
        force=True,
    )
