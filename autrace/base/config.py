# ============================================================================
# autrace/base/config.py
# Application Configuration Management
# ============================================================================
#
# PURPOSE:
# Defines the tunable settings of the analysis engines: how change logs are
# addressed and truncated, how explorer payloads are canonicalized, and how
# logging is emitted.
#
# KEY CONCEPTS:
# 1. Dataclasses: frozen sections grouped under one AutraceConfig
# 2. Environment Variables: AUTRACE_* overrides (e.g., AUTRACE_LOG_LEVEL=DEBUG)
# 3. Singleton Pattern: one shared config, replaceable in tests via set_config()
#
# ============================================================================

from __future__ import annotations

import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from autrace.errors import AutraceError, ErrorCode

logger = logging.getLogger(__name__)

# Mina's native token id; explorer payloads use it for plain MINA accounts.
NATIVE_TOKEN_ID = "wSHV2S4qX9jFsLjQo8r1BsMLH2ZRKsZx6EJd1sbozGPieEC4Jf"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


# ============================================================================
# Structural Diff Configuration
# ============================================================================

@dataclass(frozen=True)
class DiffConfig:
    # Label used for the positional part of every change-log path
    # e.g. "accountUpdate" -> accountUpdate[2].body.update.permissions.send
    root_path: str = "accountUpdate"

    # Added values under a key containing this marker get truncated
    truncate_marker: str = "proof"

    # How many characters of an oversized proof payload survive truncation
    # (an ellipsis "..." is appended after them)
    proof_truncate_length: int = 50


# ============================================================================
# Canonicalization Adapter Configuration
# ============================================================================

@dataclass(frozen=True)
class AdapterConfig:
    # Token id that maps onto DEFAULT_RESOURCE_ID
    native_token_id: str = NATIVE_TOKEN_ID

    # Explorer failure entries carry an index; this is the index given to the
    # first updated account (0 = same numbering as the accounts list)
    failure_index_base: int = 0

    # How many characters of the account address go into generated labels
    label_address_length: int = 8


# ============================================================================
# Logging Configuration
# ============================================================================

@dataclass(frozen=True)
class LogConfig:
    # DEBUG = every heuristic edge and stack move, INFO = one line per run
    level: str = "INFO"

    # %(name)s is the module, e.g. "autrace.analysis.flow"
    format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

    # File logging is off by default; the engines are usually embedded in
    # test suites and notebooks.
    file_enabled: bool = False
    file_name: str = "autrace.log"
    log_dir: Path = field(default_factory=lambda: Path.home() / ".autrace")

    # Rotation: 10 MB per file, keep 5
    max_file_size_mb: int = 10
    backup_count: int = 5

    @property
    def file_path(self) -> Path:
        return self.log_dir / self.file_name


# ============================================================================
# Master Configuration Container
# ============================================================================

@dataclass(frozen=True)
class AutraceConfig:
    diff: DiffConfig = field(default_factory=DiffConfig)
    adapter: AdapterConfig = field(default_factory=AdapterConfig)
    log: LogConfig = field(default_factory=LogConfig)
    debug: bool = False

    @classmethod
    def from_env(cls) -> "AutraceConfig":
        """Build a config from AUTRACE_* environment variables."""
        level = os.getenv("AUTRACE_LOG_LEVEL", "INFO").upper()
        if level not in _LOG_LEVELS:
            raise AutraceError(
                ErrorCode.CONFIG_INVALID,
                f"Unknown log level: {level}",
                details={"variable": "AUTRACE_LOG_LEVEL", "allowed": list(_LOG_LEVELS)},
            )

        diff = DiffConfig(
            root_path=os.getenv("AUTRACE_ROOT_PATH", "accountUpdate"),
            proof_truncate_length=_env_int("AUTRACE_PROOF_TRUNCATE_LENGTH", 50),
        )

        adapter = AdapterConfig(
            native_token_id=os.getenv("AUTRACE_NATIVE_TOKEN_ID", NATIVE_TOKEN_ID),
            failure_index_base=_env_int("AUTRACE_FAILURE_INDEX_BASE", 0),
        )

        log_dir = Path(os.getenv("AUTRACE_LOG_DIR", str(Path.home() / ".autrace")))
        log = LogConfig(
            level=level,
            file_enabled=os.getenv("AUTRACE_LOG_FILE", "false").lower() == "true",
            log_dir=log_dir,
        )

        return cls(
            diff=diff,
            adapter=adapter,
            log=log,
            debug=os.getenv("AUTRACE_DEBUG", "false").lower() == "true",
        )


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise AutraceError(
            ErrorCode.CONFIG_PARSE_ERROR,
            f"{name} must be an integer, got {raw!r}",
            details={"variable": name},
        ) from exc
    if value < 0:
        raise AutraceError(
            ErrorCode.CONFIG_INVALID,
            f"{name} must be >= 0",
            details={"variable": name, "value": value},
        )
    return value


# ============================================================================
# Global Configuration Singleton
# ============================================================================

_config: Optional[AutraceConfig] = None


def get_config() -> AutraceConfig:
    """
    Get the global configuration instance.

    Loaded from the environment on first use, then reused.
    """
    global _config
    if _config is None:
        _config = AutraceConfig.from_env()
    return _config


def set_config(config: Optional[AutraceConfig]) -> None:
    """
    Replace the global configuration (mainly used for testing).

    Passing None forces the next get_config() to re-read the environment.
    """
    global _config
    _config = config


def setup_logging(config: Optional[AutraceConfig] = None) -> None:
    """
    Configure Python's logging system based on our settings.

    Call this once at application startup; library users that already
    configure logging can skip it.
    """
    cfg = config or get_config()

    handlers: List[logging.Handler] = [logging.StreamHandler()]

    if cfg.log.file_enabled:
        from logging.handlers import RotatingFileHandler
        cfg.log.log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            cfg.log.file_path,
            maxBytes=cfg.log.max_file_size_mb * 1024 * 1024,
            backupCount=cfg.log.backup_count,
        )
        handlers.append(file_handler)

    level = "DEBUG" if cfg.debug else cfg.log.level.upper()
    logging.basicConfig(
        level=getattr(logging, level),
        format=cfg.log.format,
        handlers=handlers,
        force=True,
    )
    logger.debug(f"Logging configured at {level}")
