"""
Unified output system using Loguru.
User-facing messages go to stdout and the log file; diagnostics go to the file only.
"""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from .config import LoggingConfig, get_data_dir

# Set by --quiet; log() then writes to the log file only
_quiet = False


def get_log_file_path() -> Path:
    """Get the default path to the log file."""
    return get_data_dir() / "musiclib.log"


def setup_loguru(
    log_file: Optional[Path] = None,
    level: str = "INFO",
    rotation: str = "10 MB",
    retention: int = 5,
    verbose: bool = False,
) -> None:
    """
    Configure loguru for file logging plus an optional stderr sink.

    Args:
        log_file: Path to log file (default: ~/.local/share/musiclib/musiclib.log)
        level: Minimum level for file logging (DEBUG, INFO, WARNING, ERROR)
        rotation: Size at which the log file is rotated
        retention: Number of rotated files to keep
        verbose: Also emit DEBUG diagnostics to stderr
    """
    log_file = log_file or get_log_file_path()
    log_file.parent.mkdir(parents=True, exist_ok=True)

    # Remove default handler
    logger.remove()

    logger.add(
        log_file,
        rotation=rotation,
        retention=retention,
        level=level,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {process} | {name}:{line} | {message}",
        enqueue=False,  # Synchronous writes
    )

    if verbose:
        logger.add(sys.stderr, level="DEBUG", format="{level}: {message}")

    logger.debug(f"Loguru initialized: {log_file} (level={level})")


def setup_from_config(config: LoggingConfig, verbose: bool = False) -> None:
    """Configure loguru from the [logging] config section."""
    setup_loguru(
        Path(config.log_file) if config.log_file else None,
        level=config.level,
        rotation=f"{config.max_file_size_mb} MB",
        retention=config.backup_count,
        verbose=verbose,
    )


MOBILE_LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {message}"
MOBILE_MODULE_PREFIX = "musiclib.domain.mobile"


def add_mobile_sink(
    log_file: Path, level: str = "INFO", rotation: str = "10 MB", retention: int = 5
) -> int:
    """Mirror session reconciliation records into their own log file.

    Only records emitted from the mobile domain reach this sink.

    Returns:
        Loguru handler id (for ``logger.remove``)
    """
    log_file = Path(log_file)
    log_file.parent.mkdir(parents=True, exist_ok=True)
    return logger.add(
        log_file,
        rotation=rotation,
        retention=retention,
        level=level,
        format=MOBILE_LOG_FORMAT,
        filter=lambda record: (record["name"] or "").startswith(MOBILE_MODULE_PREFIX),
        enqueue=False,
    )


def set_quiet(quiet: bool) -> None:
    """Suppress stdout printing from log()."""
    global _quiet
    _quiet = quiet


def log(message: str, level: str = "info") -> None:
    """
    Unified logging: writes to file AND prints for the user.

    Use this instead of print() for user-facing messages that should also be logged.
    Warnings and errors print to stderr.

    Args:
        message: User-facing message
        level: Log level (debug, info, warning, error)
    """
    log_func = getattr(logger, level)
    log_func(message)

    if _quiet or level == "debug":
        return
    stream = sys.stderr if level in ("warning", "error") else sys.stdout
    print(message, file=stream)
