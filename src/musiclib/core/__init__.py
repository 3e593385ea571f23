"""Core infrastructure layer - no business logic dependencies.

This module provides foundation-level services:
- Configuration management (TOML)
- Cross-process locking (portalocker)
- Atomic file replacement
- Logging (Loguru) and console output (Rich)

Clean architecture principle: The core layer has no dependencies on
domain or application layers.
"""

# Configuration
from .config import (
    Config,
    load_config,
    parse_config,
    get_config_dir,
    get_config_path,
    get_data_dir,
    create_default_config,
    ensure_directories,
)

# Errors
from .errors import (
    EXIT_OK,
    EXIT_USER_ERROR,
    EXIT_SYSTEM_ERROR,
    EXIT_DEFERRED,
    MusiclibError,
    ValidationError,
    LockTimeout,
    LockError,
    StoreError,
    SchemaError,
    RecordNotFound,
    AmbiguousMatch,
    ClockSkew,
    SessionError,
)

# Locking
from .locking import exclusive_lock, lock_path_for, with_lock

# Files
from .fileio import atomic_write_text, read_lines, write_lines

# Console
from .console import get_console, safe_print, print_summary

__all__ = [
    # Configuration
    "Config",
    "load_config",
    "parse_config",
    "get_config_dir",
    "get_config_path",
    "get_data_dir",
    "create_default_config",
    "ensure_directories",
    # Errors
    "EXIT_OK",
    "EXIT_USER_ERROR",
    "EXIT_SYSTEM_ERROR",
    "EXIT_DEFERRED",
    "MusiclibError",
    "ValidationError",
    "LockTimeout",
    "LockError",
    "StoreError",
    "SchemaError",
    "RecordNotFound",
    "AmbiguousMatch",
    "ClockSkew",
    "SessionError",
    # Locking
    "exclusive_lock",
    "lock_path_for",
    "with_lock",
    # Files
    "atomic_write_text",
    "read_lines",
    "write_lines",
    # Console
    "get_console",
    "safe_print",
    "print_summary",
]
