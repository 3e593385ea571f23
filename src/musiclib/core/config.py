"""
Configuration management for musiclib
"""

import os
import sys
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    config_home = os.environ.get("XDG_CONFIG_HOME")
    if config_home:
        return Path(config_home) / "musiclib"
    return Path.home() / ".config" / "musiclib"


def get_data_dir() -> Path:
    """Get the data directory path."""
    data_home = os.environ.get("XDG_DATA_HOME")
    if data_home:
        return Path(data_home) / "musiclib"
    return Path.home() / ".local" / "share" / "musiclib"


@dataclass
class LibraryConfig:
    """Configuration for the record store."""

    database_path: str = field(
        default_factory=lambda: str(get_data_dir() / "musiclib.dsv")
    )
    music_root: str = field(default_factory=lambda: str(Path.home() / "Music"))
    default_rating: str = "0"  # POPM value for newly imported tracks
    default_groupdesc: str = "0"
    backup_count: int = 5  # Backups kept beside the store
    supported_formats: list[str] = field(
        default_factory=lambda: [".mp3", ".m4a", ".flac", ".ogg", ".opus"]
    )


@dataclass
class LockConfig:
    """Lock wait times per call site, in seconds."""

    rate_timeout: float = 2.0
    rate_attempts: int = 3
    retry_delay: float = 2.0
    remove_timeout: float = 2.0
    remove_attempts: int = 3
    import_timeout: float = 5.0
    scrobble_timeout: float = 10.0
    pending_timeout: float = 5.0
    mobile_timeout: float = 5.0
    build_timeout: float = 10.0

    def validate(self) -> None:
        """Validate lock configuration values.

        Raises:
            ValueError: If a timeout is negative or an attempt count is below 1
        """
        for name in (
            "rate_timeout",
            "retry_delay",
            "remove_timeout",
            "import_timeout",
            "scrobble_timeout",
            "pending_timeout",
            "mobile_timeout",
            "build_timeout",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0")
        if self.rate_attempts < 1 or self.remove_attempts < 1:
            raise ValueError("attempt counts must be >= 1")


@dataclass
class PendingConfig:
    """Configuration for the deferred operation queue."""

    pending_file: str = field(
        default_factory=lambda: str(get_data_dir() / ".pending_operations")
    )
    drain_after_write: bool = True  # Replay queue after each successful mutation


@dataclass
class MobileConfig:
    """Configuration for mobile session accounting."""

    mobile_dir: str = field(default_factory=lambda: str(get_data_dir() / "mobile"))
    log_file: str = field(
        default_factory=lambda: str(get_data_dir() / "logs" / "mobile_operations.log")
    )
    min_window_seconds: int = 60
    max_window_seconds: int = 90 * 86400  # Longer windows are processed with a warning


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file: Optional[str] = (
        None  # Custom log file path (default: ~/.local/share/musiclib/musiclib.log)
    )
    max_file_size_mb: int = 10  # Maximum log file size before rotation
    backup_count: int = 5  # Number of rotated files to keep


@dataclass
class NotificationsConfig:
    """Configuration for desktop notifications."""

    enabled: bool = True
    app_name: str = "musiclib"
    expire_ms: int = 3000  # Popup duration
    notify_success: bool = True  # False keeps only queued and error popups


@dataclass
class Config:
    """Main configuration object."""

    library: LibraryConfig = field(default_factory=LibraryConfig)
    locks: LockConfig = field(default_factory=LockConfig)
    pending: PendingConfig = field(default_factory=PendingConfig)
    mobile: MobileConfig = field(default_factory=MobileConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)


def get_config_path() -> Path:
    """Get the main configuration file path.

    Checks the current working directory first, then
    XDG_CONFIG_HOME/musiclib (or ~/.config/musiclib).
    """
    local_config = Path.cwd() / "config.toml"
    if local_config.exists():
        return local_config
    return get_config_dir() / "config.toml"


def create_default_config() -> str:
    """Create a default configuration TOML content."""
    return """
# musiclib Configuration

[library]
# Path to the record store (delimiter-separated flat file)
# database_path = "~/.local/share/musiclib/musiclib.dsv"

# Library root scanned by `musiclib build`
# music_root = "~/Music"

# Values written for newly imported tracks
default_rating = "0"
default_groupdesc = "0"

# Number of store backups to keep
backup_count = 5

# File extensions picked up when importing a directory
supported_formats = [".mp3", ".m4a", ".flac", ".ogg", ".opus"]

[locks]
# Seconds to wait for the database lock, per call site
rate_timeout = 2.0
rate_attempts = 3
retry_delay = 2.0
remove_timeout = 2.0
remove_attempts = 3
import_timeout = 5.0
scrobble_timeout = 10.0
pending_timeout = 5.0
mobile_timeout = 5.0
build_timeout = 10.0

[pending]
# Replay queued operations after every successful write
drain_after_write = true

[mobile]
# Separate log of session operations, read by `musiclib mobile logs`
# log_file = "~/.local/share/musiclib/logs/mobile_operations.log"

# Sessions shorter than this are skipped
min_window_seconds = 60

# Sessions longer than this are processed with a warning (90 days)
max_window_seconds = 7776000

[logging]
# Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
level = "INFO"

# Custom log file path (default: ~/.local/share/musiclib/musiclib.log)
# log_file = "/path/to/custom/musiclib.log"

# Maximum log file size in MB before rotation
max_file_size_mb = 10

# Number of rotated log files to keep
backup_count = 5

[notifications]
# Enable desktop notifications
enabled = true

# Popup duration in milliseconds
expire_ms = 3000

# Show popups for successful ratings and rebuilds (queued and error popups always show)
notify_success = true
""".strip()


def _expand(path: str) -> str:
    return str(Path(path).expanduser())


def parse_config(toml_data: dict) -> Config:
    """Build a Config from parsed TOML data, falling back to defaults per key."""
    config = Config()

    if "library" in toml_data:
        library_data = toml_data["library"]
        config.library = LibraryConfig(
            database_path=_expand(
                library_data.get("database_path", config.library.database_path)
            ),
            music_root=_expand(library_data.get("music_root", config.library.music_root)),
            default_rating=str(
                library_data.get("default_rating", config.library.default_rating)
            ),
            default_groupdesc=str(
                library_data.get("default_groupdesc", config.library.default_groupdesc)
            ),
            backup_count=library_data.get("backup_count", config.library.backup_count),
            supported_formats=library_data.get(
                "supported_formats", config.library.supported_formats
            ),
        )

    if "locks" in toml_data:
        locks_data = toml_data["locks"]
        defaults = LockConfig()
        config.locks = LockConfig(
            **{
                name: locks_data.get(name, getattr(defaults, name))
                for name in defaults.__dataclass_fields__
            }
        )
        # Validate lock config
        try:
            config.locks.validate()
        except ValueError as e:
            print(f"Warning: Invalid lock configuration: {e}", file=sys.stderr)
            print("Using default lock configuration.", file=sys.stderr)
            config.locks = LockConfig()

    if "pending" in toml_data:
        pending_data = toml_data["pending"]
        config.pending = PendingConfig(
            pending_file=_expand(
                pending_data.get("pending_file", config.pending.pending_file)
            ),
            drain_after_write=pending_data.get(
                "drain_after_write", config.pending.drain_after_write
            ),
        )

    if "mobile" in toml_data:
        mobile_data = toml_data["mobile"]
        config.mobile = MobileConfig(
            mobile_dir=_expand(mobile_data.get("mobile_dir", config.mobile.mobile_dir)),
            log_file=_expand(mobile_data.get("log_file", config.mobile.log_file)),
            min_window_seconds=mobile_data.get(
                "min_window_seconds", config.mobile.min_window_seconds
            ),
            max_window_seconds=mobile_data.get(
                "max_window_seconds", config.mobile.max_window_seconds
            ),
        )

    if "logging" in toml_data:
        logging_data = toml_data["logging"]
        log_file = logging_data.get("log_file")
        if log_file:
            log_file = _expand(log_file)
        config.logging = LoggingConfig(
            level=logging_data.get("level", config.logging.level).upper(),
            log_file=log_file,
            max_file_size_mb=logging_data.get(
                "max_file_size_mb", config.logging.max_file_size_mb
            ),
            backup_count=logging_data.get("backup_count", config.logging.backup_count),
        )

    if "notifications" in toml_data:
        notifications_data = toml_data["notifications"]
        config.notifications = NotificationsConfig(
            enabled=notifications_data.get("enabled", config.notifications.enabled),
            app_name=notifications_data.get("app_name", config.notifications.app_name),
            expire_ms=notifications_data.get(
                "expire_ms", config.notifications.expire_ms
            ),
            notify_success=notifications_data.get(
                "notify_success", config.notifications.notify_success
            ),
        )

    return config


def load_config() -> Config:
    """Load configuration from file or create default.

    Environment variables override TOML values:
    - MUSICLIB_DB (record store path)
    """
    # Load .env file from config directory if it exists
    from dotenv import load_dotenv

    env_path = get_config_dir() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    config_path = get_config_path()

    if not config_path.exists():
        # Create config directory and default file
        try:
            config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(config_path, "w", encoding="utf-8") as f:
                f.write(create_default_config())
            print(f"Created default configuration at: {config_path}", file=sys.stderr)
        except OSError as e:
            print(f"Could not write default configuration: {e}", file=sys.stderr)
        config = Config()
    else:
        try:
            with open(config_path, "rb") as f:
                config = parse_config(tomllib.load(f))
        except (OSError, tomllib.TOMLDecodeError) as e:
            print(f"Error loading configuration from {config_path}: {e}", file=sys.stderr)
            print("Using default configuration.", file=sys.stderr)
            config = Config()

    # Override store path with environment variable if present
    db_override = os.environ.get("MUSICLIB_DB")
    if db_override:
        config.library.database_path = _expand(db_override)

    return config


def ensure_directories(config: Config) -> None:
    """Ensure all necessary directories exist."""
    get_config_dir().mkdir(parents=True, exist_ok=True)
    get_data_dir().mkdir(parents=True, exist_ok=True)
    Path(config.mobile.mobile_dir).mkdir(parents=True, exist_ok=True)
    Path(config.library.database_path).parent.mkdir(parents=True, exist_ok=True)
