"""Exception hierarchy for musiclib operations.

Every exception carries the process exit code the command layer maps it to:
0 success, 1 user/validation error, 2 system error, 3 deferred.
"""

EXIT_OK = 0
EXIT_USER_ERROR = 1
EXIT_SYSTEM_ERROR = 2
EXIT_DEFERRED = 3


class MusiclibError(Exception):
    """Base exception for musiclib operations."""

    exit_code = EXIT_SYSTEM_ERROR


class ValidationError(MusiclibError):
    """Raised when user input is invalid (bad rating, empty path, bad id)."""

    exit_code = EXIT_USER_ERROR


class LockTimeout(MusiclibError):
    """Raised when an exclusive lock could not be acquired in time.

    Recoverable: callers retry with back-off or enqueue the operation.
    """

    def __init__(self, lock_path, timeout: float):
        self.lock_path = lock_path
        self.timeout = timeout
        super().__init__(f"Timed out after {timeout}s waiting for lock {lock_path}")


class LockError(MusiclibError):
    """Raised when the lock sidecar file cannot be created or opened."""

    pass


class StoreError(MusiclibError):
    """Raised when the record store file is missing or unreadable."""

    pass


class SchemaError(StoreError):
    """Raised when the store header is invalid or an expected column is absent."""

    pass


class RecordNotFound(MusiclibError):
    """Raised when no row matches a path. Soft for most callers."""

    exit_code = EXIT_USER_ERROR

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Track not found in database: {path}")


class AmbiguousMatch(MusiclibError):
    """Raised when more than one row matches a path. Never resolved by guessing."""

    def __init__(self, path: str, count: int):
        self.path = path
        self.count = count
        super().__init__(f"{count} rows match {path}; refusing to guess")


class ClockSkew(MusiclibError):
    """Raised when a session window ends before it starts."""

    def __init__(self, start_epoch: int, end_epoch: int):
        self.start_epoch = start_epoch
        self.end_epoch = end_epoch
        super().__init__(
            f"Clock skew detected - start time in future "
            f"(start={start_epoch}, end={end_epoch})"
        )


class SessionError(MusiclibError):
    """Raised when mobile session sidecar files are missing or corrupt."""

    pass
