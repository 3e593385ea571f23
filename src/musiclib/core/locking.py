"""
Cross-process advisory locking for the record store and pending queue.

Every store mutation runs inside `with_lock()`. The lock lives in a sidecar
file next to the guarded file (``musiclib.dsv.lock``) so the data file itself
can be replaced atomically while the lock is held.
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator, TypeVar, Union

import portalocker
from loguru import logger

from .errors import LockError, LockTimeout

T = TypeVar("T")

# Poll interval while waiting for a contended lock
CHECK_INTERVAL = 0.1


def lock_path_for(path: Union[str, Path]) -> Path:
    """Get the lock sidecar path for a data file."""
    path = Path(path)
    return path.with_name(path.name + ".lock")


def _ensure_lock_file(lock_path: Path) -> None:
    try:
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        lock_path.touch(exist_ok=True)
    except OSError as e:
        raise LockError(f"Cannot create lock file {lock_path}: {e}") from e


@contextmanager
def exclusive_lock(lock_path: Union[str, Path], timeout: float) -> Iterator[None]:
    """Hold an exclusive advisory lock on ``lock_path`` for the block.

    Args:
        lock_path: Sidecar lock file (created if absent)
        timeout: Seconds to wait; 0 means a single non-blocking attempt

    Raises:
        LockTimeout: Lock still held by someone else when the wait expired
        LockError: Sidecar file could not be created or opened
    """
    lock_path = Path(lock_path)
    _ensure_lock_file(lock_path)

    lock = portalocker.Lock(
        str(lock_path),
        mode="a",
        timeout=timeout,
        check_interval=min(CHECK_INTERVAL, timeout) if timeout > 0 else CHECK_INTERVAL,
        fail_when_locked=False,
        flags=portalocker.LockFlags.EXCLUSIVE | portalocker.LockFlags.NON_BLOCKING,
    )

    try:
        lock.acquire()
    except portalocker.exceptions.LockException as e:
        logger.debug(f"Lock timeout on {lock_path} after {timeout}s: {e}")
        raise LockTimeout(lock_path, timeout) from e
    except OSError as e:
        raise LockError(f"Cannot open lock file {lock_path}: {e}") from e

    try:
        yield
    finally:
        lock.release()


def with_lock(
    lock_path: Union[str, Path],
    timeout: float,
    fn: Callable[..., T],
    *args: Any,
    **kwargs: Any,
) -> T:
    """Run ``fn`` while holding the exclusive lock.

    ``fn`` is never invoked when the lock cannot be acquired. The lock is
    released before this returns, including when ``fn`` raises.

    Returns:
        Whatever ``fn`` returns
    """
    with exclusive_lock(lock_path, timeout):
        return fn(*args, **kwargs)
