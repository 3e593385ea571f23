"""
Append-only queue of store mutations that could not get the lock in time.

Lines are appended under ``<pending>.lock``. A drain takes a separate
``<pending>.drain.lock`` without waiting so only one drain runs at a time,
replays a snapshot of the queue, then removes exactly the lines it consumed.
Lines appended while the drain was running survive the rewrite.
"""

import time
from collections import Counter
from contextlib import ExitStack
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Union

from loguru import logger

from ...core.errors import LockTimeout
from ...core.fileio import read_lines, write_lines
from ...core.locking import exclusive_lock, lock_path_for, with_lock
from .models import SEPARATOR, PendingOperation

Handler = Callable[[PendingOperation], None]

# Replay outcomes
APPLIED = "applied"
KEPT = "kept"
DEAD_LETTERED = "dead_lettered"


@dataclass
class DrainResult:
    """Counts from one drain pass.

    Attributes:
        applied: Lines replayed successfully and removed
        kept: Lines left for the next drain (store still locked)
        dead_lettered: Lines dropped as unknown, malformed or failed
        busy: Another drain held the drain lock; nothing was done
        remaining: Lines left in the queue after the rewrite
    """

    applied: int = 0
    kept: int = 0
    dead_lettered: int = 0
    busy: bool = False
    remaining: int = 0


class PendingQueue:
    """The deferred operation log beside the store."""

    def __init__(
        self,
        pending_file: Union[str, Path],
        handlers: Optional[Mapping[str, Handler]] = None,
        lock_timeout: float = 5.0,
    ):
        self.path = Path(pending_file)
        self.lock_path = lock_path_for(self.path)
        self.drain_lock_path = self.path.with_name(self.path.name + ".drain.lock")
        self.handlers: Dict[str, Handler] = dict(handlers or {})
        self.lock_timeout = lock_timeout

    def register(self, op_type: str, handler: Handler) -> None:
        self.handlers[op_type] = handler

    def enqueue(
        self,
        op_type: str,
        args: Iterable[str],
        origin: str = "musiclib",
        timestamp: Optional[int] = None,
    ) -> PendingOperation:
        """Append an operation to the queue.

        Raises:
            ValidationError: An argument contains the separator
            LockTimeout: Queue lock not acquired in time
        """
        op = PendingOperation(
            timestamp=int(time.time()) if timestamp is None else timestamp,
            origin=origin,
            op_type=op_type,
            args=tuple(str(arg) for arg in args),
        )
        line = op.to_line()

        def append_line() -> None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")

        with_lock(self.lock_path, self.lock_timeout, append_line)
        logger.info(f"PENDING: queued {op_type} from {origin}: {SEPARATOR.join(op.args)}")
        return op

    def read(self) -> List[str]:
        """Current queue lines (unlocked read)."""
        return read_lines(self.path)

    def drain(self) -> DrainResult:
        """Replay queued operations once.

        Returns immediately with ``busy=True`` when another drain is running.
        """
        result = DrainResult()

        with ExitStack() as stack:
            try:
                stack.enter_context(exclusive_lock(self.drain_lock_path, 0))
            except LockTimeout:
                logger.debug("Pending queue drain already in progress")
                result.busy = True
                return result

            snapshot = with_lock(self.lock_path, self.lock_timeout, read_lines, self.path)
            if not snapshot:
                return result

            logger.info(f"Processing {len(snapshot)} pending operation(s)")
            consumed: Counter = Counter()
            for line in snapshot:
                outcome = self._replay(line)
                if outcome == KEPT:
                    result.kept += 1
                    continue
                consumed[line] += 1
                if outcome == APPLIED:
                    result.applied += 1
                else:
                    result.dead_lettered += 1

            result.remaining = with_lock(
                self.lock_path, self.lock_timeout, self._remove_consumed, consumed
            )

        logger.info(
            f"Pending drain: {result.applied} applied, {result.kept} kept, "
            f"{result.dead_lettered} dropped, {result.remaining} remaining"
        )
        return result

    def _replay(self, line: str) -> str:
        try:
            op = PendingOperation.parse(line)
        except ValueError as e:
            logger.warning(f"Dropping malformed pending line ({e}): {line}")
            return DEAD_LETTERED

        handler = self.handlers.get(op.op_type)
        if handler is None:
            logger.warning(f"Dropping pending operation with unknown type {op.op_type!r}: {line}")
            return DEAD_LETTERED

        try:
            handler(op)
        except LockTimeout:
            logger.info(f"Database still locked, keeping pending {op.op_type}: {line}")
            return KEPT
        except Exception as e:
            logger.exception(f"Dropping failed pending {op.op_type} ({e}): {line}")
            return DEAD_LETTERED

        logger.info(f"Processed pending {op.op_type} from {op.origin}")
        return APPLIED

    def _remove_consumed(self, consumed: Counter) -> int:
        """Rewrite the queue without the consumed lines; returns lines left."""
        lines = read_lines(self.path)
        if not consumed:
            return len(lines)

        remaining = []
        for line in lines:
            if consumed[line] > 0:
                consumed[line] -= 1
            else:
                remaining.append(line)
        write_lines(self.path, remaining)
        return len(remaining)
