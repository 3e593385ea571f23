"""
Pending queue command handlers.
"""

from loguru import logger

from musiclib.context import AppContext
from musiclib.core.console import print_summary
from musiclib.core.errors import EXIT_OK, MusiclibError
from musiclib.core.output import log
from musiclib.domain.pending import DrainResult


def drain_after_write(ctx: AppContext) -> None:
    """Replay queued operations after a successful write, if enabled.

    Failures are logged only; the write that triggered the drain has
    already succeeded.
    """
    if not ctx.config.pending.drain_after_write:
        return
    if not ctx.queue.path.exists():
        return
    try:
        ctx.queue.drain()
    except MusiclibError as e:
        logger.warning(f"Pending queue drain skipped: {e}")


def handle_process_pending(ctx: AppContext) -> int:
    """Replay the pending queue once.

    Returns:
        Exit code (0 when drained or already being drained, 2 on system error)
    """
    if not ctx.queue.path.exists():
        logger.debug("No pending operations")
        return EXIT_OK

    try:
        result = ctx.queue.drain()
    except MusiclibError as e:
        log(f"❌ Could not process pending operations: {e}", level="error")
        return e.exit_code

    if result.busy:
        logger.info("Another process is already draining the queue")
        return EXIT_OK

    _print_drain_summary(result)
    return EXIT_OK


def _print_drain_summary(result: DrainResult) -> None:
    print_summary(
        "Pending operations",
        [
            ("Applied", result.applied),
            ("Kept (database busy)", result.kept),
            ("Dropped", result.dead_lettered),
            ("Remaining", result.remaining),
        ],
    )
    if result.dead_lettered:
        log(
            f"⚠ {result.dead_lettered} pending operation(s) dropped, see log for details",
            level="warning",
        )
