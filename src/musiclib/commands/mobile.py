"""
Mobile session command handlers: upload, reconcile, retry, status, cleanup, logs.
"""

import time
from pathlib import Path
from typing import List, Optional

from loguru import logger

from musiclib.context import AppContext
from musiclib.core.console import get_console, print_summary, safe_print
from musiclib.core.errors import EXIT_OK, EXIT_USER_ERROR, MusiclibError
from musiclib.core.fileio import read_lines
from musiclib.core.output import log
from musiclib.domain.mobile import (
    ReconcileOutcome,
    ReconcileResult,
    RetryResult,
    read_log,
)
from musiclib.domain.stats import BatchStats
from musiclib.domain.store import human_time


def read_track_list(list_file: Path) -> List[str]:
    """Read a newline track list; blank lines and ``#`` comments are ignored."""
    tracks = []
    for line in read_lines(list_file):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        tracks.append(str(Path(line).expanduser()))
    return tracks


def handle_upload_command(
    ctx: AppContext, session_id: str, list_file: str, now: Optional[int] = None
) -> int:
    """Register an upload as the current mobile session.

    Reconciles the session it replaces first. A failure there is reported
    but does not stop the new session from being recorded.
    """
    list_path = Path(list_file).expanduser()
    if not list_path.is_file():
        log(f"❌ Track list not found: {list_path}", level="error")
        return EXIT_USER_ERROR

    tracks = []
    for track in read_track_list(list_path):
        if Path(track).is_file():
            tracks.append(track)
        else:
            log(f"  Warning: File not found: {track}", level="warning")

    try:
        result = ctx.reconciler().open_session(session_id, tracks, now=now)
    except MusiclibError as e:
        log(f"❌ {e}", level="error")
        return e.exit_code

    if result.unchanged:
        log("Same playlist - no last-played updates needed")
        return EXIT_OK
    if result.initialized:
        log(f"Mobile playlist tracking initialized: {session_id}")
    for warning in result.warnings:
        log(f"Warning: {warning}", level="warning")
    if result.reconcile is not None:
        _print_reconcile(result.reconcile)
    if result.retry is not None:
        _print_retry(result.retry)
    if result.error:
        log(
            f"⚠ Last-played update for {result.previous_id} failed: {result.error}",
            level="warning",
        )
        log(f"  Retry later with: musiclib mobile retry {result.previous_id}", level="warning")

    log(f"Current mobile playlist set to: {session_id} ({len(tracks)} tracks)")
    return EXIT_OK


def handle_reconcile_command(
    ctx: AppContext, session_id: Optional[str] = None, end_epoch: Optional[int] = None
) -> int:
    """Reconcile a stored session (default: the current one)."""
    reconciler = ctx.reconciler()
    session_id = session_id or reconciler.sessions.get_current()
    if not session_id:
        log("No mobile playlist currently active")
        return EXIT_OK

    try:
        result = reconciler.reconcile_session(session_id, end_epoch)
    except MusiclibError as e:
        log(f"❌ {e}", level="error")
        return e.exit_code

    if result.outcome == ReconcileOutcome.NOT_FOUND:
        log(f"No stored session {session_id} - nothing to reconcile")
        return EXIT_OK
    _print_reconcile(result)
    return EXIT_OK


def handle_retry_command(ctx: AppContext, session_id: Optional[str] = None) -> int:
    """Retry recovery entries for one session, or every session that has them."""
    reconciler = ctx.reconciler()
    if session_id:
        session_ids = [session_id]
    else:
        status = reconciler.status()
        session_ids = [sid for sid, _, _ in status.pending] + status.interrupted
        current = status.current_id
        if current and reconciler.sessions.has_recovery(current):
            session_ids.append(current)

    if not session_ids:
        log("No sessions need a retry")
        return EXIT_OK

    exit_code = EXIT_OK
    for sid in session_ids:
        try:
            _print_retry(reconciler.retry(sid))
        except MusiclibError as e:
            log(f"❌ Retry of {sid} failed: {e}", level="error")
            exit_code = e.exit_code
    return exit_code


def handle_status_command(ctx: AppContext) -> int:
    """Show the current session and sessions awaiting recovery."""
    try:
        status = ctx.reconciler().status()
    except MusiclibError as e:
        log(f"❌ {e}", level="error")
        return e.exit_code

    console = get_console()
    if status.current_id is None:
        console.print("No mobile playlist currently active")
    else:
        console.print(f"Current mobile playlist: [bold]{status.current_id}[/bold]")
        if status.uploaded_epoch is not None:
            days_ago = (int(time.time()) - status.uploaded_epoch) // 86400
            console.print(
                f"Uploaded: {human_time(status.uploaded_epoch)} ({days_ago} days ago)"
            )
            console.print(f"Tracks: {status.track_count}")

    for session_id, not_in_store, write_failed in status.pending:
        safe_print(
            f"Pending recovery {session_id}: "
            f"{not_in_store} not in database, {write_failed} write failures",
            style="yellow",
        )
    for session_id in status.interrupted:
        safe_print(f"Not yet reconciled {session_id}", style="yellow")
    if status.orphaned:
        console.print(
            f"{len(status.orphaned)} orphaned session(s); "
            f"run 'musiclib mobile cleanup' to remove them"
        )
    return EXIT_OK


def handle_cleanup_command(ctx: AppContext) -> int:
    """Remove sidecars of sessions that are neither current nor retryable."""
    try:
        removed = ctx.reconciler().cleanup()
    except MusiclibError as e:
        log(f"❌ {e}", level="error")
        return e.exit_code

    if removed:
        log(f"Removed {len(removed)} orphaned file(s)")
    else:
        log("No orphaned files found")
    return EXIT_OK


def handle_logs_command(ctx: AppContext, log_filter: Optional[str] = None) -> int:
    """Print recent mobile operations log lines, optionally filtered."""
    log_file = Path(ctx.config.mobile.log_file)
    if not log_file.exists():
        log(f"No mobile operations logged yet ({log_file})")
        return EXIT_OK

    try:
        lines = read_log(log_file, log_filter)
    except MusiclibError as e:
        log(f"❌ {e}", level="error")
        return e.exit_code

    if not lines:
        log(f"No matching entries in {log_file}")
        return EXIT_OK

    console = get_console()
    for line in lines:
        console.print(line, markup=False, highlight=False)
    return EXIT_OK


def _stats_rows(stats: BatchStats) -> list:
    return [
        ("Total tracks in playlist", stats.total),
        ("Synthetic timestamps applied", stats.updated),
        ("Desktop timestamps preserved", stats.preserved),
        ("Not in database", stats.not_in_store),
        ("Database write failures", stats.store_write_failed),
        ("Tag write failures", stats.tag_write_failed),
    ]


def _print_reconcile(result: ReconcileResult) -> None:
    for warning in result.warnings:
        log(f"Warning: {warning}", level="warning")
    if result.outcome == ReconcileOutcome.SKIPPED:
        return

    print_summary(f"Last-played update: {result.session_id}", _stats_rows(result.stats))
    if result.outcome == ReconcileOutcome.PARTIAL:
        log(
            f"⚠ {result.stats.failed} track(s) need attention; "
            f"run 'musiclib mobile retry {result.session_id}' after fixing them",
            level="warning",
        )
        if result.stats.not_in_store:
            log("  Import missing files first with: musiclib add <path>", level="warning")
    logger.info(f"Reconciled {result.session_id}: {result.outcome.value}")


def _print_retry(result: RetryResult) -> None:
    if result.reconcile is not None:
        _print_reconcile(result.reconcile)
        return
    if not result.stats.total:
        log(f"Nothing to retry for {result.session_id}")
        return

    print_summary(
        f"Retry: {result.session_id}",
        [
            ("Entries", result.stats.total),
            ("Applied", result.stats.updated),
            ("Still unresolved", result.remaining),
        ],
    )
    if result.cleared:
        log(f"✓ Session {result.session_id} fully reconciled")
