"""
Mobile session reconciliation.

Plays on the phone are never reported back, so when a session (one uploaded
playlist) is superseded every track in it gets a synthetic last-played time
spread evenly across the session window by playlist position. Tracks already
played on the desktop inside the window keep their real time.

Per-track failures never abort the batch. They are persisted as recovery
files beside the session and re-applied by ``retry()``.
"""

import time
from dataclasses import replace
from pathlib import Path
from typing import List, Optional, Tuple

from loguru import logger

from ...core.errors import (
    AmbiguousMatch,
    ClockSkew,
    MusiclibError,
    RecordNotFound,
    SessionError,
    StoreError,
    ValidationError,
)
from ..stats import BatchStats
from ..store.models import COL_LAST_PLAYED, Table
from ..store.table import commit, find_exact, set_column
from ..store.timefmt import epoch_to_sql_time, human_time, sql_time_to_epoch
from ..store.writer import StoreWriter
from ..tags.base import KEY_LAST_PLAYED, TagWriter, write_tag_with_repair
from .models import (
    REASON_STORE_WRITE,
    REASON_TAG_WRITE,
    OpenResult,
    ReconcileOutcome,
    ReconcileResult,
    RecoveryRecord,
    RetryResult,
    Session,
    SessionStatus,
)
from .oplog import STATS_PREFIX
from .sessions import (
    NOT_IN_STORE_SUFFIX,
    WRITE_FAILED_SUFFIX,
    SessionStore,
    validate_session_id,
)

MIN_WINDOW_SECONDS = 60
MAX_WINDOW_SECONDS = 90 * 86400


def synthetic_timestamp(start_epoch: int, window: int, position: int, count: int) -> int:
    """Synthetic play time for the 1-indexed ``position`` of ``count`` tracks.

    Non-decreasing in ``position``; the last track lands exactly on the
    window end.
    """
    return start_epoch + window * position // count


def _record(path: str, epoch: int, reason: str = "") -> RecoveryRecord:
    return RecoveryRecord(path, epoch, human_time(epoch), reason)


def _log_stats(operation: str, session_id: str, stats: BatchStats) -> None:
    logger.info(
        f"{STATS_PREFIX} {operation} {session_id}: total={stats.total} "
        f"updated={stats.updated} preserved={stats.preserved} "
        f"not_in_db={stats.not_in_store} store_failed={stats.store_write_failed} "
        f"tag_failed={stats.tag_write_failed}"
    )


class SessionReconciler:
    """Applies synthetic last-played times for superseded mobile sessions."""

    def __init__(
        self,
        sessions: SessionStore,
        writer: StoreWriter,
        tag_writer: TagWriter,
        lock_timeout: float = 5.0,
        min_window: int = MIN_WINDOW_SECONDS,
        max_window: int = MAX_WINDOW_SECONDS,
    ):
        self.sessions = sessions
        self.writer = writer
        self.tag_writer = tag_writer
        self.lock_timeout = lock_timeout
        self.min_window = min_window
        self.max_window = max_window

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def open_session(
        self, session_id: str, tracks: List[str], now: Optional[int] = None
    ) -> OpenResult:
        """Register a new upload, reconciling the session it replaces.

        The new session and the ``current`` pointer are always written, even
        when reconciling the previous session failed; that failure is
        reported in the result and the previous session stays retryable.

        Raises:
            ValidationError: Bad session id, or the id still has unresolved
                recovery files from an earlier upload
        """
        validate_session_id(session_id)
        now = int(time.time()) if now is None else now
        current = self.sessions.get_current()
        result = OpenResult(session_id=session_id, previous_id=current)

        if current == session_id:
            logger.info("Same playlist - no last-played updates needed")
            result.unchanged = True
            return result

        if self.sessions.has_recovery(session_id):
            raise ValidationError(
                f"Session {session_id} has unresolved recovery entries; "
                f"retry or clean it up before uploading it again"
            )

        if current is None:
            result.initialized = True
        else:
            self._close_previous(current, now, result)

        self.sessions.save(Session(session_id, now, list(tracks)))
        self.sessions.set_current(session_id)
        logger.info(f"Current mobile playlist set to: {session_id} ({len(tracks)} tracks)")
        return result

    def _close_previous(self, previous_id: str, now: int, result: OpenResult) -> None:
        try:
            previous = self.sessions.load(previous_id)
            if previous is None:
                message = f"Metadata not found for previous playlist {previous_id}"
                logger.warning(message)
                result.warnings.append(message)
                return

            if self.sessions.has_recovery(previous_id):
                result.retry = self.retry(previous_id, is_current=False)
                return

            self.sessions.save_end(previous_id, now)
            result.reconcile = self.reconcile(previous, now)
        except MusiclibError as e:
            logger.error(f"Reconciling previous playlist {previous_id} failed: {e}")
            result.error = str(e)

    def reconcile_session(
        self, session_id: str, end_epoch: Optional[int] = None
    ) -> ReconcileResult:
        """Reconcile a stored session by id.

        The window end is ``end_epoch``, else the persisted end, else now.
        A session with outstanding recovery files is retried instead; its
        retry counts are returned with outcome PARTIAL or CLEAN.
        """
        session = self.sessions.load(session_id)
        if session is None:
            logger.info(f"No stored session {session_id} - nothing to reconcile")
            return ReconcileResult(session_id, ReconcileOutcome.NOT_FOUND)

        if self.sessions.has_recovery(session_id):
            retried = self.retry(session_id)
            outcome = (
                ReconcileOutcome.PARTIAL if retried.remaining else ReconcileOutcome.CLEAN
            )
            return ReconcileResult(session_id, outcome, stats=retried.stats)

        if end_epoch is None:
            end_epoch = session.end_epoch
        if end_epoch is None:
            end_epoch = int(time.time())
        return self.reconcile(session, end_epoch)

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def reconcile(self, session: Session, end_epoch: int) -> ReconcileResult:
        """Apply synthetic last-played times for one session window.

        Raises:
            ClockSkew: Window ends before it starts; nothing is written
            LockTimeout: Store lock not acquired; session kept for retry
            StoreError: Store missing or its header lacks LastTimePlayed
        """
        session_id = session.session_id
        start = session.start_epoch
        if end_epoch < start:
            raise ClockSkew(start, end_epoch)

        window = end_epoch - start
        result = ReconcileResult(session_id, ReconcileOutcome.CLEAN, window=window)
        stats = result.stats
        stats.total = len(session.tracks)

        if window < self.min_window:
            message = f"Time window too short ({window} seconds), skipping update"
            logger.warning(message)
            result.warnings.append(message)
            self.sessions.delete(session_id)
            result.outcome = ReconcileOutcome.SKIPPED
            stats.skipped = stats.total
            return result

        if window > self.max_window:
            message = f"Time window suspiciously long ({window // 86400} days)"
            logger.warning(message)
            result.warnings.append(message)

        logger.info(
            f"Reconciling {session_id}: {stats.total} tracks over "
            f"{window // 86400} days, {window % 86400 // 3600} hours"
        )
        self.sessions.save_end(session_id, end_epoch)

        not_in_store: List[RecoveryRecord] = []
        write_failed: List[RecoveryRecord] = []
        updated: List[Tuple[str, int]] = []
        count = len(session.tracks)

        def mutate(table: Table) -> None:
            # Missing column aborts before any row changes
            table.column_index(COL_LAST_PLAYED)

            for position, path in enumerate(session.tracks, start=1):
                synthetic = synthetic_timestamp(start, window, position, count)
                try:
                    row = find_exact(table, path)
                except RecordNotFound:
                    logger.warning(f"Track not in database: {path}")
                    not_in_store.append(_record(path, synthetic))
                    continue
                except AmbiguousMatch as e:
                    logger.error(str(e))
                    write_failed.append(_record(path, synthetic, REASON_STORE_WRITE))
                    continue

                existing = sql_time_to_epoch(table.value(row, COL_LAST_PLAYED))
                if existing is not None and start <= existing <= end_epoch:
                    logger.debug(f"Preserving desktop timestamp for {path}")
                    stats.preserved += 1
                    continue

                set_column(table, row, COL_LAST_PLAYED, epoch_to_sql_time(synthetic))
                updated.append((path, synthetic))

            self._commit_or_fail(table, updated, write_failed)

        self.writer.transaction(self.lock_timeout, mutate)

        stats.updated = len(updated)
        self._write_tags(updated, write_failed, stats)
        stats.not_in_store = len(not_in_store)
        stats.store_write_failed = sum(
            1 for r in write_failed if r.reason == REASON_STORE_WRITE
        )

        self.sessions.write_recovery(session_id, NOT_IN_STORE_SUFFIX, not_in_store)
        self.sessions.write_recovery(session_id, WRITE_FAILED_SUFFIX, write_failed)
        _log_stats("reconcile", session_id, stats)

        if not_in_store or write_failed:
            result.outcome = ReconcileOutcome.PARTIAL
            logger.warning(
                f"Session {session_id} partially reconciled: "
                f"{stats.not_in_store} not in database, "
                f"{len(write_failed)} write failures"
            )
        else:
            self.sessions.delete(session_id)
            logger.info(f"Updated mobile last-played: {session_id} ({stats.updated} tracks)")

        return result

    def _commit_or_fail(
        self,
        table: Table,
        updated: List[Tuple[str, int]],
        write_failed: List[RecoveryRecord],
    ) -> None:
        """Commit once; on failure every updated row becomes a store-write record."""
        if not table.dirty:
            return
        try:
            commit(table)
        except StoreError as e:
            logger.error(f"Database update failed: {e}")
            write_failed.extend(
                _record(path, epoch, REASON_STORE_WRITE) for path, epoch in updated
            )
            updated.clear()
            table.dirty = False

    def _write_tags(
        self,
        updated: List[Tuple[str, int]],
        write_failed: List[RecoveryRecord],
        stats: BatchStats,
    ) -> None:
        for path, epoch in updated:
            sql_time = epoch_to_sql_time(epoch)
            if not write_tag_with_repair(self.tag_writer, path, KEY_LAST_PLAYED, sql_time):
                stats.tag_write_failed += 1
                write_failed.append(_record(path, epoch, REASON_TAG_WRITE))

    # ------------------------------------------------------------------
    # Recovery
    # ------------------------------------------------------------------

    def retry(self, session_id: str, is_current: Optional[bool] = None) -> RetryResult:
        """Re-apply a session's recovery files using their stored times.

        The current session keeps its sidecars once resolved. ``is_current``
        overrides the pointer check for a session that is being replaced.

        A superseded session with sidecars but no recovery files (its
        reconciliation never ran to completion) is reconciled with its
        persisted window end.

        Raises:
            LockTimeout: Store lock not acquired; recovery files unchanged
            SessionError: Nothing recorded to reconcile the session with
        """
        validate_session_id(session_id)
        result = RetryResult(session_id)
        if is_current is None:
            is_current = self.sessions.get_current() == session_id

        pending_not_in_store = self.sessions.read_recovery(session_id, NOT_IN_STORE_SUFFIX)
        pending_failed = self.sessions.read_recovery(session_id, WRITE_FAILED_SUFFIX)

        if not pending_not_in_store and not pending_failed:
            session = self.sessions.load(session_id)
            if session is None or is_current:
                logger.info(f"Nothing to retry for {session_id}")
                return result
            if session.end_epoch is None:
                raise SessionError(
                    f"Session {session_id} has no recorded window end; "
                    f"reconcile it with an explicit end time"
                )
            result.reconcile = self.reconcile(session, session.end_epoch)
            result.stats = result.reconcile.stats
            result.remaining = result.reconcile.stats.failed
            result.cleared = result.reconcile.outcome in (
                ReconcileOutcome.CLEAN,
                ReconcileOutcome.SKIPPED,
            )
            return result

        stats = result.stats
        stats.total = len(pending_not_in_store) + len(pending_failed)
        store_records = pending_not_in_store + [
            r for r in pending_failed if r.reason != REASON_TAG_WRITE
        ]
        tag_only = [r for r in pending_failed if r.reason == REASON_TAG_WRITE]

        still_not_in_store: List[RecoveryRecord] = []
        still_failed: List[RecoveryRecord] = []
        updated: List[Tuple[str, int]] = []

        def mutate(table: Table) -> None:
            table.column_index(COL_LAST_PLAYED)
            for record in store_records:
                try:
                    row = find_exact(table, record.path)
                except RecordNotFound:
                    if record.reason:
                        still_failed.append(record)
                    else:
                        still_not_in_store.append(record)
                    continue
                except AmbiguousMatch as e:
                    logger.error(str(e))
                    still_failed.append(replace(record, reason=REASON_STORE_WRITE))
                    continue
                set_column(
                    table, row, COL_LAST_PLAYED, epoch_to_sql_time(record.synthetic_epoch)
                )
                updated.append((record.path, record.synthetic_epoch))

            self._commit_or_fail(table, updated, still_failed)

        if store_records:
            self.writer.transaction(self.lock_timeout, mutate)

        stats.updated = len(updated)
        tag_targets = updated + [(r.path, r.synthetic_epoch) for r in tag_only]
        self._write_tags(tag_targets, still_failed, stats)
        stats.not_in_store = len(still_not_in_store)
        stats.store_write_failed = sum(
            1 for r in still_failed if r.reason == REASON_STORE_WRITE
        )

        self.sessions.write_recovery(session_id, NOT_IN_STORE_SUFFIX, still_not_in_store)
        self.sessions.write_recovery(session_id, WRITE_FAILED_SUFFIX, still_failed)
        result.remaining = len(still_not_in_store) + len(still_failed)
        _log_stats("retry", session_id, stats)

        if result.remaining == 0 and not is_current:
            self.sessions.delete(session_id)
            result.cleared = True

        logger.info(
            f"Retry {session_id}: {stats.updated} applied, "
            f"{result.remaining} still unresolved"
        )
        return result

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def status(self) -> SessionStatus:
        """Report the current session and sessions awaiting recovery."""
        status = SessionStatus()
        current = self.sessions.get_current()
        if current:
            status.current_id = current
            session = self.sessions.load(current)
            if session is not None:
                status.uploaded_epoch = session.start_epoch
                status.track_count = len(session.tracks)

        for session_id in self.sessions.session_ids():
            if session_id == current:
                continue
            if self.sessions.has_recovery(session_id):
                status.pending.append(
                    (
                        session_id,
                        len(self.sessions.read_recovery(session_id, NOT_IN_STORE_SUFFIX)),
                        len(self.sessions.read_recovery(session_id, WRITE_FAILED_SUFFIX)),
                    )
                )
            elif self.sessions.load_end(session_id) is not None:
                status.interrupted.append(session_id)
            else:
                status.orphaned.append(session_id)
        return status

    def cleanup(self) -> List[Path]:
        """Delete sidecars of sessions that are neither current nor retryable."""
        removed: List[Path] = []
        for session_id in self.status().orphaned:
            for path in self.sessions.delete(session_id):
                logger.info(f"Removing orphaned file: {path.name}")
                removed.append(path)
        return removed
