"""
Library command handlers: init, add, remove, scrobble, backup, build.
"""

import time
from collections import Counter
from pathlib import Path
from typing import List, Optional

from loguru import logger

from musiclib.commands.pending import drain_after_write
from musiclib.context import AppContext
from musiclib.core.console import print_summary
from musiclib.core.errors import (
    EXIT_DEFERRED,
    EXIT_OK,
    EXIT_SYSTEM_ERROR,
    EXIT_USER_ERROR,
    AmbiguousMatch,
    LockTimeout,
    MusiclibError,
    RecordNotFound,
    StoreError,
)
from musiclib.core.output import log
from musiclib.domain.pending import OP_ADD_TRACK
from musiclib.domain.stats import BatchStats
from musiclib.domain.store import (
    album_count,
    backup_store,
    build_table,
    build_track_fields,
    collect_audio_files,
    commit,
    create_store,
    epoch_to_sql_time,
    find_rows,
)
from musiclib.domain.tags import (
    KEY_GROUPDESC,
    KEY_LAST_PLAYED,
    KEY_RATING,
    write_tag_with_repair,
)


def handle_init_command(ctx: AppContext) -> int:
    """Create an empty store with the default header."""
    path = Path(ctx.config.library.database_path)
    try:
        created = create_store(path)
    except StoreError as e:
        log(f"❌ {e}", level="error")
        return e.exit_code

    if created:
        log(f"✓ Created database: {path}")
    else:
        log(f"Database already exists: {path}")
    return EXIT_OK


def handle_add_command(
    ctx: AppContext, paths: List[str], last_played: Optional[int] = None
) -> int:
    """Import audio files (or directories of them) into the store.

    Returns:
        Exit code: 3 if any track was queued, 1 if every track failed,
        otherwise 0
    """
    library = ctx.config.library
    files = collect_audio_files(paths, library.supported_formats)
    if not files:
        log("No audio files found - nothing to do")
        return EXIT_OK

    last_played_sql = epoch_to_sql_time(
        int(time.time()) if last_played is None else last_played
    )

    try:
        existing = ctx.writer.read()
    except StoreError as e:
        log(f"❌ {e}", level="error")
        return e.exit_code

    stats = BatchStats(total=len(files))
    for path in files:
        # Cheap duplicate check before reading tags; append() re-checks under the lock
        if find_rows(existing, path):
            logger.info(f"Skipping (already in database): {path}")
            stats.skipped += 1
            continue
        _add_one(ctx, path, last_played_sql, stats)

    print_summary(
        "Import summary",
        [
            ("Added", stats.updated),
            ("Already present", stats.skipped),
            ("Queued (database busy)", stats.deferred),
            ("Failed", stats.errors),
        ],
    )

    if stats.updated:
        drain_after_write(ctx)
    if stats.deferred:
        return EXIT_DEFERRED
    if stats.errors and stats.errors == stats.total:
        return EXIT_USER_ERROR
    return EXIT_OK


def _add_one(ctx: AppContext, path: str, last_played_sql: str, stats: BatchStats) -> None:
    library = ctx.config.library
    if not Path(path).is_file():
        log(f"✗ File not found: {path}", level="error")
        stats.errors += 1
        return

    try:
        fields = build_track_fields(
            path,
            ctx.reader,
            last_played_sql,
            library.default_rating,
            library.default_groupdesc,
        )
        new_id = ctx.writer.add_track(fields, ctx.config.locks.import_timeout)
    except LockTimeout:
        try:
            ctx.queue.enqueue(OP_ADD_TRACK, [path, last_played_sql], origin="add")
        except MusiclibError as e:
            log(f"✗ Database busy and import could not be queued: {e}", level="error")
            stats.errors += 1
            return
        log(f"⏳ Queued: {Path(path).name} (will be added when database is available)")
        stats.deferred += 1
        return
    except MusiclibError as e:
        log(f"✗ Failed to add {path}: {e}", level="error")
        stats.errors += 1
        return

    if new_id is None:
        stats.skipped += 1
        return

    # Tag failures never undo the import
    ctx.tag_writer.set_field(path, KEY_LAST_PLAYED, last_played_sql)
    ctx.tag_writer.set_field(path, KEY_RATING, library.default_rating)
    ctx.tag_writer.set_field(path, KEY_GROUPDESC, library.default_groupdesc)

    log(f"✓ Added: {fields['SongTitle']} (ID: {new_id})")
    stats.updated += 1


def handle_remove_command(
    ctx: AppContext, path: str, record_id: Optional[str] = None
) -> int:
    """Delete one track's row from the store.

    Returns:
        Exit code: 0 removed, 1 not found, 2 ambiguous or database busy
    """
    locks = ctx.config.locks
    for attempt in range(1, locks.remove_attempts + 1):
        try:
            ctx.writer.remove(path, locks.remove_timeout, record_id=record_id)
            break
        except LockTimeout:
            if attempt < locks.remove_attempts:
                logger.info(
                    f"Database locked, retrying in {locks.retry_delay}s "
                    f"(attempt {attempt}/{locks.remove_attempts})"
                )
                time.sleep(locks.retry_delay)
        except RecordNotFound as e:
            log(f"❌ {e}", level="error")
            return e.exit_code
        except AmbiguousMatch as e:
            log(f"❌ {e}; pass --id to choose one", level="error")
            return e.exit_code
        except MusiclibError as e:
            log(f"❌ Remove failed: {e}", level="error")
            return e.exit_code
    else:
        log(
            f"❌ Database locked after {locks.remove_attempts} attempts, "
            f"nothing removed: {path}",
            level="error",
        )
        return EXIT_SYSTEM_ERROR

    log(f"✓ Removed from database: {path}")
    drain_after_write(ctx)
    return EXIT_OK


def handle_scrobble_command(
    ctx: AppContext, path: str, played_at: Optional[int] = None
) -> int:
    """Record a play: set LastTimePlayed in the store, then in the tags.

    A busy store is not an error; the next track change records again.
    """
    played_at = int(time.time()) if played_at is None else played_at
    try:
        sql_time = ctx.writer.set_last_played(
            path, played_at, ctx.config.locks.scrobble_timeout
        )
    except LockTimeout:
        log("Database locked, will retry on next track change", level="warning")
        return EXIT_OK
    except RecordNotFound:
        log(f"⚠ Track not in database, play not recorded: {path}", level="warning")
        return EXIT_OK
    except MusiclibError as e:
        log(f"❌ Could not record play: {e}", level="error")
        return e.exit_code

    if not write_tag_with_repair(ctx.tag_writer, path, KEY_LAST_PLAYED, sql_time):
        log(f"⚠ Play recorded but tag write failed: {path}", level="warning")

    logger.info(f"Scrobbled {path} at {sql_time}")
    drain_after_write(ctx)
    return EXIT_OK


def handle_backup_command(ctx: AppContext) -> int:
    """Copy the store to a timestamped backup, pruning old ones."""
    library = ctx.config.library
    try:
        backup = backup_store(library.database_path, keep=library.backup_count)
    except StoreError as e:
        log(f"❌ {e}", level="error")
        return e.exit_code
    log(f"✓ Backup created: {backup}")
    return EXIT_OK


def handle_build_command(
    ctx: AppContext,
    music_dir: Optional[str] = None,
    dry_run: bool = False,
    backup: bool = False,
    output: Optional[str] = None,
) -> int:
    """Rebuild the whole store from the tags of every file under ``music_dir``.

    With ``output`` the rebuilt table is written there and the live store is
    left alone.

    Returns:
        Exit code: 0 rebuilt or previewed, 1 nothing to build,
        2 missing directory or database busy
    """
    library = ctx.config.library
    root = Path(music_dir or library.music_root).expanduser()
    if not root.is_dir():
        log(f"❌ Music directory not found: {root}", level="error")
        return EXIT_SYSTEM_ERROR

    files = collect_audio_files([root], library.supported_formats)
    if not files:
        log(f"❌ No audio files found in {root}", level="error")
        return EXIT_USER_ERROR

    target = Path(output).expanduser() if output else Path(library.database_path)
    if dry_run:
        _print_build_preview(files, target, backup and not output)
        return EXIT_OK

    log(f"Scanning {len(files)} files under {root}...")
    table, stats = build_table(
        target,
        files,
        ctx.reader,
        library.default_rating,
        library.default_groupdesc,
    )
    if not table.rows:
        log("❌ No tracks could be read - database left unchanged", level="error")
        return EXIT_USER_ERROR

    backup_path = None
    try:
        if output:
            commit(table, target)
        else:
            backup_path = ctx.writer.replace(
                table,
                ctx.config.locks.build_timeout,
                backup_keep=library.backup_count if backup else 0,
            )
    except LockTimeout as e:
        log(f"❌ Database busy, rebuild not applied: {e}", level="error")
        ctx.notifier.error("Library rebuild failed: database busy")
        return EXIT_SYSTEM_ERROR
    except MusiclibError as e:
        log(f"❌ Rebuild failed: {e}", level="error")
        return e.exit_code

    rows = [
        ("Tracks written", stats.updated),
        ("Unique albums", album_count(table)),
        ("Duplicates skipped", stats.skipped),
        ("Unreadable files", stats.errors),
    ]
    if backup_path:
        rows.append(("Backup", backup_path.name))
    print_summary(f"Rebuild: {target}", rows)

    ctx.notifier.success(f"Library rebuilt: {stats.updated} tracks")
    if not output:
        drain_after_write(ctx)
    return EXIT_OK


def _print_build_preview(files: List[str], target: Path, backup: bool) -> None:
    by_format = Counter(Path(f).suffix.lower() for f in files)
    rows = [("Audio files", len(files))]
    rows.extend((f"  {suffix}", count) for suffix, count in sorted(by_format.items()))
    rows.append(("Target", str(target)))
    rows.append(("Backup first", "yes" if backup else "no"))
    print_summary("Rebuild preview (no changes made)", rows)
    for path in files[:10]:
        logger.info(f"Would process: {path}")
