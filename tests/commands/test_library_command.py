"""Tests for init, add, remove, scrobble, backup and build commands."""

import pytest

from musiclib.commands.library import (
    handle_add_command,
    handle_backup_command,
    handle_build_command,
    handle_init_command,
    handle_remove_command,
    handle_scrobble_command,
)
from musiclib.context import AppContext
from musiclib.core.errors import (
    EXIT_DEFERRED,
    EXIT_OK,
    EXIT_SYSTEM_ERROR,
    EXIT_USER_ERROR,
)
from musiclib.core.locking import exclusive_lock
from musiclib.domain.store import (
    COL_LAST_PLAYED,
    epoch_to_sql_time,
    find_exact,
    find_rows,
)


@pytest.fixture
def incoming(tmp_path):
    """Directory with two new audio files and one non-audio file."""
    folder = tmp_path / "incoming"
    folder.mkdir()
    (folder / "first.mp3").write_bytes(b"\x00")
    (folder / "second.mp3").write_bytes(b"\x00")
    (folder / "notes.txt").write_text("not audio")
    return folder


class TestInitCommand:
    def test_creates_store(self, ctx, tmp_path):
        ctx.config.library.database_path = str(tmp_path / "fresh" / "musiclib.dsv")
        assert handle_init_command(ctx) == EXIT_OK
        assert (tmp_path / "fresh" / "musiclib.dsv").exists()

    def test_existing_store_untouched(self, ctx, store_file):
        before = store_file.read_bytes()
        assert handle_init_command(ctx) == EXIT_OK
        assert store_file.read_bytes() == before


class TestAddCommand:
    def test_imports_directory(self, ctx, incoming, fake_tags):
        assert handle_add_command(ctx, [str(incoming)], last_played=1_700_000_000) == EXIT_OK

        table = ctx.writer.read()
        first = str((incoming / "first.mp3").resolve())
        row = find_exact(table, first)
        assert table.value(row, "ID") == "4"
        assert table.value(row, COL_LAST_PLAYED) == epoch_to_sql_time(1_700_000_000)
        assert len(table.rows) == 5
        assert fake_tags.fields[(first, "LastPlayed")] == epoch_to_sql_time(1_700_000_000)

    def test_second_import_skips_duplicates(self, ctx, incoming, fake_reader):
        handle_add_command(ctx, [str(incoming)])
        fake_reader.extracted.clear()

        assert handle_add_command(ctx, [str(incoming)]) == EXIT_OK
        assert fake_reader.extracted == []
        assert len(ctx.writer.read().rows) == 5

    def test_busy_store_queues_imports(self, ctx, incoming):
        with exclusive_lock(ctx.writer.lock_path, 5):
            code = handle_add_command(ctx, [str(incoming)])

        assert code == EXIT_DEFERRED
        lines = ctx.queue.read()
        assert len(lines) == 2
        assert all("|add|add_track|" in line for line in lines)

    def test_all_missing_is_user_error(self, ctx, tmp_path):
        assert handle_add_command(ctx, [str(tmp_path / "gone.mp3")]) == EXIT_USER_ERROR

    def test_missing_store_is_system_error(self, ctx, incoming, tmp_path):
        ctx.writer.store_path = tmp_path / "absent.dsv"
        assert handle_add_command(ctx, [str(incoming)]) == EXIT_SYSTEM_ERROR


class TestRemoveCommand:
    def test_removes_track(self, ctx, tracks):
        assert handle_remove_command(ctx, tracks[0]) == EXIT_OK
        assert find_rows(ctx.writer.read(), tracks[0]) == []

    def test_not_found(self, ctx):
        assert handle_remove_command(ctx, "/music/unknown.mp3") == EXIT_USER_ERROR

    def test_ambiguous_refuses(self, config, store_factory, row_factory, fake_tags, fake_reader):
        dup = "/music/dup.mp3"
        config.library.database_path = str(
            store_factory(
                [
                    row_factory("1", "A", "1", "X", "One", dup),
                    row_factory("2", "A", "1", "X", "Two", dup),
                ]
            )
        )
        ctx = AppContext.create(config, tag_writer=fake_tags, reader=fake_reader)

        assert handle_remove_command(ctx, dup) == EXIT_SYSTEM_ERROR
        assert handle_remove_command(ctx, dup, record_id="2") == EXIT_OK
        assert len(ctx.writer.read().rows) == 1

    def test_busy_store_is_system_error(self, ctx, tracks, store_file):
        before = store_file.read_bytes()
        with exclusive_lock(ctx.writer.lock_path, 5):
            assert handle_remove_command(ctx, tracks[0]) == EXIT_SYSTEM_ERROR
        assert store_file.read_bytes() == before
        assert not ctx.queue.path.exists()


class TestScrobbleCommand:
    def test_records_play_in_store_and_tag(self, ctx, tracks, fake_tags):
        assert handle_scrobble_command(ctx, tracks[2], played_at=1_700_000_000) == EXIT_OK
        table = ctx.writer.read()
        expected = epoch_to_sql_time(1_700_000_000)
        assert table.value(find_exact(table, tracks[2]), COL_LAST_PLAYED) == expected
        assert fake_tags.fields[(tracks[2], "LastPlayed")] == expected

    def test_busy_store_is_not_an_error(self, ctx, tracks, store_file):
        before = store_file.read_bytes()
        with exclusive_lock(ctx.writer.lock_path, 5):
            assert handle_scrobble_command(ctx, tracks[2]) == EXIT_OK
        assert store_file.read_bytes() == before
        assert not ctx.queue.path.exists()


class TestBackupCommand:
    def test_creates_backup(self, ctx, store_file):
        assert handle_backup_command(ctx) == EXIT_OK
        backups = list(store_file.parent.glob(f"{store_file.name}.backup.*"))
        assert len(backups) == 1


class TestBuildCommand:
    @pytest.fixture
    def library_root(self, incoming, ctx):
        ctx.config.library.music_root = str(incoming)
        return incoming

    def test_rebuilds_from_scan(self, ctx, library_root, store_file):
        assert handle_build_command(ctx) == EXIT_OK

        table = ctx.writer.read()
        assert len(table.rows) == 2
        first = str((library_root / "first.mp3").resolve())
        assert table.value(find_exact(table, first), "ID") == "1"
        assert "Song A" not in store_file.read_text()

    def test_backup_before_replace(self, ctx, library_root, store_file):
        assert handle_build_command(ctx, backup=True) == EXIT_OK
        backups = list(store_file.parent.glob(f"{store_file.name}.backup.*"))
        assert len(backups) == 1
        assert "Song A" in backups[0].read_text()

    def test_dry_run_changes_nothing(self, ctx, library_root, store_file, fake_reader):
        before = store_file.read_bytes()
        assert handle_build_command(ctx, dry_run=True) == EXIT_OK
        assert store_file.read_bytes() == before
        assert fake_reader.extracted == []

    def test_output_file_leaves_store_alone(self, ctx, library_root, store_file, tmp_path):
        before = store_file.read_bytes()
        target = tmp_path / "preview.dsv"

        assert handle_build_command(ctx, output=str(target)) == EXIT_OK

        assert store_file.read_bytes() == before
        assert len(target.read_text().splitlines()) == 3

    def test_missing_directory(self, ctx, tmp_path):
        assert handle_build_command(ctx, str(tmp_path / "nowhere")) == EXIT_SYSTEM_ERROR

    def test_empty_library(self, ctx, tmp_path):
        (tmp_path / "empty").mkdir()
        assert handle_build_command(ctx, str(tmp_path / "empty")) == EXIT_USER_ERROR

    def test_busy_store_not_replaced(self, ctx, library_root, store_file):
        ctx.config.locks.build_timeout = 0.1
        before = store_file.read_bytes()
        with exclusive_lock(ctx.writer.lock_path, 5):
            assert handle_build_command(ctx) == EXIT_SYSTEM_ERROR
        assert store_file.read_bytes() == before
