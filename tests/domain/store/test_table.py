"""Tests for record store table operations."""

import pytest

from musiclib.core.errors import (
    AmbiguousMatch,
    RecordNotFound,
    SchemaError,
    StoreError,
    ValidationError,
)
from musiclib.domain.store import (
    COL_ALBUM_ID,
    COL_ARTIST,
    COL_ID,
    COL_LAST_PLAYED,
    COL_PATH,
    COL_RATING,
    DEFAULT_HEADER,
    DELIMITER,
    append,
    backup_store,
    commit,
    create_store,
    delete_exact,
    find_exact,
    load_table,
    set_column,
)


class TestLoadTable:
    def test_parses_header_and_rows(self, store_file, tracks):
        table = load_table(store_file)
        assert table.header == DEFAULT_HEADER
        assert len(table.rows) == 3
        assert table.value(0, COL_PATH) == tracks[0]

    def test_missing_file(self, tmp_path):
        with pytest.raises(StoreError):
            load_table(tmp_path / "missing.dsv")

    def test_missing_header(self, tmp_path):
        path = tmp_path / "bad.dsv"
        path.write_text("1^Artist^x\n")
        with pytest.raises(SchemaError):
            load_table(path)

    def test_unknown_column(self, store_file):
        table = load_table(store_file)
        with pytest.raises(SchemaError):
            table.column_index("PlayCount")


class TestFindExact:
    def test_whole_field_match_only(self, store_factory, row_factory):
        """A path that prefixes a longer path must not match it."""
        path = store_factory(
            [row_factory("1", "A", "1", "X", "Long", "/music/song.mp3.bak")]
        )
        table = load_table(path)
        with pytest.raises(RecordNotFound):
            find_exact(table, "/music/song.mp3")

    def test_ambiguous(self, store_factory, row_factory):
        path = store_factory(
            [
                row_factory("1", "A", "1", "X", "One", "/music/dup.mp3"),
                row_factory("2", "A", "1", "X", "Two", "/music/dup.mp3"),
            ]
        )
        with pytest.raises(AmbiguousMatch) as exc_info:
            find_exact(load_table(path), "/music/dup.mp3")
        assert exc_info.value.count == 2


class TestSetColumn:
    def test_round_trip_changes_only_target_cell(self, store_file, tracks):
        """Every byte outside the updated cell is unchanged after commit."""
        original = store_file.read_text()
        table = load_table(store_file)
        row = find_exact(table, tracks[1])
        set_column(table, row, COL_LAST_PLAYED, "45000.500000")
        commit(table)

        updated = store_file.read_text()
        original_lines = original.split("\n")
        updated_lines = updated.split("\n")
        assert len(original_lines) == len(updated_lines)
        for i, (before, after) in enumerate(zip(original_lines, updated_lines)):
            if i == row + 1:
                before_fields = before.split(DELIMITER)
                after_fields = after.split(DELIMITER)
                col = table.column_index(COL_LAST_PLAYED)
                assert after_fields[col] == "45000.500000"
                after_fields[col] = before_fields[col]
                assert after_fields == before_fields
            else:
                assert before == after

    def test_preserves_missing_trailing_newline(self, tmp_path, row_factory):
        path = tmp_path / "no_newline.dsv"
        path.write_text(
            DELIMITER.join(DEFAULT_HEADER)
            + "\n"
            + row_factory("1", "A", "1", "X", "T", "/m/t.mp3")
        )
        table = load_table(path)
        set_column(table, 0, COL_RATING, "64")
        commit(table)
        assert not path.read_text().endswith("\n")

    def test_rejects_delimiter_in_value(self, store_file):
        table = load_table(store_file)
        with pytest.raises(ValidationError):
            set_column(table, 0, COL_ARTIST, "AC^DC")
        assert not table.dirty

    def test_missing_column(self, store_file):
        table = load_table(store_file)
        with pytest.raises(SchemaError):
            set_column(table, 0, "Mood", "happy")


class TestAppend:
    def test_assigns_next_id_and_existing_album_id(self, store_file):
        table = load_table(store_file)
        new_id = append(
            table, {COL_PATH: "/music/new.mp3", "Album": "Album Y", COL_ARTIST: "B"}
        )
        assert new_id == 4
        assert table.value(3, COL_ID) == "4"
        assert table.value(3, COL_ALBUM_ID) == "2"

    def test_new_album_gets_next_album_id(self, store_file):
        table = load_table(store_file)
        append(table, {COL_PATH: "/music/new.mp3", "Album": "Brand New"})
        assert table.value(3, COL_ALBUM_ID) == "3"

    def test_blank_album_gets_blank_album_id(self, store_file):
        table = load_table(store_file)
        append(table, {COL_PATH: "/music/single.mp3"})
        assert table.value(3, COL_ALBUM_ID) == ""

    def test_duplicate_path_is_noop(self, store_file, tracks):
        table = load_table(store_file)
        assert append(table, {COL_PATH: tracks[0]}) is None
        assert len(table.rows) == 3
        assert not table.dirty

    def test_new_row_has_header_width(self, store_file):
        table = load_table(store_file)
        append(table, {COL_PATH: "/music/new.mp3"})
        assert len(table.rows[-1].fields) == len(DEFAULT_HEADER)

    def test_requires_path(self, store_file):
        with pytest.raises(ValidationError):
            append(load_table(store_file), {COL_ARTIST: "Nobody"})


class TestDeleteExact:
    def test_removes_only_matching_row(self, store_file, tracks):
        table = load_table(store_file)
        removed = delete_exact(table, tracks[1])
        commit(table)
        assert removed.get(table.column_index(COL_PATH)) == tracks[1]
        reloaded = load_table(store_file)
        assert [reloaded.value(i, COL_PATH) for i in range(2)] == [tracks[0], tracks[2]]

    def test_not_found_leaves_file_unchanged(self, store_file):
        original = store_file.read_bytes()
        table = load_table(store_file)
        with pytest.raises(RecordNotFound):
            delete_exact(table, "/music/unknown.mp3")
        assert not table.dirty
        assert store_file.read_bytes() == original

    def test_ambiguous_leaves_file_unchanged(self, store_factory, row_factory):
        path = store_factory(
            [
                row_factory("1", "A", "1", "X", "One", "/music/dup.mp3"),
                row_factory("2", "A", "1", "X", "Two", "/music/dup.mp3"),
            ]
        )
        original = path.read_bytes()
        table = load_table(path)
        with pytest.raises(AmbiguousMatch):
            delete_exact(table, "/music/dup.mp3")
        assert len(table.rows) == 2
        assert path.read_bytes() == original

    def test_record_id_narrows_ambiguous_match(self, store_factory, row_factory):
        path = store_factory(
            [
                row_factory("1", "A", "1", "X", "One", "/music/dup.mp3"),
                row_factory("2", "A", "1", "X", "Two", "/music/dup.mp3"),
            ]
        )
        table = load_table(path)
        delete_exact(table, "/music/dup.mp3", record_id="2")
        assert [row.get(0) for row in table.rows] == ["1"]


class TestCreateAndBackup:
    def test_create_store_writes_header(self, tmp_path):
        path = tmp_path / "lib" / "musiclib.dsv"
        assert create_store(path) is True
        assert path.read_text() == DELIMITER.join(DEFAULT_HEADER) + "\n"
        assert create_store(path) is False

    def test_backup_keeps_newest(self, store_file):
        # Pre-existing backups sort before today's timestamp
        for stamp in ("20200101_000000", "20200102_000000", "20200103_000000"):
            store_file.with_name(f"{store_file.name}.backup.{stamp}").write_text("old")

        backup = backup_store(store_file, keep=2)

        backups = sorted(store_file.parent.glob(f"{store_file.name}.backup.*"))
        assert backup in backups
        assert len(backups) == 2
        assert backup.read_text() == store_file.read_text()
