"""Tests for the pending operation queue."""

import pytest

from musiclib.core.errors import LockTimeout, StoreError, ValidationError
from musiclib.core.locking import exclusive_lock
from musiclib.domain.pending import (
    OP_ADD_TRACK,
    OP_RATE,
    PendingOperation,
    PendingQueue,
    build_handlers,
)
from musiclib.domain.store import (
    COL_GROUPDESC,
    COL_RATING,
    StoreWriter,
    find_exact,
    find_rows,
)


class TestPendingOperation:
    def test_parse_line(self):
        op = PendingOperation.parse("1700000000|rate|rate|/music/a.mp3|4")
        assert op.timestamp == 1700000000
        assert op.origin == "rate"
        assert op.op_type == "rate"
        assert op.args == ("/music/a.mp3", "4")

    @pytest.mark.parametrize("line", ["garbage", "abc|rate|rate|x|1", "1|origin|"])
    def test_malformed(self, line):
        with pytest.raises(ValueError):
            PendingOperation.parse(line)

    def test_to_line_rejects_separator(self):
        op = PendingOperation(1, "rate", "rate", ("/music/a|b.mp3", "3"))
        with pytest.raises(ValidationError):
            op.to_line()


class TestEnqueue:
    def test_appends_lines(self, tmp_path):
        queue = PendingQueue(tmp_path / ".pending_operations")
        queue.enqueue(OP_RATE, ["/music/a.mp3", "3"], origin="rate", timestamp=10)
        queue.enqueue(OP_RATE, ["/music/b.mp3", "5"], origin="rate", timestamp=11)
        assert queue.read() == [
            "10|rate|rate|/music/a.mp3|3",
            "11|rate|rate|/music/b.mp3|5",
        ]

    def test_nothing_written_for_invalid_args(self, tmp_path):
        queue = PendingQueue(tmp_path / ".pending_operations")
        with pytest.raises(ValidationError):
            queue.enqueue(OP_RATE, ["/music/a|b.mp3", "3"])
        assert not queue.path.exists()


class TestDrain:
    """Tests for PendingQueue.drain()."""

    @pytest.fixture
    def queue_file(self, tmp_path):
        return tmp_path / ".pending_operations"

    def test_five_lines_with_unknown_op(self, queue_file):
        """Four handled lines and one unknown op type leave no queue file."""
        queue_file.write_text(
            "1|rate|rate|/music/a.mp3|3\n"
            "2|rate|rate|/music/b.mp3|5\n"
            "3|mystery|frobnicate|/music/c.mp3\n"
            "4|add|add_track|/music/d.mp3|45000.000000\n"
            "5|rate|rate|/music/e.mp3|1\n"
        )
        handled = []
        queue = PendingQueue(
            queue_file,
            {OP_RATE: handled.append, OP_ADD_TRACK: handled.append},
        )

        result = queue.drain()

        assert result.applied == 4
        assert result.dead_lettered == 1
        assert result.kept == 0
        assert result.remaining == 0
        assert [op.timestamp for op in handled] == [1, 2, 4, 5]
        assert not queue_file.exists()

    def test_lock_timeout_keeps_line(self, queue_file):
        queue_file.write_text("1|rate|rate|/music/a.mp3|3\n2|rate|rate|/music/b.mp3|4\n")

        def handler(op):
            if op.args[0] == "/music/a.mp3":
                raise LockTimeout("db.lock", 0.1)

        queue = PendingQueue(queue_file, {OP_RATE: handler})
        result = queue.drain()

        assert result.kept == 1
        assert result.applied == 1
        assert queue_file.read_text() == "1|rate|rate|/music/a.mp3|3\n"

    def test_handler_error_dead_letters(self, queue_file):
        queue_file.write_text("1|rate|rate|/music/a.mp3|3\n")

        def handler(op):
            raise StoreError("database missing")

        result = PendingQueue(queue_file, {OP_RATE: handler}).drain()
        assert result.dead_lettered == 1
        assert not queue_file.exists()

    def test_unexpected_handler_error_dead_letters(self, queue_file):
        """A non-musiclib exception drops only its own line; the pass completes."""
        queue_file.write_text(
            "1|rate|rate|/a|3\n"
            "2|rate|rate|/boom|3\n"
            "3|rate|rate|/c|3\n"
        )
        handled = []

        def handler(op):
            if op.args[0] == "/boom":
                raise RuntimeError("unexpected")
            handled.append(op.args[0])

        result = PendingQueue(queue_file, {OP_RATE: handler}).drain()

        assert handled == ["/a", "/c"]
        assert result.applied == 2
        assert result.dead_lettered == 1
        assert result.remaining == 0
        assert not queue_file.exists()

    def test_all_kept_leaves_file_untouched(self, queue_file, monkeypatch):
        queue_file.write_text("1|rate|rate|/music/a.mp3|3\n")
        rewrites = []
        monkeypatch.setattr(
            "musiclib.domain.pending.queue.write_lines",
            lambda path, lines: rewrites.append(lines),
        )

        def handler(op):
            raise LockTimeout("db.lock", 0.1)

        result = PendingQueue(queue_file, {OP_RATE: handler}).drain()

        assert result.kept == 1
        assert result.remaining == 1
        assert rewrites == []
        assert queue_file.read_text() == "1|rate|rate|/music/a.mp3|3\n"

    def test_lines_appended_during_drain_survive(self, queue_file):
        queue_file.write_text("1|rate|rate|/music/a.mp3|3\n")
        queue = PendingQueue(queue_file)

        def handler(op):
            if op.timestamp == 1:
                queue.enqueue(OP_RATE, ["/music/late.mp3", "2"], origin="rate", timestamp=2)

        queue.register(OP_RATE, handler)
        result = queue.drain()

        assert result.applied == 1
        assert result.remaining == 1
        assert queue.read() == ["2|rate|rate|/music/late.mp3|2"]

    def test_duplicate_lines_removed_only_as_consumed(self, queue_file):
        line = "1|rate|rate|/music/a.mp3|3"
        queue_file.write_text(f"{line}\n")
        queue = PendingQueue(queue_file)

        def handler(op):
            # Same text appended again mid-drain
            queue.enqueue(OP_RATE, ["/music/a.mp3", "3"], origin="rate", timestamp=1)

        queue.register(OP_RATE, handler)
        queue.drain()
        assert queue.read() == [line]

    def test_busy_when_another_drain_runs(self, queue_file):
        queue_file.write_text("1|rate|rate|/music/a.mp3|3\n")
        handled = []
        queue = PendingQueue(queue_file, {OP_RATE: handled.append})

        with exclusive_lock(queue.drain_lock_path, 1):
            result = queue.drain()

        assert result.busy is True
        assert handled == []
        assert queue_file.read_text() == "1|rate|rate|/music/a.mp3|3\n"

    def test_empty_queue(self, queue_file):
        result = PendingQueue(queue_file).drain()
        assert result.applied == 0
        assert not result.busy


class TestReplayHandlers:
    """Drains through the real rate/add_track handlers against a store."""

    @pytest.fixture
    def queue(self, tmp_path, store_file, fake_reader, fake_tags):
        writer = StoreWriter(store_file)
        handlers = build_handlers(writer, fake_reader, fake_tags, timeout=0.5)
        return PendingQueue(tmp_path / ".pending_operations", handlers)

    def test_rate_replay(self, queue, store_file, tracks):
        queue.enqueue(OP_RATE, [tracks[0], "5"], origin="rate")
        result = queue.drain()

        assert result.applied == 1
        table = StoreWriter(store_file).read()
        row = find_exact(table, tracks[0])
        assert table.value(row, COL_RATING) == "255"
        assert table.value(row, COL_GROUPDESC) == "5"

    def test_rate_for_removed_track_counts_as_done(self, queue):
        queue.enqueue(OP_RATE, ["/music/removed.mp3", "2"], origin="rate")
        result = queue.drain()
        assert result.applied == 1
        assert not queue.path.exists()

    def test_rate_kept_while_store_locked(self, queue, store_file, tracks):
        queue.enqueue(OP_RATE, [tracks[0], "5"], origin="rate")
        with exclusive_lock(StoreWriter(store_file).lock_path, 2):
            result = queue.drain()
        assert result.kept == 1
        assert len(queue.read()) == 1

    def test_add_track_replay(self, queue, store_file, tmp_path, fake_tags):
        audio = tmp_path / "incoming" / "fresh.mp3"
        audio.parent.mkdir()
        audio.write_bytes(b"\x00")
        queue.enqueue(OP_ADD_TRACK, [str(audio), "45000.000000"], origin="add")

        result = queue.drain()

        assert result.applied == 1
        assert len(find_rows(StoreWriter(store_file).read(), str(audio))) == 1
        assert fake_tags.fields[(str(audio), "LastPlayed")] == "45000.000000"

    def test_add_track_for_vanished_file_is_dropped(self, queue, tmp_path):
        queue.enqueue(OP_ADD_TRACK, [str(tmp_path / "gone.mp3"), ""], origin="add")
        result = queue.drain()
        assert result.dead_lettered == 1
