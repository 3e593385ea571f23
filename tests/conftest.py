"""Shared fixtures: a small store file, test config and fake tag collaborators."""

from pathlib import Path

import pytest

from musiclib.context import AppContext
from musiclib.core.config import Config, LockConfig
from musiclib.domain.store import DEFAULT_HEADER, DELIMITER
from musiclib.domain.tags import TrackMetadata

TRACK_A = "/music/Artist A/Album X/01 - Song A.mp3"
TRACK_B = "/music/Artist B/Album Y/01 - Song B.mp3"
TRACK_C = "/music/Artist B/Album Y/02 - Song C.mp3"


def make_row(
    record_id: str,
    artist: str,
    album_id: str,
    album: str,
    title: str,
    path: str,
    rating: str = "0",
    groupdesc: str = "0",
    last_played: str = "",
) -> str:
    """Build one store line in default header order."""
    return DELIMITER.join(
        [
            record_id,
            artist,
            album_id,
            album,
            artist,
            title,
            path,
            "Rock",
            "215000",
            rating,
            "",
            groupdesc,
            last_played,
            "",
            "",
        ]
    )


def write_store(path: Path, rows: list) -> Path:
    lines = [DELIMITER.join(DEFAULT_HEADER)] + rows
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


class FakeTagWriter:
    """Records tag writes in memory.

    Paths in ``fail_paths`` always fail; paths in ``repairable`` fail until
    ``rebuild_and_retry`` has been called for them.
    """

    def __init__(self):
        self.fields = {}
        self.calls = []
        self.rebuilt = []
        self.fail_paths = set()
        self.repairable = set()

    def set_field(self, path: str, key: str, value: str) -> bool:
        self.calls.append((path, key, value))
        if path in self.fail_paths:
            return False
        if path in self.repairable and path not in self.rebuilt:
            return False
        self.fields[(path, key)] = value
        return True

    def rebuild_and_retry(self, path: str) -> bool:
        self.rebuilt.append(path)
        return path in self.repairable


class FakeMetadataReader:
    """Returns fixed metadata with the file stem as title.

    ``ratings`` maps a path to the (POPM, GroupDesc) pair its tags carry.
    """

    def __init__(self, artist: str = "New Artist", album: str = "New Album"):
        self.artist = artist
        self.album = album
        self.ratings = {}
        self.extracted = []

    def extract(self, path: str) -> TrackMetadata:
        self.extracted.append(path)
        return TrackMetadata(
            artist=self.artist,
            album=self.album,
            album_artist=self.artist,
            title=Path(path).stem,
            genre="Electronic",
            duration_ms=183_456,
            rating=self.ratings.get(path, ("", ""))[0],
            groupdesc=self.ratings.get(path, ("", ""))[1],
        )


@pytest.fixture
def store_file(tmp_path) -> Path:
    """Store with three tracks: A on album 1, B and C on album 2."""
    return write_store(
        tmp_path / "musiclib.dsv",
        [
            make_row("1", "Artist A", "1", "Album X", "Song A", TRACK_A),
            make_row("2", "Artist B", "2", "Album Y", "Song B", TRACK_B),
            make_row("3", "Artist B", "2", "Album Y", "Song C", TRACK_C),
        ],
    )


@pytest.fixture
def fake_tags() -> FakeTagWriter:
    return FakeTagWriter()


@pytest.fixture
def fake_reader() -> FakeMetadataReader:
    return FakeMetadataReader()


@pytest.fixture
def config(tmp_path, store_file) -> Config:
    """Config pointing at tmp_path with short lock waits and no back-off."""
    config = Config()
    config.library.database_path = str(store_file)
    config.pending.pending_file = str(tmp_path / ".pending_operations")
    config.mobile.mobile_dir = str(tmp_path / "mobile")
    config.mobile.log_file = str(tmp_path / "logs" / "mobile_operations.log")
    config.logging.log_file = str(tmp_path / "musiclib.log")
    config.notifications.enabled = False
    config.locks = LockConfig(
        rate_timeout=0.2,
        rate_attempts=2,
        retry_delay=0.0,
        remove_timeout=0.2,
        remove_attempts=2,
        import_timeout=0.2,
        scrobble_timeout=0.2,
        pending_timeout=0.5,
        mobile_timeout=0.2,
    )
    return config


@pytest.fixture
def ctx(config, fake_tags, fake_reader) -> AppContext:
    return AppContext.create(config, tag_writer=fake_tags, reader=fake_reader)


@pytest.fixture
def tracks():
    """Paths of the three tracks in ``store_file``."""
    return TRACK_A, TRACK_B, TRACK_C


@pytest.fixture
def row_factory():
    return make_row


@pytest.fixture
def store_factory(tmp_path):
    """Write a store with the given data lines; returns its path."""

    def factory(rows: list, name: str = "custom.dsv") -> Path:
        return write_store(tmp_path / name, rows)

    return factory
