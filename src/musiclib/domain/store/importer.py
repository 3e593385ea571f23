"""Build store rows for newly imported audio files."""

from pathlib import Path
from typing import Dict, Iterable, List, Union

from ..tags.base import MetadataReader
from .models import (
    COL_ALBUM,
    COL_ALBUM_ARTIST,
    COL_ARTIST,
    COL_CUSTOM2,
    COL_GENRE,
    COL_GROUPDESC,
    COL_LAST_PLAYED,
    COL_LENGTH,
    COL_PATH,
    COL_RATING,
    COL_TITLE,
    DELIMITER,
)


def format_song_length(duration_ms: int) -> str:
    """Format a duration as whole seconds followed by ``000``.

    Sub-second precision is dropped, matching how existing rows were written.
    """
    if duration_ms <= 0:
        return "0"
    return f"{duration_ms // 1000}000"


def _clean(value: str) -> str:
    # Delimiters and line breaks would split the row
    return value.replace(DELIMITER, " ").replace("\n", " ").replace("\r", " ").strip()


def build_track_fields(
    path: str,
    reader: MetadataReader,
    last_played_sql: str = "",
    default_rating: str = "0",
    default_groupdesc: str = "0",
    keep_tag_rating: bool = False,
) -> Dict[str, str]:
    """Extract metadata for ``path`` and map it onto store columns.

    ID and IDAlbum are assigned by ``append()`` inside the store lock. With
    ``keep_tag_rating`` the rating and grouping already stored in the
    file's tags replace the defaults.
    """
    meta = reader.extract(path)
    rating, groupdesc = default_rating, default_groupdesc
    if keep_tag_rating:
        rating = meta.rating or default_rating
        groupdesc = _clean(meta.groupdesc) or default_groupdesc
    return {
        COL_ARTIST: _clean(meta.artist),
        COL_ALBUM: _clean(meta.album),
        COL_ALBUM_ARTIST: _clean(meta.album_artist or meta.artist),
        COL_TITLE: _clean(meta.title) or Path(path).stem,
        COL_PATH: path,
        COL_GENRE: _clean(meta.genre),
        COL_LENGTH: format_song_length(meta.duration_ms),
        COL_RATING: rating,
        COL_CUSTOM2: "",
        COL_GROUPDESC: groupdesc,
        COL_LAST_PLAYED: last_played_sql,
    }


def is_supported_format(local_path: Path, supported_formats: List[str]) -> bool:
    """Check if file format is supported."""
    return local_path.suffix.lower() in supported_formats


def collect_audio_files(
    paths: Iterable[Union[str, Path]], supported_formats: List[str]
) -> List[str]:
    """Expand files and directories into absolute audio file paths.

    Directories are searched recursively. Explicit file arguments are kept
    even when missing so the caller can report them.
    """
    files: List[str] = []
    for item in paths:
        item = Path(item).expanduser()
        if item.is_dir():
            found = [
                p for p in item.rglob("*")
                if p.is_file() and is_supported_format(p, supported_formats)
            ]
            files.extend(str(p.resolve()) for p in sorted(found))
        else:
            files.append(str(item.resolve()) if item.exists() else str(item.absolute()))
    return files
