"""
Mutagen-backed tag collaborators.

Handles reading metadata from and writing musiclib fields to audio files
using Mutagen: ID3 (MP3), MP4 freeform atoms and Vorbis comments.
"""

from pathlib import Path
from typing import Any, Optional

from loguru import logger
from mutagen import File as MutagenFile
from mutagen import MutagenError
from mutagen.id3 import ID3, ID3NoHeaderError, POPM, TIT1, TXXX
from mutagen.id3 import delete as delete_id3
from mutagen.mp3 import MP3
from mutagen.mp4 import MP4, MP4FreeForm

from .base import KEY_GROUPDESC, KEY_LAST_PLAYED, KEY_RATING, TrackMetadata

LAST_PLAYED_DESC = "Songs-DB_Custom1"
POPM_EMAIL = "no@email"

MP4_KEYS = {
    KEY_LAST_PLAYED: f"----:com.apple.iTunes:{LAST_PLAYED_DESC}",
    KEY_RATING: "----:com.apple.iTunes:RATING",
    KEY_GROUPDESC: "\xa9grp",
}

VORBIS_KEYS = {
    KEY_LAST_PLAYED: LAST_PLAYED_DESC.upper(),
    KEY_RATING: "RATING",
    KEY_GROUPDESC: "GROUPING",
}


def get_tag_value(audio_file: Any, tag_names: list[str]) -> Optional[str]:
    """Get tag value, trying multiple possible tag names."""
    for tag_name in tag_names:
        try:
            value = audio_file.get(tag_name)
            if value:
                # Handle different formats
                if isinstance(value, list) and value:
                    return str(value[0])
                return str(value)
        except (KeyError, ValueError):
            # Some formats (like Vorbis) raise ValueError for non-existent keys
            continue
    return None


def _set_id3_field(tags: ID3, key: str, value: str) -> None:
    if key == KEY_LAST_PLAYED:
        tags.delall(f"TXXX:{LAST_PLAYED_DESC}")
        tags.add(TXXX(encoding=3, desc=LAST_PLAYED_DESC, text=[value]))
    elif key == KEY_RATING:
        tags.delall("POPM")
        tags.add(POPM(email=POPM_EMAIL, rating=int(value), count=0))
    elif key == KEY_GROUPDESC:
        tags.delall("TIT1")
        tags.add(TIT1(encoding=3, text=[value]))
    else:
        raise KeyError(key)


class MutagenTagWriter:
    """TagWriter that edits tags in place with Mutagen."""

    def set_field(self, path: str, key: str, value: str) -> bool:
        try:
            audio = MutagenFile(path)
            if audio is None:
                logger.warning(f"Unsupported audio format: {path}")
                return False

            if audio.tags is None:
                audio.add_tags()

            if isinstance(audio.tags, ID3):
                _set_id3_field(audio.tags, key, value)
            elif isinstance(audio, MP4):
                if key == KEY_GROUPDESC:
                    audio.tags[MP4_KEYS[key]] = [value]
                else:
                    audio.tags[MP4_KEYS[key]] = [MP4FreeForm(value.encode("utf-8"))]
            else:
                audio.tags[VORBIS_KEYS[key]] = [value]

            audio.save()
            return True

        except (MutagenError, OSError, KeyError, ValueError) as e:
            logger.warning(f"Tag write failed for {key} on {path}: {e}")
            return False

    def rebuild_and_retry(self, path: str) -> bool:
        """Rewrite the tag block from its own frames.

        MP3 files get their ID3 tag stripped and rewritten as ID3v2.3 with the
        same frames; other formats are re-saved in place.
        """
        if not Path(path).is_file():
            logger.error(f"Cannot rebuild tags - file not found: {path}")
            return False

        try:
            audio = MutagenFile(path)
            if audio is None:
                return False

            if not isinstance(audio, MP3):
                audio.save()
                return True

            try:
                frames = list(ID3(path).values())
            except ID3NoHeaderError:
                frames = []

            delete_id3(path)
            fresh = ID3()
            for frame in frames:
                fresh.add(frame)
            fresh.save(path, v2_version=3)
            logger.info(f"Rebuilt ID3 tag ({len(frames)} frames): {path}")
            return True

        except (MutagenError, OSError, ValueError) as e:
            logger.error(f"Tag rebuild failed for {path}: {e}")
            return False


def _stored_rating(audio_file: Any) -> str:
    """POPM byte from ID3, or the RATING field of MP4/Vorbis tags."""
    tags = getattr(audio_file, "tags", None)
    if isinstance(tags, ID3):
        frames = tags.getall("POPM")
        return str(frames[0].rating) if frames else ""

    for key in (MP4_KEYS[KEY_RATING], VORBIS_KEYS[KEY_RATING], "rating"):
        try:
            value = audio_file.get(key)
        except (KeyError, ValueError):
            continue
        if value:
            first = value[0] if isinstance(value, list) else value
            if isinstance(first, bytes):
                first = first.decode("utf-8", "replace")
            text = str(first).strip()
            return text if text.isdigit() else ""
    return ""


class MutagenMetadataReader:
    """MetadataReader backed by Mutagen, falling back to the file name."""

    def extract(self, path: str) -> TrackMetadata:
        stem = Path(path).stem
        try:
            audio_file = MutagenFile(path)
        except (MutagenError, OSError) as e:
            logger.warning(f"Could not read metadata from {path}: {e}")
            audio_file = None

        if audio_file is None:
            return TrackMetadata(title=stem)

        # ID3 (MP3), MP4, and Vorbis/Opus tags (lowercase)
        title = get_tag_value(audio_file, ["TIT2", "\xa9nam", "TITLE", "title"])
        artist = get_tag_value(audio_file, ["TPE1", "\xa9ART", "ARTIST", "artist"])
        album = get_tag_value(audio_file, ["TALB", "\xa9alb", "ALBUM", "album"])
        album_artist = get_tag_value(
            audio_file, ["TPE2", "aART", "ALBUMARTIST", "albumartist"]
        )
        genre = get_tag_value(audio_file, ["TCON", "\xa9gen", "GENRE", "genre"])
        grouping = get_tag_value(audio_file, ["TIT1", "\xa9grp", "GROUPING", "grouping"])

        duration_ms = 0
        if getattr(audio_file, "info", None) is not None:
            length = getattr(audio_file.info, "length", None)
            if length:
                duration_ms = int(length * 1000)

        return TrackMetadata(
            artist=artist or "",
            album=album or "",
            album_artist=album_artist or "",
            title=title or stem,  # Fallback to filename if no title
            genre=genre or "",
            duration_ms=duration_ms,
            rating=_stored_rating(audio_file),
            groupdesc=(grouping or "").strip(),
        )
