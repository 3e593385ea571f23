"""
Tag collaborator interfaces.

The store never touches audio files itself. After a successful store mutation
callers mirror the new value into the file's tags through a TagWriter and
tolerate its failure without rolling back the store change.
"""

from typing import NamedTuple, Protocol

from loguru import logger

# Logical tag keys understood by every TagWriter
KEY_LAST_PLAYED = "LastPlayed"
KEY_RATING = "Rating"
KEY_GROUPDESC = "GroupDesc"


class TrackMetadata(NamedTuple):
    """Metadata read from an audio file during import."""

    artist: str = ""
    album: str = ""
    album_artist: str = ""
    title: str = ""
    genre: str = ""
    duration_ms: int = 0
    rating: str = ""  # POPM byte as text, blank when untagged
    groupdesc: str = ""


class TagWriter(Protocol):
    def set_field(self, path: str, key: str, value: str) -> bool:
        """Write one logical tag field. Returns False on failure."""
        ...

    def rebuild_and_retry(self, path: str) -> bool:
        """Rebuild a damaged tag block so a failed write can be retried."""
        ...


class MetadataReader(Protocol):
    def extract(self, path: str) -> TrackMetadata:
        """Read descriptive tags, duration and any stored rating from an audio file."""
        ...


def write_tag_with_repair(writer: TagWriter, path: str, key: str, value: str) -> bool:
    """Write a tag field, rebuilding the tag block and retrying once on failure.

    Returns:
        True if the field was written (directly or after rebuild)
    """
    if writer.set_field(path, key, value):
        return True

    logger.info(f"Tag write failed for {key}, attempting repair: {path}")
    if not writer.rebuild_and_retry(path):
        logger.error(f"Tag rebuild failed for {path}")
        return False

    logger.info("Tag rebuild successful, retrying write...")
    if not writer.set_field(path, key, value):
        logger.error(f"Tag write still failed after rebuild for {path}")
        return False

    logger.info("Tag write successful after rebuild")
    return True


def write_rating_tags(writer: TagWriter, path: str, popm: int, groupdesc: int) -> bool:
    """Mirror a rating into POPM (with repair) and the grouping field.

    A failed grouping write is only a warning.

    Returns:
        False if the POPM write failed after repair
    """
    if not write_tag_with_repair(writer, path, KEY_RATING, str(popm)):
        return False
    if not writer.set_field(path, KEY_GROUPDESC, str(groupdesc)):
        logger.warning(f"Failed to set Work tag for {path}")
    return True
