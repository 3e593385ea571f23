"""Tags domain - delegated audio tag I/O.

This domain handles:
- TagWriter / MetadataReader collaborator interfaces
- Write-with-repair policy for tag fields
- Mutagen-backed default implementations
"""

from .base import (
    KEY_GROUPDESC,
    KEY_LAST_PLAYED,
    KEY_RATING,
    MetadataReader,
    TagWriter,
    TrackMetadata,
    write_rating_tags,
    write_tag_with_repair,
)
from .mutagen_backend import MutagenMetadataReader, MutagenTagWriter

__all__ = [
    "KEY_GROUPDESC",
    "KEY_LAST_PLAYED",
    "KEY_RATING",
    "MetadataReader",
    "TagWriter",
    "TrackMetadata",
    "write_rating_tags",
    "write_tag_with_repair",
    "MutagenMetadataReader",
    "MutagenTagWriter",
]
