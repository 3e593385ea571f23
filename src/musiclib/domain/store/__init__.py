"""Record store domain - the delimiter-separated track database.

This domain handles:
- Table model and exact-path lookup
- Column update, append and delete with atomic commit
- Lock-coordinated mutations (StoreWriter)
- LastTimePlayed serial-day conversions
- Full rebuild from a library scan
"""

from .builder import album_count, build_table
from .importer import (
    build_track_fields,
    collect_audio_files,
    format_song_length,
    is_supported_format,
)
from .models import (
    COL_ALBUM,
    COL_ALBUM_ARTIST,
    COL_ALBUM_ID,
    COL_ARTIST,
    COL_CUSTOM2,
    COL_GENRE,
    COL_GROUPDESC,
    COL_ID,
    COL_LAST_PLAYED,
    COL_LENGTH,
    COL_PATH,
    COL_RATING,
    COL_TITLE,
    DEFAULT_HEADER,
    DELIMITER,
    Row,
    Table,
)
from .table import (
    append,
    backup_store,
    commit,
    create_store,
    delete_exact,
    find_exact,
    find_rows,
    load_table,
    set_column,
)
from .timefmt import epoch_to_sql_time, human_time, sql_time_to_epoch
from .writer import STAR_TO_POPM, StoreWriter, parse_stars

__all__ = [
    # Rebuild
    "album_count",
    "build_table",
    # Import
    "build_track_fields",
    "collect_audio_files",
    "format_song_length",
    "is_supported_format",
    # Model
    "COL_ALBUM",
    "COL_ALBUM_ARTIST",
    "COL_ALBUM_ID",
    "COL_ARTIST",
    "COL_CUSTOM2",
    "COL_GENRE",
    "COL_GROUPDESC",
    "COL_ID",
    "COL_LAST_PLAYED",
    "COL_LENGTH",
    "COL_PATH",
    "COL_RATING",
    "COL_TITLE",
    "DEFAULT_HEADER",
    "DELIMITER",
    "Row",
    "Table",
    # Table operations
    "append",
    "backup_store",
    "commit",
    "create_store",
    "delete_exact",
    "find_exact",
    "find_rows",
    "load_table",
    "set_column",
    # Time
    "epoch_to_sql_time",
    "human_time",
    "sql_time_to_epoch",
    # Writer
    "STAR_TO_POPM",
    "StoreWriter",
    "parse_stars",
]
