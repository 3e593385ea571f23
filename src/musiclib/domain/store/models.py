"""
Record store data model.

The store is one header row plus data rows, fields separated by a reserved
delimiter. Fields are kept as raw strings so untouched rows serialize back
byte-for-byte.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List

from ...core.errors import SchemaError, ValidationError

DELIMITER = "^"

COL_ID = "ID"
COL_ARTIST = "Artist"
COL_ALBUM_ID = "IDAlbum"
COL_ALBUM = "Album"
COL_ALBUM_ARTIST = "AlbumArtist"
COL_TITLE = "SongTitle"
COL_PATH = "SongPath"
COL_GENRE = "Genre"
COL_LENGTH = "SongLength"
COL_RATING = "Rating"
COL_CUSTOM2 = "Custom2"
COL_GROUPDESC = "GroupDesc"
COL_LAST_PLAYED = "LastTimePlayed"

# Trailing empty names mirror the two trailing delimiters every row carries
DEFAULT_HEADER: List[str] = [
    COL_ID,
    COL_ARTIST,
    COL_ALBUM_ID,
    COL_ALBUM,
    COL_ALBUM_ARTIST,
    COL_TITLE,
    COL_PATH,
    COL_GENRE,
    COL_LENGTH,
    COL_RATING,
    COL_CUSTOM2,
    COL_GROUPDESC,
    COL_LAST_PLAYED,
    "",
    "",
]


def check_field_value(value: str) -> str:
    """Reject values that would corrupt the row layout.

    Raises:
        ValidationError: Value contains the delimiter or a line break
    """
    if DELIMITER in value or "\n" in value or "\r" in value:
        raise ValidationError(
            f"Field value may not contain {DELIMITER!r} or line breaks: {value!r}"
        )
    return value


@dataclass
class Row:
    """One data row. ``fields`` holds raw values in header order."""

    fields: List[str]

    def get(self, index: int) -> str:
        if index < len(self.fields):
            return self.fields[index]
        return ""

    def set(self, index: int, value: str) -> None:
        if index >= len(self.fields):
            self.fields.extend([""] * (index + 1 - len(self.fields)))
        self.fields[index] = value

    def to_line(self) -> str:
        return DELIMITER.join(self.fields)


@dataclass
class Table:
    """In-memory image of the store file, parsed once per critical section.

    Attributes:
        path: File the table was loaded from
        header: Ordered column names
        rows: Data rows in file order
        trailing_newline: Whether the file ended with a newline
        dirty: Set by any mutation; commit is skipped when False
    """

    path: Path
    header: List[str]
    rows: List[Row] = field(default_factory=list)
    trailing_newline: bool = True
    dirty: bool = False
    columns: Dict[str, int] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        # Name-to-index lookup computed once; first occurrence wins
        self.columns = {}
        for index, name in enumerate(self.header):
            if name and name not in self.columns:
                self.columns[name] = index

    def column_index(self, name: str) -> int:
        """Get a column's index.

        Raises:
            SchemaError: Column is not in the header
        """
        try:
            return self.columns[name]
        except KeyError:
            raise SchemaError(
                f"Database schema error - {name} column not found in {self.path}"
            ) from None

    def value(self, row_index: int, column: str) -> str:
        return self.rows[row_index].get(self.column_index(column))

    def serialize(self) -> str:
        lines = [DELIMITER.join(self.header)] + [row.to_line() for row in self.rows]
        text = "\n".join(lines)
        if self.trailing_newline:
            text += "\n"
        return text
