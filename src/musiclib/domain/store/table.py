"""
Record store operations.

Every function here assumes the caller holds the store lock (see
``musiclib.core.locking``). The table is loaded once per critical section and
mutated in memory; ``commit()`` replaces the file atomically.
"""

import shutil
from datetime import datetime
from pathlib import Path
from typing import List, Mapping, Optional, Union

from loguru import logger

from ...core.errors import (
    AmbiguousMatch,
    RecordNotFound,
    SchemaError,
    StoreError,
    ValidationError,
)
from ...core.fileio import atomic_write_text
from .models import (
    COL_ALBUM,
    COL_ALBUM_ID,
    COL_ID,
    COL_PATH,
    DEFAULT_HEADER,
    DELIMITER,
    Row,
    Table,
    check_field_value,
)


def load_table(path: Union[str, Path]) -> Table:
    """Parse the store file into memory.

    Raises:
        StoreError: File missing or unreadable
        SchemaError: Missing or invalid header
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise StoreError(f"Database not found: {path}") from None
    except (OSError, UnicodeDecodeError) as e:
        raise StoreError(f"Cannot read database {path}: {e}") from e

    trailing_newline = text.endswith("\n")
    lines = text.split("\n")
    if trailing_newline:
        lines.pop()

    if not lines or not lines[0].startswith(f"{COL_ID}{DELIMITER}"):
        raise SchemaError(f"Invalid database format (missing header): {path}")

    header = lines[0].split(DELIMITER)
    rows = [Row(line.split(DELIMITER)) for line in lines[1:] if line.strip()]
    if len(rows) != len(lines) - 1:
        logger.debug(f"Skipped {len(lines) - 1 - len(rows)} blank lines in {path}")

    return Table(path=path, header=header, rows=rows, trailing_newline=trailing_newline)


def find_rows(table: Table, path: str) -> List[int]:
    """Get indexes of all rows whose path field equals ``path`` exactly."""
    col = table.column_index(COL_PATH)
    return [i for i, row in enumerate(table.rows) if row.get(col) == path]


def find_exact(table: Table, path: str) -> int:
    """Find the single row for a path.

    Matching is against the whole field value, never a substring of a
    longer path.

    Raises:
        RecordNotFound: No row matches
        AmbiguousMatch: More than one row matches
    """
    matches = find_rows(table, path)
    if not matches:
        raise RecordNotFound(path)
    if len(matches) > 1:
        raise AmbiguousMatch(path, len(matches))
    return matches[0]


def set_column(table: Table, row_index: int, column: str, value: str) -> None:
    """Set one cell. No other cell of the table changes."""
    col = table.column_index(column)
    table.rows[row_index].set(col, check_field_value(value))
    table.dirty = True


def _max_int(table: Table, col: int) -> int:
    values = [row.get(col).strip() for row in table.rows]
    return max((int(v) for v in values if v.isdigit()), default=0)


def _album_id(table: Table, album: str) -> str:
    """Existing IDAlbum for an album name, else max + 1. Blank album gets no id."""
    if not album:
        return ""
    album_col = table.column_index(COL_ALBUM)
    album_id_col = table.column_index(COL_ALBUM_ID)
    for row in table.rows:
        if row.get(album_col) == album and row.get(album_id_col):
            return row.get(album_id_col)
    return str(_max_int(table, album_id_col) + 1)


def append(table: Table, fields: Mapping[str, str]) -> Optional[int]:
    """Append a track row, assigning ID and IDAlbum.

    Args:
        table: Loaded table
        fields: Column name -> value; must include the path column.
            ID and IDAlbum are always assigned here.

    Returns:
        New record ID, or None when the path is already present (no-op)
    """
    path = fields.get(COL_PATH, "")
    if not path:
        raise ValidationError("Cannot add a track without a path")

    # Guard against duplicate entries
    if find_rows(table, path):
        logger.info(f"Skipping (already in database): {path}")
        return None

    unknown = [name for name in fields if name and name not in table.columns]
    if unknown:
        raise SchemaError(f"Unknown columns for {table.path}: {', '.join(unknown)}")

    id_col = table.column_index(COL_ID)
    new_id = _max_int(table, id_col) + 1

    row = Row([""] * len(table.header))
    for name, value in fields.items():
        if name in (COL_ID, COL_ALBUM_ID):
            continue
        row.set(table.column_index(name), check_field_value(str(value)))
    row.set(id_col, str(new_id))
    row.set(table.column_index(COL_ALBUM_ID), _album_id(table, fields.get(COL_ALBUM, "")))

    table.rows.append(row)
    table.dirty = True
    return new_id


def delete_exact(table: Table, path: str, record_id: Optional[str] = None) -> Row:
    """Remove the single row matching ``path`` (and ``record_id`` if given).

    The table is left untouched when the match is missing or ambiguous.

    Returns:
        The removed row

    Raises:
        RecordNotFound: No row matches
        AmbiguousMatch: More than one row matches
    """
    matches = find_rows(table, path)
    if record_id is not None:
        id_col = table.column_index(COL_ID)
        matches = [i for i in matches if table.rows[i].get(id_col) == str(record_id)]

    if not matches:
        raise RecordNotFound(path)
    if len(matches) > 1:
        raise AmbiguousMatch(path, len(matches))

    removed = table.rows.pop(matches[0])
    table.dirty = True
    return removed


def commit(table: Table, path: Optional[Union[str, Path]] = None) -> None:
    """Serialize the whole table and atomically replace the store file."""
    target = Path(path) if path else table.path
    try:
        atomic_write_text(target, table.serialize())
    except OSError as e:
        raise StoreError(f"Failed to write database {target}: {e}") from e
    table.dirty = False


def create_store(path: Union[str, Path], header: Optional[List[str]] = None) -> bool:
    """Create an empty store containing only the header row.

    Returns:
        True if created, False if the file already exists
    """
    path = Path(path)
    if path.exists():
        return False
    table = Table(path=path, header=list(header or DEFAULT_HEADER))
    commit(table)
    logger.info(f"Created database: {path}")
    return True


def backup_store(path: Union[str, Path], keep: int = 5) -> Path:
    """Copy the store to a timestamped backup beside it, keeping the newest ``keep``.

    Returns:
        Path of the new backup
    """
    path = Path(path)
    if not path.exists():
        raise StoreError(f"Database not found: {path}")

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    backup = path.with_name(f"{path.name}.backup.{timestamp}")
    try:
        shutil.copy2(path, backup)
    except OSError as e:
        raise StoreError(f"Backup failed for {path}: {e}") from e
    logger.info(f"Backup created: {backup}")

    backups = sorted(
        path.parent.glob(f"{path.name}.backup.*"),
        key=lambda p: p.name,
        reverse=True,
    )
    for old in backups[keep:]:
        old.unlink(missing_ok=True)
        logger.debug(f"Removed old backup: {old}")

    return backup
