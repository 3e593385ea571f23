"""
Full store rebuild from a library scan.

The new table is assembled in memory from file tags, so the existing store
stays readable for the whole scan. Only the final swap takes the store lock
(see ``StoreWriter.replace``). IDs restart at 1 and album ids are
regenerated; last-played times reset to never played.
"""

from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

from loguru import logger

from ...core.errors import MusiclibError
from ..stats import BatchStats
from ..tags.base import MetadataReader
from .importer import build_track_fields
from .models import COL_ALBUM_ID, DEFAULT_HEADER, Table
from .table import append

NEVER_PLAYED = "0.000000"
PROGRESS_EVERY = 100


def build_table(
    store_path: Union[str, Path],
    files: Iterable[str],
    reader: MetadataReader,
    default_rating: str = "0",
    default_groupdesc: str = "0",
    header: Optional[List[str]] = None,
) -> Tuple[Table, BatchStats]:
    """Assemble a fresh table with one row per readable audio file.

    Ratings and grouping stored in the tags are kept. A file whose metadata
    cannot be read or whose row cannot be added is counted as an error and
    left out.
    """
    table = Table(path=Path(store_path), header=list(header or DEFAULT_HEADER))
    files = list(files)
    stats = BatchStats(total=len(files))

    for index, path in enumerate(files, start=1):
        try:
            fields = build_track_fields(
                path,
                reader,
                NEVER_PLAYED,
                default_rating,
                default_groupdesc,
                keep_tag_rating=True,
            )
            new_id = append(table, fields)
        except (MusiclibError, OSError) as e:
            logger.warning(f"Failed to process {path}: {e}")
            stats.errors += 1
            continue

        if new_id is None:
            stats.skipped += 1
        else:
            stats.updated += 1

        if index % PROGRESS_EVERY == 0:
            logger.info(f"Processed {index} of {stats.total} ({index * 100 // stats.total}%)")

    return table, stats


def album_count(table: Table) -> int:
    col = table.column_index(COL_ALBUM_ID)
    return len({row.get(col) for row in table.rows if row.get(col)})
