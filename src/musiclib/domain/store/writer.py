"""
Lock-coordinated store mutations.

Each public method is one transaction: take the store lock, load the table,
locate and mutate the row in memory, commit, release. Row indexes never
outlive the critical section they were found in.
"""

from pathlib import Path
from typing import Callable, Mapping, Optional, TypeVar, Union

from loguru import logger

from ...core.errors import ValidationError
from ...core.locking import lock_path_for, with_lock
from .models import COL_GROUPDESC, COL_LAST_PLAYED, COL_RATING, Row, Table
from .table import (
    append,
    backup_store,
    commit,
    delete_exact,
    find_exact,
    load_table,
    set_column,
)
from .timefmt import epoch_to_sql_time

T = TypeVar("T")

# Star rating to POPM mapping (midpoints of the player's rating groups)
STAR_TO_POPM = {
    0: 0,
    1: 64,
    2: 118,
    3: 153,
    4: 196,
    5: 255,
}


def parse_stars(value: Union[str, int]) -> int:
    """Validate a 0-5 star rating.

    Raises:
        ValidationError: Not an integer between 0 and 5
    """
    try:
        stars = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Rating must be a number 0-5, got {value!r}") from None
    if stars not in STAR_TO_POPM:
        raise ValidationError(f"Rating must be between 0 and 5, got {stars}")
    return stars


class StoreWriter:
    """Runs record store mutations inside the store's lock."""

    def __init__(self, store_path: Union[str, Path]):
        self.store_path = Path(store_path)
        self.lock_path = lock_path_for(self.store_path)

    def transaction(self, timeout: float, mutate: Callable[[Table], T]) -> T:
        """Load, mutate and commit the table under one lock acquisition.

        The commit is skipped when ``mutate`` changed nothing.

        Raises:
            LockTimeout: Lock not acquired within ``timeout``
        """

        def run() -> T:
            table = load_table(self.store_path)
            result = mutate(table)
            if table.dirty:
                commit(table)
            return result

        return with_lock(self.lock_path, timeout, run)

    def replace(self, table: Table, timeout: float, backup_keep: int = 0) -> Optional[Path]:
        """Swap in a whole new table under the store lock.

        With ``backup_keep`` the current store (if any) is backed up first,
        inside the same lock acquisition.

        Returns:
            Path of the backup, or None when none was made
        """

        def run() -> Optional[Path]:
            backup = None
            if backup_keep and self.store_path.exists():
                backup = backup_store(self.store_path, keep=backup_keep)
            commit(table, self.store_path)
            return backup

        backup = with_lock(self.lock_path, timeout, run)
        logger.info(f"Replaced {self.store_path} ({len(table.rows)} records)")
        return backup

    def read(self) -> Table:
        """Load the table without locking; commits are atomic renames."""
        return load_table(self.store_path)

    def rate(self, path: str, stars: int, timeout: float) -> None:
        """Set Rating (POPM) and GroupDesc for one track."""
        stars = parse_stars(stars)

        def mutate(table: Table) -> None:
            row = find_exact(table, path)
            set_column(table, row, COL_GROUPDESC, str(stars))
            set_column(table, row, COL_RATING, str(STAR_TO_POPM[stars]))

        self.transaction(timeout, mutate)
        logger.info(f"Rated {path} -> {stars} stars")

    def add_track(self, fields: Mapping[str, str], timeout: float) -> Optional[int]:
        """Append a track row; returns the new ID or None if already present."""
        return self.transaction(timeout, lambda table: append(table, fields))

    def remove(self, path: str, timeout: float, record_id: Optional[str] = None) -> Row:
        """Delete the row for ``path``; returns the removed row."""
        removed = self.transaction(
            timeout, lambda table: delete_exact(table, path, record_id)
        )
        logger.info(f"Removed record for {path}")
        return removed

    def set_last_played(self, path: str, epoch: int, timeout: float) -> str:
        """Set LastTimePlayed for one track; returns the stored serial value."""
        sql_time = epoch_to_sql_time(epoch)

        def mutate(table: Table) -> None:
            set_column(table, find_exact(table, path), COL_LAST_PLAYED, sql_time)

        self.transaction(timeout, mutate)
        return sql_time
