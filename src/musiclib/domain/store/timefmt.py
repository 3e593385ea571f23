"""Timestamp conversions for the LastTimePlayed column.

The column holds an SQL serial day number: days since 1899-12-30, so the
Unix epoch is day 25569.
"""

from datetime import datetime
from typing import Optional

SQL_EPOCH_DAY = 25569
SECONDS_PER_DAY = 86400


def epoch_to_sql_time(epoch: int) -> str:
    """Convert Unix seconds to the serial day format (six decimals)."""
    return f"{epoch / SECONDS_PER_DAY + SQL_EPOCH_DAY:.6f}"


def sql_time_to_epoch(value: str) -> Optional[int]:
    """Convert a serial day value back to Unix seconds.

    Returns:
        Epoch seconds, or None for blank, zero or unparseable values
    """
    value = value.strip()
    if not value:
        return None
    try:
        days = float(value)
    except ValueError:
        return None
    if days == 0:
        return None
    return round((days - SQL_EPOCH_DAY) * SECONDS_PER_DAY)


def human_time(epoch: int) -> str:
    """Format epoch seconds as local ``YYYY-MM-DD HH:MM:SS``."""
    return datetime.fromtimestamp(epoch).strftime("%Y-%m-%d %H:%M:%S")
