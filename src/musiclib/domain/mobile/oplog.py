"""Reading back the mobile operations log.

Lines look like ``2026-10-19 14:02:11 | WARNING  | message``; reconciliation
summaries carry a ``STATS`` message prefix.
"""

from datetime import date
from pathlib import Path
from typing import List, Optional, Union

from ...core.errors import ValidationError
from ...core.fileio import read_lines

STATS_PREFIX = "STATS"

# filter name -> lines shown (newest last)
LOG_FILTERS = {
    None: 50,
    "errors": 20,
    "warnings": 20,
    "stats": 10,
    "today": None,
}


def _field(line: str, index: int) -> str:
    parts = line.split(" | ", 2)
    return parts[index].strip() if len(parts) == 3 else ""


def read_log(
    log_file: Union[str, Path], log_filter: Optional[str] = None, today: Optional[date] = None
) -> List[str]:
    """Get log lines matching a filter.

    Args:
        log_file: Mobile operations log
        log_filter: None (recent lines), errors, warnings, stats or today
        today: Date used by the ``today`` filter (default: local today)

    Raises:
        ValidationError: Unknown filter
    """
    if log_filter not in LOG_FILTERS:
        names = ", ".join(name for name in LOG_FILTERS if name)
        raise ValidationError(f"Unknown logs filter {log_filter!r} (use one of: {names})")

    lines = read_lines(log_file)
    if log_filter == "errors":
        lines = [line for line in lines if _field(line, 1) in ("ERROR", "CRITICAL")]
    elif log_filter == "warnings":
        lines = [line for line in lines if _field(line, 1) == "WARNING"]
    elif log_filter == "stats":
        lines = [line for line in lines if _field(line, 2).startswith(STATS_PREFIX)]
    elif log_filter == "today":
        prefix = (today or date.today()).isoformat()
        lines = [line for line in lines if line.startswith(prefix)]

    limit = LOG_FILTERS[log_filter]
    return lines[-limit:] if limit else lines
