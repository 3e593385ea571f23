"""Atomic file replacement helpers."""

import os
import tempfile
from pathlib import Path
from typing import Iterable, List, Union


def atomic_write_text(path: Union[str, Path], content: str) -> None:
    """Replace ``path`` with ``content`` so readers never see a partial write.

    Writes a temp file in the same directory, then renames it over the
    original. File mode of an existing target is preserved.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, temp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent)
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        if path.exists():
            os.chmod(temp_name, path.stat().st_mode & 0o7777)
        os.replace(temp_name, path)
    except BaseException:
        # Clean up temp file on failure
        try:
            os.unlink(temp_name)
        except FileNotFoundError:
            pass
        raise


def write_lines(path: Union[str, Path], lines: Iterable[str]) -> None:
    """Atomically write newline-terminated lines; deletes the file when empty."""
    lines = list(lines)
    path = Path(path)
    if not lines:
        path.unlink(missing_ok=True)
        return
    atomic_write_text(path, "".join(f"{line}\n" for line in lines))


def read_lines(path: Union[str, Path]) -> List[str]:
    """Read non-empty lines from a text file; missing file reads as empty."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except FileNotFoundError:
        return []
    return [line for line in text.split("\n") if line.strip()]
