"""
Session sidecar files in the mobile directory.

    current               id of the active session
    <id>.meta             upload epoch
    <id>.tracks           one absolute path per line, playlist order
    <id>.end              window end, written when the session is superseded
    <id>.not_in_store     recovery records for paths missing from the store
    <id>.write_failed     recovery records for failed store or tag writes
"""

from pathlib import Path
from typing import Iterable, List, Optional, Set, Union

from loguru import logger

from ...core.errors import SessionError, ValidationError
from ...core.fileio import atomic_write_text, read_lines, write_lines
from .models import RecoveryRecord, Session

CURRENT_FILE = "current"
META_SUFFIX = ".meta"
TRACKS_SUFFIX = ".tracks"
END_SUFFIX = ".end"
NOT_IN_STORE_SUFFIX = ".not_in_store"
WRITE_FAILED_SUFFIX = ".write_failed"

SIDECAR_SUFFIXES = (
    META_SUFFIX,
    TRACKS_SUFFIX,
    END_SUFFIX,
    NOT_IN_STORE_SUFFIX,
    WRITE_FAILED_SUFFIX,
)
RECOVERY_SUFFIXES = (NOT_IN_STORE_SUFFIX, WRITE_FAILED_SUFFIX)


def validate_session_id(session_id: str) -> str:
    """Session ids name files, so they must be a single safe path component.

    Raises:
        ValidationError: Empty, a path, or a reserved name
    """
    if (
        not session_id
        or session_id in (".", "..", CURRENT_FILE)
        or any(ch in session_id for ch in ("/", "\\", "\0", "\n", "\r"))
    ):
        raise ValidationError(f"Invalid session id: {session_id!r}")
    return session_id


def _read_int(path: Path) -> Optional[int]:
    lines = read_lines(path)
    if not lines:
        return None
    try:
        return int(lines[0].strip())
    except ValueError:
        raise SessionError(f"Corrupt session file {path}: {lines[0]!r}") from None


class SessionStore:
    """Reads and writes session sidecars under one directory."""

    def __init__(self, mobile_dir: Union[str, Path]):
        self.mobile_dir = Path(mobile_dir)

    def path_for(self, session_id: str, suffix: str) -> Path:
        return self.mobile_dir / f"{validate_session_id(session_id)}{suffix}"

    @property
    def current_path(self) -> Path:
        return self.mobile_dir / CURRENT_FILE

    def get_current(self) -> Optional[str]:
        lines = read_lines(self.current_path)
        return lines[0].strip() if lines else None

    def set_current(self, session_id: str) -> None:
        atomic_write_text(self.current_path, validate_session_id(session_id) + "\n")

    def save(self, session: Session) -> None:
        """Persist meta and track list (end is written separately)."""
        atomic_write_text(
            self.path_for(session.session_id, META_SUFFIX), f"{session.start_epoch}\n"
        )
        atomic_write_text(
            self.path_for(session.session_id, TRACKS_SUFFIX),
            "".join(f"{track}\n" for track in session.tracks),
        )

    def load(self, session_id: str) -> Optional[Session]:
        """Load a session; None when its meta or track list is missing.

        Raises:
            SessionError: Meta or end file is not an epoch
        """
        meta_path = self.path_for(session_id, META_SUFFIX)
        tracks_path = self.path_for(session_id, TRACKS_SUFFIX)
        if not meta_path.exists() or not tracks_path.exists():
            return None

        start_epoch = _read_int(meta_path)
        if start_epoch is None:
            raise SessionError(f"Empty session metadata: {meta_path}")

        return Session(
            session_id=session_id,
            start_epoch=start_epoch,
            tracks=read_lines(tracks_path),
            end_epoch=self.load_end(session_id),
        )

    def save_end(self, session_id: str, end_epoch: int) -> None:
        atomic_write_text(self.path_for(session_id, END_SUFFIX), f"{end_epoch}\n")

    def load_end(self, session_id: str) -> Optional[int]:
        return _read_int(self.path_for(session_id, END_SUFFIX))

    def read_recovery(self, session_id: str, suffix: str) -> List[RecoveryRecord]:
        records = []
        for line in read_lines(self.path_for(session_id, suffix)):
            try:
                records.append(RecoveryRecord.parse(line))
            except ValueError as e:
                logger.warning(f"Ignoring {e} in {session_id}{suffix}")
        return records

    def write_recovery(
        self, session_id: str, suffix: str, records: Iterable[RecoveryRecord]
    ) -> None:
        """Replace a recovery file; an empty list deletes it."""
        write_lines(self.path_for(session_id, suffix), [r.to_line() for r in records])

    def has_recovery(self, session_id: str) -> bool:
        return any(self.path_for(session_id, s).exists() for s in RECOVERY_SUFFIXES)

    def delete(self, session_id: str) -> List[Path]:
        """Delete every sidecar of a session; returns the removed paths."""
        removed = []
        for suffix in SIDECAR_SUFFIXES:
            path = self.path_for(session_id, suffix)
            if path.exists():
                path.unlink()
                removed.append(path)
        return removed

    def session_ids(self) -> List[str]:
        """Ids of every session with at least one sidecar, sorted."""
        ids: Set[str] = set()
        if not self.mobile_dir.is_dir():
            return []
        for path in self.mobile_dir.iterdir():
            for suffix in SIDECAR_SUFFIXES:
                if path.name.endswith(suffix) and len(path.name) > len(suffix):
                    ids.add(path.name[: -len(suffix)])
                    break
        return sorted(ids)
