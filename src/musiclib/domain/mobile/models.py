"""Mobile session data model."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from ..stats import BatchStats

RECOVERY_DELIMITER = "^"

REASON_STORE_WRITE = "store-write"
REASON_TAG_WRITE = "tag-write"


@dataclass
class Session:
    """One upload-to-next-upload window.

    Attributes:
        session_id: Playlist name the session was uploaded under
        start_epoch: Upload time
        tracks: Absolute paths in playlist order
        end_epoch: Window end, once the session has been superseded
    """

    session_id: str
    start_epoch: int
    tracks: List[str] = field(default_factory=list)
    end_epoch: Optional[int] = None


@dataclass(frozen=True)
class RecoveryRecord:
    """A track that still needs its synthetic last-played time applied."""

    path: str
    synthetic_epoch: int
    human: str
    reason: str = ""

    @classmethod
    def parse(cls, line: str) -> "RecoveryRecord":
        """Parse ``path^epoch^human[^reason]``.

        Raises:
            ValueError: Too few fields or a non-numeric epoch
        """
        parts = line.rstrip("\n").split(RECOVERY_DELIMITER)
        if len(parts) < 3 or not parts[0]:
            raise ValueError(f"malformed recovery line: {line!r}")
        return cls(
            path=parts[0],
            synthetic_epoch=int(parts[1]),
            human=parts[2],
            reason=parts[3] if len(parts) > 3 else "",
        )

    def to_line(self) -> str:
        fields = [self.path, str(self.synthetic_epoch), self.human]
        if self.reason:
            fields.append(self.reason)
        return RECOVERY_DELIMITER.join(fields)


class ReconcileOutcome(Enum):
    CLEAN = "clean"
    PARTIAL = "partial"
    SKIPPED = "skipped"
    NOT_FOUND = "not_found"


@dataclass
class ReconcileResult:
    session_id: str
    outcome: ReconcileOutcome
    stats: BatchStats = field(default_factory=BatchStats)
    window: int = 0
    warnings: List[str] = field(default_factory=list)


@dataclass
class RetryResult:
    """Outcome of re-applying a session's recovery files.

    Attributes:
        remaining: Entries still unresolved after this pass
        cleared: All sidecars of the session were deleted
        reconcile: Set when the session had no recovery files and was
            reconciled from its persisted window end instead
    """

    session_id: str
    stats: BatchStats = field(default_factory=BatchStats)
    remaining: int = 0
    cleared: bool = False
    reconcile: Optional[ReconcileResult] = None


@dataclass
class OpenResult:
    """Outcome of registering a new upload.

    ``error`` holds the failure of reconciling the previous session; the new
    session is persisted regardless.
    """

    session_id: str
    previous_id: Optional[str] = None
    initialized: bool = False
    unchanged: bool = False
    reconcile: Optional[ReconcileResult] = None
    retry: Optional[RetryResult] = None
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)


@dataclass
class SessionStatus:
    current_id: Optional[str] = None
    uploaded_epoch: Optional[int] = None
    track_count: int = 0
    # (session id, not-in-store entries, write-failed entries)
    pending: List[Tuple[str, int, int]] = field(default_factory=list)
    # Superseded sessions whose reconciliation never completed
    interrupted: List[str] = field(default_factory=list)
    orphaned: List[str] = field(default_factory=list)
