"""Mobile domain - last-played accounting for playlists played on a phone.

This domain handles:
- Session sidecar persistence (current pointer, meta, tracks, end)
- Synthetic timestamp distribution across a session window
- Recovery files and idempotent retry
- Reading back the mobile operations log
"""

from .models import (
    REASON_STORE_WRITE,
    REASON_TAG_WRITE,
    OpenResult,
    ReconcileOutcome,
    ReconcileResult,
    RecoveryRecord,
    RetryResult,
    Session,
    SessionStatus,
)
from .oplog import LOG_FILTERS, read_log
from .reconciler import SessionReconciler, synthetic_timestamp
from .sessions import (
    NOT_IN_STORE_SUFFIX,
    WRITE_FAILED_SUFFIX,
    SessionStore,
    validate_session_id,
)

__all__ = [
    "REASON_STORE_WRITE",
    "REASON_TAG_WRITE",
    "OpenResult",
    "ReconcileOutcome",
    "ReconcileResult",
    "RecoveryRecord",
    "RetryResult",
    "Session",
    "SessionStatus",
    "LOG_FILTERS",
    "read_log",
    "SessionReconciler",
    "synthetic_timestamp",
    "NOT_IN_STORE_SUFFIX",
    "WRITE_FAILED_SUFFIX",
    "SessionStore",
    "validate_session_id",
]
