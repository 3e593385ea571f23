"""Pending domain - deferred store mutations.

This domain handles:
- Queue line format (PendingOperation)
- Enqueue and self-excluding drain (PendingQueue)
- Replay handlers for rate and add_track
"""

from .handlers import build_handlers, make_add_track_handler, make_rate_handler
from .models import OP_ADD_TRACK, OP_RATE, SEPARATOR, PendingOperation, check_arg
from .queue import DrainResult, Handler, PendingQueue

__all__ = [
    "build_handlers",
    "make_add_track_handler",
    "make_rate_handler",
    "OP_ADD_TRACK",
    "OP_RATE",
    "SEPARATOR",
    "PendingOperation",
    "check_arg",
    "DrainResult",
    "Handler",
    "PendingQueue",
]
