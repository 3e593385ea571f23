"""Pending operation records.

One operation per line: ``epoch|origin|opType|arg1|arg2|...``.
"""

from dataclasses import dataclass
from typing import Tuple

from ...core.errors import ValidationError

SEPARATOR = "|"

OP_RATE = "rate"
OP_ADD_TRACK = "add_track"


def check_arg(value: str) -> str:
    """Reject values that would split a queue line.

    Raises:
        ValidationError: Value contains the separator or a line break
    """
    if SEPARATOR in value or "\n" in value or "\r" in value:
        raise ValidationError(
            f"Queued values may not contain {SEPARATOR!r} or line breaks: {value!r}"
        )
    return value


@dataclass(frozen=True)
class PendingOperation:
    """A deferred store mutation."""

    timestamp: int
    origin: str
    op_type: str
    args: Tuple[str, ...] = ()

    @classmethod
    def parse(cls, line: str) -> "PendingOperation":
        """Parse one queue line.

        Raises:
            ValueError: Fewer than three fields, non-numeric timestamp or
                empty op type
        """
        parts = line.rstrip("\n").split(SEPARATOR)
        if len(parts) < 3:
            raise ValueError(f"expected at least 3 fields, got {len(parts)}")
        timestamp, origin, op_type = parts[0], parts[1], parts[2]
        if not op_type:
            raise ValueError("empty operation type")
        return cls(
            timestamp=int(timestamp),
            origin=origin,
            op_type=op_type,
            args=tuple(parts[3:]),
        )

    def to_line(self) -> str:
        fields = [str(self.timestamp), self.origin, self.op_type, *self.args]
        for value in fields:
            check_arg(value)
        return SEPARATOR.join(fields)
