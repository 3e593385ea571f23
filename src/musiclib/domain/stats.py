"""Per-batch counters returned by batch operations."""

from dataclasses import dataclass, fields


@dataclass
class BatchStats:
    """Outcome counts for one batch (reconcile, retry, import).

    Attributes:
        total: Records considered
        updated: Store rows changed
        preserved: Rows left alone (already played inside the window)
        skipped: Already present or nothing to do
        not_in_store: Paths with no store row
        store_write_failed: Rows whose store update failed
        tag_write_failed: Rows updated in the store whose tag write failed
        deferred: Operations queued for later
        errors: Other per-record failures
    """

    total: int = 0
    updated: int = 0
    preserved: int = 0
    skipped: int = 0
    not_in_store: int = 0
    store_write_failed: int = 0
    tag_write_failed: int = 0
    deferred: int = 0
    errors: int = 0

    def __add__(self, other: "BatchStats") -> "BatchStats":
        return BatchStats(
            **{f.name: getattr(self, f.name) + getattr(other, f.name) for f in fields(self)}
        )

    @property
    def failed(self) -> int:
        """Records that need a retry."""
        return (
            self.not_in_store
            + self.store_write_failed
            + self.tag_write_failed
            + self.errors
        )
