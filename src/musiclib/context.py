"""Application context for explicit state passing.

Commands receive one AppContext holding the configuration and the
collaborators built from it, instead of constructing them ad hoc.
"""

from dataclasses import dataclass
from typing import Optional

from rich.console import Console

from musiclib.core.config import Config
from musiclib.domain.mobile import SessionReconciler, SessionStore
from musiclib.domain.pending import PendingQueue, build_handlers
from musiclib.domain.store import StoreWriter
from musiclib.domain.tags import (
    MetadataReader,
    MutagenMetadataReader,
    MutagenTagWriter,
    TagWriter,
)
from musiclib.notifications import Notifier


@dataclass
class AppContext:
    """Configuration plus the store, queue and tag collaborators.

    Attributes:
        config: Application configuration
        writer: Lock-coordinated store writer
        queue: Pending operation queue with replay handlers registered
        tag_writer: Tag collaborator for mirroring store values into files
        reader: Metadata collaborator used on import
        notifier: Desktop notifications per the notifications config
        console: Rich Console for formatted output
    """

    config: Config
    writer: StoreWriter
    queue: PendingQueue
    tag_writer: TagWriter
    reader: MetadataReader
    notifier: Notifier
    console: Optional[Console] = None

    @classmethod
    def create(
        cls,
        config: Config,
        console: Optional[Console] = None,
        tag_writer: Optional[TagWriter] = None,
        reader: Optional[MetadataReader] = None,
    ) -> "AppContext":
        """Build a context, defaulting to the Mutagen tag collaborators."""
        tag_writer = tag_writer or MutagenTagWriter()
        reader = reader or MutagenMetadataReader()
        writer = StoreWriter(config.library.database_path)
        handlers = build_handlers(
            writer,
            reader,
            tag_writer,
            config.locks.pending_timeout,
            default_rating=config.library.default_rating,
            default_groupdesc=config.library.default_groupdesc,
        )
        queue = PendingQueue(
            config.pending.pending_file,
            handlers,
            lock_timeout=config.locks.pending_timeout,
        )
        return cls(
            config=config,
            writer=writer,
            queue=queue,
            tag_writer=tag_writer,
            reader=reader,
            notifier=Notifier(config.notifications),
            console=console,
        )

    def reconciler(self) -> SessionReconciler:
        """Session reconciler over the configured mobile directory."""
        mobile = self.config.mobile
        return SessionReconciler(
            SessionStore(mobile.mobile_dir),
            self.writer,
            self.tag_writer,
            lock_timeout=self.config.locks.mobile_timeout,
            min_window=mobile.min_window_seconds,
            max_window=mobile.max_window_seconds,
        )
