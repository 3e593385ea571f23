"""Replay handlers for queued operations.

A handler returns normally when the operation is done (or can never be
done and should be forgotten), raises LockTimeout to keep the line, and
raises any other error to have it dropped.
"""

from pathlib import Path
from typing import Dict, Optional

from loguru import logger

from ...core.errors import RecordNotFound, ValidationError
from ..store.importer import build_track_fields
from ..store.writer import STAR_TO_POPM, StoreWriter, parse_stars
from ..tags.base import (
    KEY_GROUPDESC,
    KEY_LAST_PLAYED,
    KEY_RATING,
    MetadataReader,
    TagWriter,
    write_rating_tags,
)
from .models import OP_ADD_TRACK, OP_RATE, PendingOperation
from .queue import Handler


def _args(op: PendingOperation, count: int) -> tuple:
    if len(op.args) < count:
        raise ValidationError(
            f"{op.op_type} needs {count} argument(s), got {len(op.args)}"
        )
    return op.args[:count]


def make_rate_handler(
    writer: StoreWriter, tag_writer: Optional[TagWriter], timeout: float
) -> Handler:
    def handle(op: PendingOperation) -> None:
        path, stars_arg = _args(op, 2)
        stars = parse_stars(stars_arg)
        try:
            writer.rate(path, stars, timeout)
        except RecordNotFound:
            # Track may have been removed since the rating was queued
            logger.info(f"Note: Track not found in database: {path}")
            return

        if tag_writer is not None and Path(path).is_file():
            if not write_rating_tags(tag_writer, path, STAR_TO_POPM[stars], stars):
                logger.warning(f"Rating stored but tag write failed: {path}")

    return handle


def make_add_track_handler(
    writer: StoreWriter,
    reader: MetadataReader,
    tag_writer: Optional[TagWriter],
    timeout: float,
    default_rating: str = "0",
    default_groupdesc: str = "0",
) -> Handler:
    def handle(op: PendingOperation) -> None:
        (path,) = _args(op, 1)
        last_played = op.args[1] if len(op.args) > 1 else ""
        if not Path(path).is_file():
            raise ValidationError(f"File no longer exists: {path}")

        fields = build_track_fields(
            path, reader, last_played, default_rating, default_groupdesc
        )
        new_id = writer.add_track(fields, timeout)
        if new_id is None:
            return
        logger.info(f"Added track from queue: {path} (ID: {new_id})")

        if tag_writer is None:
            return
        # Best effort, as on a direct import
        if last_played:
            tag_writer.set_field(path, KEY_LAST_PLAYED, last_played)
        tag_writer.set_field(path, KEY_RATING, default_rating)
        tag_writer.set_field(path, KEY_GROUPDESC, default_groupdesc)

    return handle


def build_handlers(
    writer: StoreWriter,
    reader: MetadataReader,
    tag_writer: Optional[TagWriter],
    timeout: float,
    default_rating: str = "0",
    default_groupdesc: str = "0",
) -> Dict[str, Handler]:
    """Handlers for every supported op type."""
    return {
        OP_RATE: make_rate_handler(writer, tag_writer, timeout),
        OP_ADD_TRACK: make_add_track_handler(
            writer, reader, tag_writer, timeout, default_rating, default_groupdesc
        ),
    }
