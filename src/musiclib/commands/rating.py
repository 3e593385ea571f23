"""
Rating command handlers.

A rating tries the store lock a few times with back-off. If the store stays
busy the rating is queued and the command exits with the deferred code.
"""

import time
from pathlib import Path

from loguru import logger

from musiclib.commands.pending import drain_after_write
from musiclib.context import AppContext
from musiclib.core.errors import (
    EXIT_DEFERRED,
    EXIT_OK,
    LockTimeout,
    MusiclibError,
    RecordNotFound,
    ValidationError,
)
from musiclib.core.output import log
from musiclib.domain.pending import OP_RATE
from musiclib.domain.store import STAR_TO_POPM, parse_stars
from musiclib.domain.tags import write_rating_tags

ORIGIN = "rate"


def handle_rate_command(ctx: AppContext, path: str, stars_arg: str) -> int:
    """Rate a track 0-5 stars in the store and its tags.

    Returns:
        Exit code: 0 rated (or track unknown), 1 bad input, 2 system error,
        3 queued for later
    """
    try:
        stars = parse_stars(stars_arg)
        if not path:
            raise ValidationError("No track path given")
    except ValidationError as e:
        log(f"❌ {e}", level="error")
        return e.exit_code

    locks = ctx.config.locks
    for attempt in range(1, locks.rate_attempts + 1):
        try:
            ctx.writer.rate(path, stars, locks.rate_timeout)
            break
        except LockTimeout:
            if attempt < locks.rate_attempts:
                logger.info(
                    f"Database locked, retrying in {locks.retry_delay}s "
                    f"(attempt {attempt}/{locks.rate_attempts})"
                )
                time.sleep(locks.retry_delay)
        except RecordNotFound:
            log(f"⚠ Track not found in database: {path}", level="warning")
            return EXIT_OK
        except MusiclibError as e:
            log(f"❌ Rating failed: {e}", level="error")
            ctx.notifier.error(f"Rating failed: {Path(path).name}")
            return e.exit_code
    else:
        return _defer_rating(ctx, path, stars)

    if Path(path).is_file():
        if not write_rating_tags(ctx.tag_writer, path, STAR_TO_POPM[stars], stars):
            log(f"⚠ Rating saved but tags could not be updated: {path}", level="warning")
    else:
        logger.warning(f"File not found, tags not updated: {path}")

    log(f"✓ Rated {Path(path).name}: {'★' * stars}{'☆' * (5 - stars)}")
    ctx.notifier.success(f"Rated {Path(path).name}: {stars} stars")
    drain_after_write(ctx)
    return EXIT_OK


def _defer_rating(ctx: AppContext, path: str, stars: int) -> int:
    try:
        ctx.queue.enqueue(OP_RATE, [path, str(stars)], origin=ORIGIN)
    except MusiclibError as e:
        log(f"❌ Database busy and rating could not be queued: {e}", level="error")
        return e.exit_code

    log(f"⏳ Database busy, rating queued: {Path(path).name}", level="warning")
    ctx.notifier.deferred(f"Rating queued: {Path(path).name}")
    return EXIT_DEFERRED
