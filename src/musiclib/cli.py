"""
musiclib CLI - entry point.

Every subcommand maps its outcome to a process exit code:
0 success, 1 user error, 2 system error, 3 deferred (queued for later).
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from loguru import logger


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="musiclib",
        description="musiclib - flat-file music library maintenance",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Print debug diagnostics to stderr"
    )
    parser.add_argument(
        "-q", "--quiet", action="store_true", help="Only write messages to the log file"
    )

    subparsers = parser.add_subparsers(dest="subcommand", help="Available commands")

    subparsers.add_parser("init", help="Create an empty database")

    rate_parser = subparsers.add_parser("rate", help="Rate a track 0-5 stars")
    rate_parser.add_argument("stars", help="Star rating (0-5)")
    rate_parser.add_argument("path", help="Absolute path of the track")

    add_parser = subparsers.add_parser("add", help="Import audio files or directories")
    add_parser.add_argument("paths", nargs="+", help="Files or directories to import")
    add_parser.add_argument(
        "--last-played",
        type=int,
        default=None,
        help="Initial last-played time as Unix seconds (default: now)",
    )

    remove_parser = subparsers.add_parser("remove", help="Remove a track record")
    remove_parser.add_argument("path", help="Absolute path of the track")
    remove_parser.add_argument(
        "--id", dest="record_id", default=None, help="Only remove the row with this ID"
    )

    scrobble_parser = subparsers.add_parser("scrobble", help="Record a play")
    scrobble_parser.add_argument("path", help="Absolute path of the track")
    scrobble_parser.add_argument(
        "--at", dest="played_at", type=int, default=None, help="Play time as Unix seconds"
    )

    subparsers.add_parser("process-pending", help="Replay queued operations")
    subparsers.add_parser("backup", help="Back up the database")

    rebuild_parser = subparsers.add_parser(
        "build", help="Rebuild the database from a library scan"
    )
    rebuild_parser.add_argument(
        "music_dir", nargs="?", default=None, help="Library root (default: library.music_root)"
    )
    rebuild_parser.add_argument(
        "-d", "--dry-run", action="store_true", help="Preview what would be processed"
    )
    rebuild_parser.add_argument(
        "-b", "--backup", action="store_true", help="Back up the existing database first"
    )
    rebuild_parser.add_argument(
        "-o", "--output", default=None, help="Write to this file instead of the database"
    )

    mobile_parser = subparsers.add_parser("mobile", help="Mobile playlist accounting")
    mobile_sub = mobile_parser.add_subparsers(dest="mobile_command")

    upload_parser = mobile_sub.add_parser("upload", help="Record a playlist upload")
    upload_parser.add_argument("session_id", help="Playlist name")
    upload_parser.add_argument("track_list", help="File with one track path per line")

    reconcile_parser = mobile_sub.add_parser(
        "reconcile", help="Apply last-played times for a session"
    )
    reconcile_parser.add_argument("session_id", nargs="?", help="Session (default: current)")
    reconcile_parser.add_argument(
        "--end", type=int, default=None, help="Window end as Unix seconds"
    )

    retry_parser = mobile_sub.add_parser("retry", help="Retry failed session entries")
    retry_parser.add_argument("session_id", nargs="?", help="Session (default: all)")

    mobile_sub.add_parser("status", help="Show mobile session status")
    mobile_sub.add_parser("cleanup", help="Remove orphaned session files")
    logs_parser = mobile_sub.add_parser("logs", help="Show the mobile operations log")
    logs_parser.add_argument(
        "log_filter",
        nargs="?",
        choices=["errors", "warnings", "stats", "today"],
        help="Only show matching lines (default: last 50 lines)",
    )

    return parser


def run(argv: Optional[List[str]] = None, ctx=None) -> int:
    """Parse arguments and dispatch to a command handler.

    Args:
        argv: Arguments (default: sys.argv[1:])
        ctx: Prebuilt AppContext; built from the loaded config when omitted

    Returns:
        Exit code
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.subcommand or (args.subcommand == "mobile" and not args.mobile_command):
        parser.print_help()
        return 1

    from musiclib.core import output

    output.set_quiet(args.quiet)

    if ctx is None:
        from musiclib.context import AppContext
        from musiclib.core.config import ensure_directories, load_config
        from musiclib.core.console import get_console

        config = load_config()
        output.setup_from_config(config.logging, verbose=args.verbose)
        output.add_mobile_sink(
            Path(config.mobile.log_file),
            rotation=f"{config.logging.max_file_size_mb} MB",
            retention=config.logging.backup_count,
        )
        try:
            ensure_directories(config)
        except OSError as e:
            print(f"Error: cannot create data directories: {e}", file=sys.stderr)
            return 2
        ctx = AppContext.create(config, console=get_console())

    logger.debug(f"Running {args.subcommand}")
    return dispatch(ctx, args)


def dispatch(ctx, args: argparse.Namespace) -> int:
    from musiclib.commands import library, mobile, pending, rating

    if args.subcommand == "init":
        return library.handle_init_command(ctx)
    elif args.subcommand == "rate":
        return rating.handle_rate_command(ctx, args.path, args.stars)
    elif args.subcommand == "add":
        return library.handle_add_command(ctx, args.paths, last_played=args.last_played)
    elif args.subcommand == "remove":
        return library.handle_remove_command(ctx, args.path, record_id=args.record_id)
    elif args.subcommand == "scrobble":
        return library.handle_scrobble_command(ctx, args.path, played_at=args.played_at)
    elif args.subcommand == "process-pending":
        return pending.handle_process_pending(ctx)
    elif args.subcommand == "backup":
        return library.handle_backup_command(ctx)
    elif args.subcommand == "build":
        return library.handle_build_command(
            ctx,
            args.music_dir,
            dry_run=args.dry_run,
            backup=args.backup,
            output=args.output,
        )
    elif args.subcommand == "mobile":
        if args.mobile_command == "upload":
            return mobile.handle_upload_command(ctx, args.session_id, args.track_list)
        elif args.mobile_command == "reconcile":
            return mobile.handle_reconcile_command(ctx, args.session_id, args.end)
        elif args.mobile_command == "retry":
            return mobile.handle_retry_command(ctx, args.session_id)
        elif args.mobile_command == "status":
            return mobile.handle_status_command(ctx)
        elif args.mobile_command == "cleanup":
            return mobile.handle_cleanup_command(ctx)
        elif args.mobile_command == "logs":
            return mobile.handle_logs_command(ctx, args.log_filter)
    return 1


def main() -> None:
    """Main entry point for the musiclib command."""
    sys.exit(run())


if __name__ == "__main__":
    main()
