import argparse
import logging
import sys
import threading
from pathlib import Path

from rich.console import Console

from . import daemon
from .backup import BackupMedium, WatchTarget
from .config import Config
from .constants import APP_NAME
from .errors import ArgumentError, OperationalError
from .system import get_notifier

logger = logging.getLogger(APP_NAME)
err_console = Console(stderr=True)

DESCRIPTION = """\
pbr-watch automates and reminds you of backing up your password database.

Every time the database changes it is copied to the backup drive mounted at
STORAGE_MOUNT_POINT. While the drive is not mounted a reminder keeps showing
until it is. If GIT_REMOTE is given, the directory holding the database must be
a git repository with that remote; each backup is committed and pushed there."""


def build_parser() -> argparse.ArgumentParser:
    """Creates the argument parser for the `pbr-watch` command."""
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description=DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("database_path", help="Password database file to watch")
    parser.add_argument(
        "storage_mount_point", help="Mount point of the backup drive"
    )
    parser.add_argument(
        "git_remote",
        nargs="?",
        default=None,
        help="Git remote to push history to (omit to only copy)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debug output to stdout instead of the log file",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to an alternative config.toml",
    )
    return parser


def validate_args(
    database_path: str, mount_point: str, remote: str | None
) -> tuple[WatchTarget, BackupMedium]:
    """Checks the startup paths and builds the watch target and backup medium.

    The mount point only has to exist; whether it is mounted is checked on
    every backup.

    Raises:
        ArgumentError: If the database is not a regular file or the mount
            point does not exist.
    """
    db = Path(database_path)
    if not db.is_file():
        raise ArgumentError(f"Invalid path: {database_path}")

    mount = Path(mount_point)
    if not mount.exists():
        raise ArgumentError(f"Invalid path: {mount_point}")

    if remote is not None and not remote.strip():
        raise ArgumentError("Git remote must not be empty")

    return WatchTarget(db.absolute()), BackupMedium(mount.absolute(), remote)


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the pbr-watch CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    config = Config.load(args.config)
    remote = args.git_remote or config.git.remote

    try:
        target, medium = validate_args(
            args.database_path, args.storage_mount_point, remote
        )
    except ArgumentError as e:
        err_console.print(f"[bold red]ERROR:[/bold red] {e}")
        parser.print_usage(sys.stderr)
        sys.exit(1)

    daemon.setup_logging(args.verbose, config.limits.max_log_size)

    cancel = threading.Event()
    daemon.install_signal_handlers(cancel)
    notifier = get_notifier()
    watchdog = daemon.Watchdog(
        target, medium, config=config, notifier=notifier, cancel=cancel
    )

    try:
        watchdog.run()
    except OperationalError as e:
        daemon.report_fatal(notifier, e)
        sys.exit(1)


if __name__ == "__main__":
    main()
