import enum
import logging
import signal
import sys
import threading
from collections.abc import Callable
from logging.handlers import RotatingFileHandler
from types import FrameType

from . import mounts, watcher
from .backup import BackupMedium, WatchTarget, run_backup
from .config import Config
from .constants import (
    APP_NAME,
    BACKUP_BODY,
    BACKUP_BODY_GIT,
    BACKUP_TITLE,
    ERROR_TITLE,
    LOG_FILE,
    NAG_BODY,
    NAG_TITLE,
)
from .errors import CopyError, OperationalError, VersionControlError
from .nag import NagPolicy, nag_until
from .system import Notifier, get_notifier

logger = logging.getLogger(APP_NAME)
logger.setLevel(logging.INFO)


class State(enum.Enum):
    """Phases of one watchdog cycle."""

    WAITING_FOR_CHANGE = "waiting for change"
    CHECKING_MEDIUM = "checking medium"
    NAGGING = "nagging"
    BACKING_UP = "backing up"


class Watchdog:
    """Watches the database and backs it up whenever it changes.

    One cycle waits for a change, makes sure the backup medium is mounted
    (reminding the user until it is), then backs up. Cycles repeat until the
    cancel event is set. Operational errors propagate to the caller, except
    backup errors when `exit_on_backup_error` is disabled.

    Attributes:
        target (WatchTarget): The watched database.
        medium (BackupMedium): Where backups go.
        state (State): The phase the watchdog is in.
    """

    def __init__(
        self,
        target: WatchTarget,
        medium: BackupMedium,
        config: Config | None = None,
        notifier: Notifier | None = None,
        cancel: threading.Event | None = None,
        sleep: Callable[[float], None] | None = None,
    ):
        self.target = target
        self.medium = medium
        self.config = config or Config()
        self.notifier = notifier or get_notifier()
        self.cancel = cancel or threading.Event()
        self.policy = NagPolicy(
            self.config.nag.interval, self.config.nag.expire_timeout
        )
        self._sleep = sleep
        self.state = State.WAITING_FOR_CHANGE

    def medium_mounted(self) -> bool:
        """Whether the backup medium is mounted right now."""
        return mounts.is_mounted(self.medium.mountpoint)

    def run_cycle(self) -> bool:
        """Runs one wait, check, backup cycle.

        Returns:
            bool: False if the cycle was cancelled before backing up.

        Raises:
            OperationalError: On watch, mount enumeration or notification
                failures, and on backup failures when configured to exit.
        """
        self.state = State.WAITING_FOR_CHANGE
        changed = watcher.wait_for_change(
            self.target.path,
            cancel=self.cancel,
            poll_interval=self.config.daemon.watch_poll_interval,
        )
        if not changed:
            return False

        self.state = State.CHECKING_MEDIUM
        if not self.medium_mounted():
            self.state = State.NAGGING
            logger.warning(
                f"MOUNT: {self.medium.mountpoint} is not mounted. "
                "Waiting for the backup drive."
            )
            mounted = nag_until(
                self.notifier,
                NAG_TITLE,
                NAG_BODY,
                self.medium_mounted,
                policy=self.policy,
                sleep=self._sleep,
                cancel=self.cancel,
            )
            if not mounted:
                return False

        self.state = State.BACKING_UP
        self._backup()
        self.state = State.WAITING_FOR_CHANGE
        return True

    def _backup(self) -> None:
        body = BACKUP_BODY_GIT if self.medium.tracks_history else BACKUP_BODY
        self.notifier.notify(BACKUP_TITLE, body)
        try:
            result = run_backup(
                self.target, self.medium, self.config.git.commit_message
            )
        except (CopyError, VersionControlError) as e:
            if self.config.daemon.exit_on_backup_error:
                raise
            logger.error(f"BACKUP ERROR: {e}")
            self.notifier.notify(ERROR_TITLE, str(e))
            return

        if self.medium.tracks_history and not result.committed:
            logger.info(f"BACKUP: {result.destination} written, history unchanged.")
        else:
            logger.info(f"BACKUP: {result.destination} written.")

    def run(self) -> None:
        """Runs cycles until the cancel event is set.

        Raises:
            OperationalError: Any unrecovered failure; see `run_cycle`.
        """
        logger.info(
            f"Watching {self.target.path}, backing up to {self.medium.mountpoint}"
            + (f" (history: {self.medium.remote})" if self.medium.remote else "")
        )
        while not self.cancel.is_set():
            if not self.run_cycle():
                break
        logger.info("Watchdog stopped.")


def report_fatal(notifier: Notifier, error: OperationalError) -> None:
    """Surfaces an unrecoverable error on the desktop and in the log."""
    logger.critical(f"CRITICAL: {error}")
    notifier.notify(ERROR_TITLE, str(error))


def install_signal_handlers(cancel: threading.Event) -> None:
    """Stops the watchdog cleanly on SIGTERM and SIGINT."""

    def handler(signum: int, _frame: FrameType | None) -> None:
        logger.info(f"Received {signal.Signals(signum).name}, shutting down.")
        cancel.set()

    signal.signal(signal.SIGTERM, handler)
    signal.signal(signal.SIGINT, handler)


def setup_logging(verbose: bool, max_log_size: int) -> None:
    """Configures the logging subsystem.

    Args:
        verbose (bool): If True, logs DEBUG and above to stdout only. If False,
                        logs to stderr and to a rotating log file.
        max_log_size (int): Bytes before the log file is rotated.
    """
    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)s: %(message)s", "%Y-%m-%d %H:%M:%S"
    )

    # Always log to a stream (captured by systemd when run as a service).
    stream_handler = logging.StreamHandler(sys.stdout if verbose else sys.stderr)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if verbose:
        logger.setLevel(logging.DEBUG)
        return

    try:
        LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            LOG_FILE,
            maxBytes=max_log_size,
            backupCount=5,
        )
    except OSError as e:
        logger.warning(f"Could not open log file {LOG_FILE}: {e}")
        return
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)
