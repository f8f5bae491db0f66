"""Tests for the watchdog loop."""

import logging
import signal
import threading
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from pbr_watch import daemon
from pbr_watch.backup import BackupMedium, WatchTarget
from pbr_watch.config import Config
from pbr_watch.constants import BACKUP_TITLE, ERROR_TITLE, NAG_TITLE
from pbr_watch.errors import CopyError, EnumerationError, WatchError
from pbr_watch.system import Notifier


@pytest.fixture
def source(tmp_path: Path) -> Path:
    db = tmp_path / "passwords.kdbx"
    db.write_bytes(b"\x03\xd9\xa2\x9a secret bytes")
    return db


@pytest.fixture
def drive(tmp_path: Path) -> Path:
    path = tmp_path / "usb"
    path.mkdir()
    return path


@pytest.fixture
def notifier() -> MagicMock:
    mock = MagicMock(spec=Notifier)
    mock.send.return_value = 17
    return mock


def _changes(mocker: MagicMock, count: int) -> MagicMock:
    """Reports `count` file changes, then behaves as if cancelled."""
    return mocker.patch(
        "pbr_watch.daemon.watcher.wait_for_change",
        side_effect=[True] * count + [False],
    )


def test_nag_until_mounted_then_backup(
    source: Path, drive: Path, notifier: MagicMock, mocker: MagicMock
) -> None:
    """Verifies the full cycle with an unplugged drive that gets plugged in.

    Args:
        source (Path): The database file.
        drive (Path): The backup mount point (exists, not yet mounted).
        notifier (MagicMock): The mocked notification collaborator.
        mocker (MagicMock): Pytest fixture for mocking.
    """
    _changes(mocker, 1)
    # Unmounted for the medium check and the first nag check, then mounted.
    mocker.patch(
        "pbr_watch.mounts.get_mountpoints",
        side_effect=[["/"], ["/"], ["/", str(drive)]],
    )
    mock_repo = mocker.patch("pbr_watch.backup.GitRepo")
    sleep = MagicMock()

    dog = daemon.Watchdog(
        WatchTarget(source), BackupMedium(drive), notifier=notifier, sleep=sleep
    )
    dog.run()

    notifier.send.assert_called_once()
    assert notifier.send.call_args.args[0] == NAG_TITLE
    sleep.assert_called_once_with(dog.policy.interval)
    notifier.notify.assert_any_call(BACKUP_TITLE, mocker.ANY)
    assert (drive / source.name).read_bytes() == source.read_bytes()
    mock_repo.assert_not_called()


def test_mounted_drive_skips_nag(
    source: Path, drive: Path, notifier: MagicMock, mocker: MagicMock
) -> None:
    """Verifies that a mounted drive goes straight to the backup."""
    _changes(mocker, 2)
    mocker.patch("pbr_watch.mounts.get_mountpoints", return_value=[str(drive)])

    dog = daemon.Watchdog(WatchTarget(source), BackupMedium(drive), notifier=notifier)
    dog.run()

    notifier.send.assert_not_called()
    assert notifier.notify.call_count == 2
    assert (drive / source.name).read_bytes() == source.read_bytes()
    assert dog.state == daemon.State.WAITING_FOR_CHANGE


def test_history_enabled_uses_git(
    source: Path, drive: Path, notifier: MagicMock, mocker: MagicMock
) -> None:
    """Verifies that a remote turns on commit and push with the configured message."""
    _changes(mocker, 1)
    mocker.patch("pbr_watch.mounts.get_mountpoints", return_value=[str(drive)])
    repo = mocker.patch("pbr_watch.backup.GitRepo").return_value
    repo.relative_path.return_value = source.name
    repo.has_staged_changes.return_value = True

    conf = Config()
    conf.git.commit_message = "KeePass update"
    dog = daemon.Watchdog(
        WatchTarget(source),
        BackupMedium(drive, "origin"),
        config=conf,
        notifier=notifier,
    )
    dog.run()

    repo.commit.assert_called_once_with("KeePass update")
    repo.push.assert_called_once_with("origin")


def test_backup_error_terminates_by_default(
    source: Path, drive: Path, notifier: MagicMock, mocker: MagicMock
) -> None:
    """Verifies that a failed backup escapes the loop."""
    watch = _changes(mocker, 2)
    mocker.patch("pbr_watch.mounts.get_mountpoints", return_value=[str(drive)])
    mocker.patch(
        "pbr_watch.daemon.run_backup", side_effect=CopyError("disk full")
    )

    dog = daemon.Watchdog(WatchTarget(source), BackupMedium(drive), notifier=notifier)
    with pytest.raises(CopyError, match="disk full"):
        dog.run()

    assert watch.call_count == 1
    assert dog.state == daemon.State.BACKING_UP


def test_backup_error_rearms_when_configured(
    source: Path, drive: Path, notifier: MagicMock, mocker: MagicMock
) -> None:
    """Verifies that `exit_on_backup_error = false` reports and keeps watching."""
    watch = _changes(mocker, 2)
    mocker.patch("pbr_watch.mounts.get_mountpoints", return_value=[str(drive)])
    mocker.patch(
        "pbr_watch.daemon.run_backup", side_effect=CopyError("disk full")
    )

    conf = Config()
    conf.daemon.exit_on_backup_error = False
    dog = daemon.Watchdog(
        WatchTarget(source), BackupMedium(drive), config=conf, notifier=notifier
    )
    dog.run()

    assert watch.call_count == 3
    notifier.notify.assert_any_call(ERROR_TITLE, "disk full")


def test_enumeration_error_is_fatal(
    source: Path, drive: Path, notifier: MagicMock, mocker: MagicMock
) -> None:
    """Verifies that a broken mount table is never treated as 'unmounted'."""
    _changes(mocker, 1)
    mocker.patch(
        "pbr_watch.mounts.get_mountpoints",
        side_effect=EnumerationError("mtab unreadable"),
    )

    dog = daemon.Watchdog(WatchTarget(source), BackupMedium(drive), notifier=notifier)
    with pytest.raises(EnumerationError):
        dog.run()
    notifier.send.assert_not_called()


def test_watch_error_is_fatal(
    source: Path, drive: Path, notifier: MagicMock, mocker: MagicMock
) -> None:
    """Verifies that watch failures propagate out of the loop."""
    mocker.patch(
        "pbr_watch.daemon.watcher.wait_for_change",
        side_effect=WatchError("Could not watch"),
    )

    dog = daemon.Watchdog(WatchTarget(source), BackupMedium(drive), notifier=notifier)
    with pytest.raises(WatchError):
        dog.run()


def test_cancel_during_nag_skips_backup(
    source: Path, drive: Path, notifier: MagicMock, mocker: MagicMock
) -> None:
    """Verifies that a shutdown while nagging does not back up."""
    _changes(mocker, 1)
    mocker.patch("pbr_watch.mounts.get_mountpoints", return_value=["/"])
    mock_backup = mocker.patch("pbr_watch.daemon.run_backup")
    cancel = threading.Event()

    dog = daemon.Watchdog(
        WatchTarget(source),
        BackupMedium(drive),
        notifier=notifier,
        cancel=cancel,
        sleep=lambda _seconds: cancel.set(),
    )
    dog.run()

    notifier.send.assert_called_once()
    mock_backup.assert_not_called()
    assert dog.state == daemon.State.NAGGING


def test_report_fatal_notifies(
    notifier: MagicMock, caplog: pytest.LogCaptureFixture
) -> None:
    """Verifies that fatal errors reach both the desktop and the log."""
    daemon.report_fatal(notifier, WatchError("watch died"))

    notifier.notify.assert_called_once_with(ERROR_TITLE, "watch died")
    assert "CRITICAL: watch died" in caplog.text


def test_signal_handlers_set_cancel(mocker: MagicMock) -> None:
    """Verifies that SIGTERM and SIGINT request a clean shutdown."""
    mock_signal = mocker.patch("pbr_watch.daemon.signal.signal")
    cancel = threading.Event()

    daemon.install_signal_handlers(cancel)

    registered = {c.args[0]: c.args[1] for c in mock_signal.call_args_list}
    assert set(registered) == {signal.SIGTERM, signal.SIGINT}
    registered[signal.SIGTERM](signal.SIGTERM, None)
    assert cancel.is_set()


def test_setup_logging_writes_rotating_file(
    tmp_path: Path, mocker: MagicMock
) -> None:
    """Verifies that daemon mode logs to the rotating log file."""
    log_file = tmp_path / "state" / "daemon.log"
    mocker.patch("pbr_watch.daemon.LOG_FILE", log_file)
    logger = logging.getLogger("pbr-watch")
    before = list(logger.handlers)

    try:
        daemon.setup_logging(verbose=False, max_log_size=1024)
        added = [h for h in logger.handlers if h not in before]
        assert len(added) == 2
        logger.info("hello from the test")
        for handler in added:
            handler.flush()
        assert "hello from the test" in log_file.read_text()
    finally:
        for handler in logger.handlers[:]:
            if handler not in before:
                logger.removeHandler(handler)
                handler.close()
