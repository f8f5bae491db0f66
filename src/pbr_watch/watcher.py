"""Blocking wait for a change to the watched database file."""

import logging
import os
import queue
import threading
import time
from pathlib import Path

from watchdog.events import (
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from .constants import APP_NAME, DEFAULT_SETTLE_TIMEOUT, DEFAULT_WATCH_POLL
from .errors import WatchError

logger = logging.getLogger(APP_NAME)

REMOVED = "removed"
WRITTEN = "written"


def _same_path(raw: str | bytes, target: str) -> bool:
    return os.path.abspath(os.fsdecode(raw)) == target


def classify(event: FileSystemEvent, target: str) -> str | None:
    """Maps a watchdog event to a change kind for `target`.

    Args:
        event (FileSystemEvent): The raw event.
        target (str): Absolute path of the watched file.

    Returns:
        str | None: REMOVED, WRITTEN, or None for events that do not count.
    """
    if isinstance(event, FileMovedEvent):
        # Atomic saves move a temp file over the target, or move the target away.
        if _same_path(event.src_path, target) or _same_path(event.dest_path, target):
            return REMOVED
        return None
    if not _same_path(event.src_path, target):
        return None
    if isinstance(event, FileDeletedEvent):
        return REMOVED
    if isinstance(event, FileModifiedEvent):
        return WRITTEN
    return None


class ChangeHandler(FileSystemEventHandler):
    """Forwards qualifying events for one file into a queue.

    Runs on the observer thread; the waiting thread consumes the queue.
    """

    def __init__(self, target: str, changes: queue.Queue):
        super().__init__()
        self.target = target
        self.changes = changes

    def on_any_event(self, event: FileSystemEvent) -> None:
        kind = classify(event, self.target)
        if kind is None:
            logger.debug(f"Ignoring {event.event_type} event on {event.src_path}")
            return
        self.changes.put(kind)


def wait_for_recreation(
    target: str,
    timeout: float = DEFAULT_SETTLE_TIMEOUT,
    cancel: threading.Event | None = None,
    step: float = 0.05,
) -> bool:
    """Waits for a removed file to be moved back into place.

    Returns:
        bool: True once `target` exists again, False if cancelled.

    Raises:
        WatchError: If the file is still missing after `timeout` seconds.
    """
    deadline = time.monotonic() + timeout
    while not os.path.exists(target):
        if cancel is not None and cancel.is_set():
            return False
        if time.monotonic() >= deadline:
            raise WatchError(f"{target} was removed and not recreated")
        time.sleep(step)
    return True


def wait_for_change(
    path: Path,
    cancel: threading.Event | None = None,
    poll_interval: float = DEFAULT_WATCH_POLL,
    settle_timeout: float = DEFAULT_SETTLE_TIMEOUT,
) -> bool:
    """Blocks until `path` is deleted, replaced, or written to.

    Password managers commonly save by deleting the database and moving a new
    file into place, so removal counts as a change just like an in-place write.
    After a removal the call also waits for the file to reappear, so the
    delete and the recreate surface as one change. The watch is registered on
    the file itself and released before returning.

    Args:
        path (Path): The watched file.
        cancel (threading.Event | None): Stops waiting when set.
        poll_interval (float): Seconds between liveness checks of the watch.
        settle_timeout (float): Seconds a removed file may stay missing.

    Returns:
        bool: True when a change was detected, False if cancelled.

    Raises:
        WatchError: If the watch cannot be established, stops delivering, or
            the file is removed for good.
    """
    target = os.path.abspath(path)
    changes: queue.Queue = queue.Queue()
    observer = Observer()
    observer.schedule(ChangeHandler(target, changes), target, recursive=False)

    try:
        observer.start()
    except OSError as e:
        raise WatchError(f"Could not watch {target}: {e}") from e

    try:
        while True:
            if cancel is not None and cancel.is_set():
                return False
            try:
                kind = changes.get(timeout=poll_interval)
            except queue.Empty:
                if not observer.is_alive():
                    raise WatchError(f"Watch on {target} stopped unexpectedly")
                continue
            logger.info(f"Write to database has been detected ({kind})")
            break
    finally:
        observer.stop()
        observer.join()

    if kind == REMOVED:
        return wait_for_recreation(target, settle_timeout, cancel)
    return True
