"""Repeating desktop reminders that last until a condition is met.

Notification servers expire messages after a timeout, so a single reminder
would vanish while the condition is still unmet. A `NagSession` keeps one
notification alive by re-displaying it in place more often than it expires.
"""

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from .constants import APP_NAME, DEFAULT_NAG_EXPIRE, DEFAULT_NAG_INTERVAL
from .system import Notifier

logger = logging.getLogger(APP_NAME)


@dataclass(frozen=True)
class NagPolicy:
    """Timing of a nag session.

    Attributes:
        interval (float): Seconds between predicate checks and re-displays.
        expire_timeout (float): Seconds the notification server keeps a
            displayed reminder.

    Raises:
        ValueError: If `interval` is not positive or not shorter than
            `expire_timeout`.
    """

    interval: float = DEFAULT_NAG_INTERVAL
    expire_timeout: float = DEFAULT_NAG_EXPIRE

    def __post_init__(self) -> None:
        if self.interval <= 0:
            raise ValueError(f"Nag interval must be positive, got {self.interval}")
        if self.interval >= self.expire_timeout:
            raise ValueError(
                f"Nag interval ({self.interval}s) must be shorter than the "
                f"notification expiry ({self.expire_timeout}s)"
            )


class NagSession:
    """One reminder lifecycle, owning a single notification handle.

    Args:
        notifier (Notifier): The notification collaborator.
        title (str): The reminder title.
        message (str): The reminder body.
        policy (NagPolicy): Display timing.
        sleep (Callable[[float], None] | None): Wait function. Defaults to
            `time.sleep`, or to `cancel.wait` when a cancel event is given.
        cancel (threading.Event | None): Ends the session early when set.
    """

    def __init__(
        self,
        notifier: Notifier,
        title: str,
        message: str,
        policy: NagPolicy | None = None,
        sleep: Callable[[float], None] | None = None,
        cancel: threading.Event | None = None,
    ):
        self.notifier = notifier
        self.title = title
        self.message = message
        self.policy = policy or NagPolicy()
        self.cancel = cancel
        self._sleep = sleep
        self.handle: int | None = None

    def _wait(self) -> bool:
        """Waits one interval. Returns False if the session was cancelled."""
        if self._sleep is not None:
            self._sleep(self.policy.interval)
        elif self.cancel is not None:
            self.cancel.wait(self.policy.interval)
        else:
            time.sleep(self.policy.interval)
        return not (self.cancel is not None and self.cancel.is_set())

    def run(self, predicate: Callable[[], bool]) -> bool:
        """Shows the reminder until `predicate()` returns True.

        Args:
            predicate (Callable[[], bool]): The condition to wait for.

        Returns:
            bool: True once the predicate holds, False if cancelled first.

        Raises:
            NotificationError: If the reminder cannot be shown.
        """
        # Do not harass if already true.
        if predicate():
            return True

        timeout = self.policy.expire_timeout
        self.handle = self.notifier.send(self.title, self.message, timeout)
        logger.info(f"Waiting on condition: {self.title}")

        while self._wait():
            if predicate():
                logger.info(f"Condition met: {self.title}")
                return True
            self.notifier.replace(self.handle, self.title, self.message, timeout)

        logger.info(f"Reminder cancelled: {self.title}")
        return False


def nag_until(
    notifier: Notifier,
    title: str,
    message: str,
    predicate: Callable[[], bool],
    policy: NagPolicy | None = None,
    sleep: Callable[[float], None] | None = None,
    cancel: threading.Event | None = None,
) -> bool:
    """Runs a fresh `NagSession` until `predicate()` is True.

    Returns:
        bool: True once the predicate holds, False if cancelled first.
    """
    session = NagSession(notifier, title, message, policy, sleep=sleep, cancel=cancel)
    return session.run(predicate)
