import itertools
import logging
import subprocess
import sys

from .constants import APP_NAME, NOTIFY_APP_NAME
from .errors import NotificationError

logger = logging.getLogger(APP_NAME)


def _to_millis(timeout: float) -> str:
    return str(max(0, int(timeout * 1000)))


class Notifier:
    """Base class defining the desktop notification contract.

    The base implementation has no desktop to talk to: it logs the message and
    hands out increasing ids so the nag loop behaves the same everywhere.
    """

    def __init__(self) -> None:
        self._ids = itertools.count(1)

    def send(self, title: str, message: str, timeout: float) -> int:
        """Shows a new notification.

        Args:
            title (str): The notification title.
            message (str): The notification body text.
            timeout (float): Seconds until the server expires the notification.
                0 asks the server to keep it until dismissed.

        Returns:
            int: A handle that can be passed to `replace`.

        Raises:
            NotificationError: If the notification could not be shown.
        """
        logger.info(f"NOTIFY: {title}: {message}")
        return next(self._ids)

    def replace(self, handle: int, title: str, message: str, timeout: float) -> None:
        """Re-displays the notification identified by `handle` in place.

        Raises:
            NotificationError: If the notification could not be shown.
        """
        logger.debug(f"NOTIFY (replace {handle}): {title}: {message}")

    def notify(self, title: str, message: str) -> None:
        """Fire-and-forget notification. Failures are logged, never raised."""
        try:
            self.send(title, message, 0)
        except NotificationError as e:
            logger.warning(f"Could not show notification '{title}': {e}")


class MacOSNotifier(Notifier):
    """Notifier implementation for macOS.

    AppleScript notifications have no replace mode, so `replace` shows the
    message again under the same handle.
    """

    def _display(self, title: str, message: str) -> None:
        # Sanitize quotes to prevent AppleScript syntax errors.
        clean_msg = message.replace('"', "'")
        clean_title = title.replace('"', "'")
        script = f'display notification "{clean_msg}" with title "{clean_title}"'
        try:
            subprocess.run(
                ["osascript", "-e", script],
                stderr=subprocess.DEVNULL,
                check=True,
            )
        except FileNotFoundError as e:
            raise NotificationError("osascript is not available") from e
        except subprocess.CalledProcessError as e:
            raise NotificationError(f"osascript failed: {e}") from e

    def send(self, title: str, message: str, timeout: float) -> int:
        self._display(title, message)
        return next(self._ids)

    def replace(self, handle: int, title: str, message: str, timeout: float) -> None:
        self._display(title, message)


class LinuxNotifier(Notifier):
    """Notifier implementation for Linux using `notify-send`."""

    def _run(self, args: list[str]) -> str:
        try:
            res = subprocess.run(
                ["notify-send", "-a", NOTIFY_APP_NAME, *args],
                capture_output=True,
                text=True,
                check=True,
            )
        except FileNotFoundError as e:
            raise NotificationError("notify-send is not installed") from e
        except subprocess.CalledProcessError as e:
            raise NotificationError(
                f"notify-send failed: {(e.stderr or '').strip() or e}"
            ) from e
        return res.stdout.strip()

    def send(self, title: str, message: str, timeout: float) -> int:
        """Sends a notification and reads its id back (`notify-send -p`)."""
        out = self._run(["-p", "-t", _to_millis(timeout), "--", title, message])
        try:
            return int(out)
        except ValueError as e:
            raise NotificationError(
                f"notify-send returned no notification id: {out!r}"
            ) from e

    def replace(self, handle: int, title: str, message: str, timeout: float) -> None:
        """Updates an existing notification (`notify-send -r`)."""
        self._run(["-r", str(handle), "-t", _to_millis(timeout), "--", title, message])


def get_notifier() -> Notifier:
    """Factory function to retrieve the platform-specific notifier.

    Returns:
        Notifier: An instance of MacOSNotifier, LinuxNotifier, or the base
        Notifier depending on the operating system.
    """
    if sys.platform == "darwin":
        return MacOSNotifier()
    elif sys.platform.startswith("linux"):
        return LinuxNotifier()
    else:
        return Notifier()
