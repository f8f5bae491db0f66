import os
from pathlib import Path

"""Global constants and path definitions for pbr-watch.

This module defines the filesystem layout (adhering to XDG standards where
applicable), application identifiers, and the default values shared by the
watchdog components.
"""

# --- Identity ---
APP_NAME = "pbr-watch"
"""str: The human-readable application name (also the logger name)."""

NOTIFY_APP_NAME = "pbr"
"""str: The application name shown by the desktop notification server."""

# --- Paths ---
_XDG_STATE = os.environ.get("XDG_STATE_HOME")
_BASE_STATE = Path(_XDG_STATE) if _XDG_STATE else Path.home() / ".local/state"

STATE_DIR = _BASE_STATE / "pbr-watch"
"""Path: The directory for runtime state data (logs)."""

LOG_FILE = STATE_DIR / "daemon.log"
"""Path: The file path for the daemon process logs."""

_XDG_CONFIG = os.environ.get("XDG_CONFIG_HOME")
_BASE_CONFIG = Path(_XDG_CONFIG) if _XDG_CONFIG else Path.home() / ".config"

CONFIG_DIR: Path = _BASE_CONFIG / "pbr-watch"
"""Path: The directory for user configuration files."""

CONFIG_FILE: Path = CONFIG_DIR / "config.toml"
"""Path: The main configuration file path."""

# --- Backup ---
COMMIT_MESSAGE = "Update to db"
"""str: The fixed commit message recorded for every backup."""

# --- Notifications ---
NAG_TITLE = "NOT A VALID MOUNTPOINT"
NAG_BODY = (
    "Please either change the mountpoint or plug in and mount the backup drive"
)

BACKUP_TITLE = "Backing up the db"
BACKUP_BODY = "Copying to backup drive."
BACKUP_BODY_GIT = "Copying to backup drive.\nPushing changes to remote."

ERROR_TITLE = "pbr encountered an error"

DEFAULT_NAG_INTERVAL = 4.0
"""float: Seconds between re-displays of the nag notification."""

DEFAULT_NAG_EXPIRE = 5.0
"""float: Seconds before the notification server expires a nag notification.
Must stay above DEFAULT_NAG_INTERVAL."""

DEFAULT_WATCH_POLL = 0.5
"""float: Seconds between liveness checks of the file watch thread."""

DEFAULT_SETTLE_TIMEOUT = 5.0
"""float: Seconds to wait for a deleted database to be recreated by an
atomic save before the watch is considered broken."""
