import logging
import re
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from .constants import (
    APP_NAME,
    COMMIT_MESSAGE,
    CONFIG_FILE,
    DEFAULT_NAG_EXPIRE,
    DEFAULT_NAG_INTERVAL,
    DEFAULT_WATCH_POLL,
)

logger = logging.getLogger(APP_NAME)


def parse_size(value: int | str) -> int:
    """Converts human-readable size strings (e.g., '100MB') to bytes."""
    if isinstance(value, int):
        return value
    match = re.match(r"^(\d+(?:\.\d+)?)\s*([kmg]b?)$", str(value).strip().lower())
    if not match:
        raise ValueError(f"Invalid size format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {
        "k": 1024,
        "kb": 1024,
        "m": 1024**2,
        "mb": 1024**2,
        "g": 1024**3,
        "gb": 1024**3,
    }
    return int(num * multiplier[unit])


def parse_duration(value: int | float | str) -> float:
    """Converts human-readable durations (e.g., '500ms', '4s', '1min') to seconds."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    match = re.match(
        r"^(\d+(?:\.\d+)?)\s*(ms|s|sec|m|min|h|hr)s?$", str(value).strip().lower()
    )
    if not match:
        raise ValueError(f"Invalid duration format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {
        "ms": 0.001,
        "s": 1,
        "sec": 1,
        "m": 60,
        "min": 60,
        "h": 3600,
        "hr": 3600,
    }
    return num * multiplier[unit]


@dataclass
class NagConfig:
    """Mount reminder settings.

    Attributes:
        interval (float): Seconds between re-displays of the reminder.
        expire_timeout (float): Seconds before the notification server drops
            the reminder. Must be larger than `interval`.
    """

    interval: float = DEFAULT_NAG_INTERVAL
    expire_timeout: float = DEFAULT_NAG_EXPIRE


@dataclass
class GitConfig:
    """History tracking settings.

    Attributes:
        remote (str | None): Remote to push to. None disables history tracking
            unless a remote is given on the command line.
        commit_message (str): Message used for every backup commit.
    """

    remote: str | None = None
    commit_message: str = COMMIT_MESSAGE


@dataclass
class LimitsConfig:
    """Resource limitation settings.

    Attributes:
        max_log_size (int): Max bytes for log files before rotation.
    """

    max_log_size: int = 5 * 1024 * 1024


@dataclass
class DaemonConfig:
    """Daemon operational settings.

    Attributes:
        exit_on_backup_error (bool): Terminate after a failed backup instead of
            re-arming the watch.
        watch_poll_interval (float): Seconds between liveness checks of the
            file watch thread.
    """

    exit_on_backup_error: bool = True
    watch_poll_interval: float = DEFAULT_WATCH_POLL


@dataclass
class Config:
    """Global configuration aggregator.

    Attributes:
        nag (NagConfig): Reminder settings.
        git (GitConfig): History tracking settings.
        limits (LimitsConfig): Resource limits.
        daemon (DaemonConfig): Daemon behavior settings.
    """

    nag: NagConfig = field(default_factory=NagConfig)
    git: GitConfig = field(default_factory=GitConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    daemon: DaemonConfig = field(default_factory=DaemonConfig)

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Loads configuration from defaults and the TOML config file.

        Args:
            path (Path | None): Config file to read. Defaults to CONFIG_FILE.

        Returns:
            Config: The fully merged configuration object.
        """
        instance = cls()
        config_path = path or CONFIG_FILE
        if config_path.exists():
            instance._merge_from_file(config_path)
        return instance

    def _merge_from_file(self, path: Path) -> None:
        """Parses a TOML file and merges it into the current instance.

        Args:
            path (Path): Path to the TOML file.
        """
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)

            if not data:
                return

            unknown = set(data.keys()) - {"nag", "git", "limits", "daemon"}
            if unknown:
                logger.warning(
                    f"Unknown config sections in {path}: {', '.join(sorted(unknown))}. "
                    "Ignoring."
                )

            if "nag" in data:
                nag = self._update_dataclass("nag", self.nag, data["nag"])
                if 0 < nag.interval < nag.expire_timeout:
                    self.nag = nag
                else:
                    logger.warning(
                        "Config error in [nag]: interval must be positive and "
                        "shorter than expire_timeout. Falling back to defaults."
                    )
            if "git" in data:
                self.git = self._update_dataclass("git", self.git, data["git"])
            if "limits" in data:
                self.limits = self._update_dataclass(
                    "limits", self.limits, data["limits"]
                )
            if "daemon" in data:
                self.daemon = self._update_dataclass(
                    "daemon", self.daemon, data["daemon"]
                )

        except tomllib.TOMLDecodeError as e:
            logger.error(f"Config syntax error in {path}: {e}")
        except OSError as e:
            logger.warning(f"Failed to load config from {path}: {e}")

    @staticmethod
    def _update_dataclass(section_name: str, instance: Any, updates: dict) -> Any:
        """Updates a dataclass, warning on invalid keys and parsing human-readable formats."""
        valid_keys = instance.__dataclass_fields__.keys()
        filtered_updates = {}

        invalid_keys = set(updates.keys()) - set(valid_keys)
        if invalid_keys:
            logger.warning(
                f"Unknown config keys in [{section_name}]: "
                f"{', '.join(sorted(invalid_keys))}. Ignoring."
            )

        for k, v in updates.items():
            if k not in valid_keys:
                continue

            try:
                if k == "max_log_size":
                    filtered_updates[k] = parse_size(v)
                elif k in ["interval", "expire_timeout", "watch_poll_interval"]:
                    filtered_updates[k] = parse_duration(v)
                elif k == "exit_on_backup_error":
                    if not isinstance(v, bool):
                        raise ValueError(f"Expected true or false, got '{v}'")
                    filtered_updates[k] = v
                else:
                    if not isinstance(v, str) or not v.strip():
                        raise ValueError(f"Expected a non-empty string, got '{v}'")
                    filtered_updates[k] = v
            except ValueError as e:
                logger.warning(
                    f"Config error in [{section_name}].{k}: {e}. Falling back to default."
                )

        return replace(instance, **filtered_updates)
