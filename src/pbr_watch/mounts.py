"""Detection of the backup medium's mount state."""

import logging
import os
from pathlib import Path

import psutil

from .constants import APP_NAME
from .errors import EnumerationError

logger = logging.getLogger(APP_NAME)


def get_mountpoints() -> list[str]:
    """Lists the mount points of the currently mounted physical filesystems.

    The OS is queried on every call so hot-plugged drives show up immediately.

    Returns:
        list[str]: Mount point paths as reported by the OS.

    Raises:
        EnumerationError: If the mount table cannot be read.
    """
    try:
        partitions = psutil.disk_partitions(all=False)
    except (OSError, psutil.Error) as e:
        raise EnumerationError(f"Could not list mounted filesystems: {e}") from e
    return [p.mountpoint for p in partitions]


def _canonical(path: str | os.PathLike) -> Path:
    """Absolute, symlink-free form of an existing path."""
    return Path(os.path.abspath(path)).resolve(strict=True)


def is_mounted(candidate: str | os.PathLike, mountpoints: list[str] | None = None) -> bool:
    """Determines whether `candidate` is the mount point of a mounted filesystem.

    Both sides are compared in canonical form, so a symlink pointing at a mount
    point counts as that mount point. A subdirectory of a mount point does not.

    Args:
        candidate (str | os.PathLike): The path expected to be a mount point.
        mountpoints (list[str] | None): Mount points to compare against.
            Defaults to a fresh `get_mountpoints()` query.

    Returns:
        bool: True on an exact match. False when there is no match or when
        `candidate` does not exist.

    Raises:
        EnumerationError: If the mount table cannot be read or the candidate
            cannot be inspected.
    """
    try:
        target = _canonical(candidate)
    except (FileNotFoundError, NotADirectoryError):
        return False
    except (OSError, RuntimeError) as e:
        raise EnumerationError(f"Could not resolve {candidate}: {e}") from e

    if mountpoints is None:
        mountpoints = get_mountpoints()

    for mount in mountpoints:
        try:
            if _canonical(mount) == target:
                return True
        except (OSError, RuntimeError) as e:
            # Stale or inaccessible mount table entry.
            logger.debug(f"Skipping mount point {mount}: {e}")
            continue

    return False
