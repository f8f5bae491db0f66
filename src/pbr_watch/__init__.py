"""pbr-watch: a watchdog that backs up a password database.

This package watches a password database file, waits for the backup drive to
be mounted (reminding the user with a desktop notification until it is),
copies the database onto the drive and optionally records it in git history.
"""

from . import (
    backup,
    cli,
    config,
    constants,
    daemon,
    errors,
    git_wrapper,
    mounts,
    nag,
    system,
    watcher,
)

__all__ = [
    "backup",
    "cli",
    "config",
    "constants",
    "daemon",
    "errors",
    "git_wrapper",
    "mounts",
    "nag",
    "system",
    "watcher",
]
