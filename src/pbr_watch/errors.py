"""Exception hierarchy for pbr-watch.

Errors are split in two families. `ArgumentError` covers malformed
invocations and is raised before any resource is acquired. Everything that
goes wrong once the watchdog is running is an `OperationalError`; those are
reported through a desktop notification and end the process.
"""


class PbrError(Exception):
    """Base class for all pbr-watch errors."""


class ArgumentError(PbrError):
    """The command line is malformed or names unusable paths."""


class OperationalError(PbrError):
    """A failure encountered after startup."""


class WatchError(OperationalError):
    """The filesystem watch could not be established or stopped delivering."""


class EnumerationError(OperationalError):
    """The OS refused to list the mounted filesystems."""


class NotificationError(OperationalError):
    """The desktop notification collaborator failed."""


class CopyError(OperationalError):
    """Copying the database onto the backup medium failed."""


class VersionControlError(OperationalError):
    """A git step of the backup failed.

    Attributes:
        stage (str): The failing step: 'open', 'stage', 'commit' or 'push'.
    """

    def __init__(self, stage: str, message: str):
        super().__init__(f"Failed to {stage}: {message}")
        self.stage = stage
