"""Copying the database onto the backup medium and recording it in git."""

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

from .constants import APP_NAME, COMMIT_MESSAGE
from .errors import CopyError, VersionControlError
from .git_wrapper import GitRepo

logger = logging.getLogger(APP_NAME)


@dataclass(frozen=True)
class WatchTarget:
    """The database file being watched.

    Attributes:
        path (Path): Absolute path to the database file.
    """

    path: Path


@dataclass(frozen=True)
class BackupMedium:
    """Where backups go.

    Attributes:
        mountpoint (Path): Mount point of the backup drive.
        remote (str | None): Git remote to push history to. None disables
            history tracking.
    """

    mountpoint: Path
    remote: str | None = None

    @property
    def tracks_history(self) -> bool:
        return self.remote is not None


@dataclass
class BackupResult:
    """Outcome of a successful backup.

    Attributes:
        destination (Path): The file written on the backup medium.
        committed (bool): Whether a history commit was created.
        pushed (bool): Whether the branch was pushed to the remote.
    """

    destination: Path
    committed: bool = False
    pushed: bool = False


def copy_to_medium(source: Path, mountpoint: Path) -> Path:
    """Copies `source` byte-for-byte to `<mountpoint>/<source name>`.

    An existing destination is truncated first. A failed copy may leave a
    partial destination behind.

    Returns:
        Path: The destination file.

    Raises:
        CopyError: On any I/O failure.
    """
    destination = mountpoint / source.name
    try:
        with open(source, "rb") as src, open(destination, "wb") as dst:
            shutil.copyfileobj(src, dst)
    except OSError as e:
        raise CopyError(f"Could not copy {source} to {destination}: {e}") from e
    logger.info(f"COPIED: {source} -> {destination}")
    return destination


def commit_to_history(source: Path, remote: str, message: str = COMMIT_MESSAGE) -> bool:
    """Stages, commits and pushes `source` in the repository holding it.

    The repository must be rooted at the directory containing `source`. The
    push runs even when there is nothing new to commit, so a commit left
    behind by an earlier failed push reaches the remote.

    Args:
        source (Path): The database file.
        remote (str): The remote to push to.
        message (str): The commit message.

    Returns:
        bool: True if a new commit was created, False if the file had no
        changes to record. Either way the branch was pushed.

    Raises:
        VersionControlError: Naming the step (open, stage, commit, push) that
            failed.
    """
    repo_path = source.parent
    try:
        repo = GitRepo(repo_path)
    except ValueError as e:
        raise VersionControlError("open", f"repo at {repo_path}: {e}") from e

    rel_path = repo.relative_path(source)
    try:
        repo.add(rel_path)
        changed = repo.has_staged_changes(rel_path)
    except RuntimeError as e:
        raise VersionControlError("stage", f"{source}: {e}") from e

    if changed:
        try:
            repo.commit(message)
        except RuntimeError as e:
            raise VersionControlError("commit", str(e)) from e
    else:
        logger.info(f"UNCHANGED: {rel_path} matches the last commit. Skipping commit.")

    try:
        repo.push(remote)
    except RuntimeError as e:
        raise VersionControlError("push", f"to {remote}: {e}") from e

    logger.info(f"SUCCESS: {rel_path} pushed to {remote}.")
    return changed


def run_backup(
    target: WatchTarget, medium: BackupMedium, message: str = COMMIT_MESSAGE
) -> BackupResult:
    """Backs the database up onto the medium and, if enabled, into git history.

    Each step only runs if the previous one succeeded. A history failure does
    not undo the copy: the medium holding the latest bytes is a valid outcome.

    Raises:
        CopyError: If the copy failed. No git step was attempted.
        VersionControlError: If the copy succeeded but a git step failed.
    """
    destination = copy_to_medium(target.path, medium.mountpoint)
    result = BackupResult(destination)

    if medium.remote is not None:
        result.committed = commit_to_history(target.path, medium.remote, message)
        result.pushed = True

    return result
