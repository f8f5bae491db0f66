import logging
import os
import subprocess
from pathlib import Path

from .constants import APP_NAME

logger = logging.getLogger(APP_NAME)


class GitRepo:
    """A wrapper around the Git command-line interface for a specific repository.

    This class provides the handful of operations the backup needs (stage one
    file, commit, push) using `subprocess`, abstracting away the command
    construction and output handling.

    Attributes:
        path (Path): The file system path to the repository root.
    """

    def __init__(self, path: Path):
        """Initializes the GitRepo instance.

        Args:
            path (Path): The path to the repository root directory.

        Raises:
            ValueError: If the specified path does not contain a .git directory.
        """
        self.path = path
        if not (self.path / ".git").exists():
            raise ValueError(f"Not a git repository: {self.path}")

    def _run(self, args: list[str], env: dict | None = None) -> str:
        """Executes a Git command within the repository context.

        Args:
            args (list[str]): A list of arguments to pass to the git command.
            env (Optional[dict], optional): Environment variables to pass to the
                                            subprocess. Defaults to None.

        Returns:
            str: The stripped stdout of the command.

        Raises:
            RuntimeError: If the git command returns a non-zero exit code.
        """
        try:
            res = subprocess.run(
                ["git", *args],
                cwd=self.path,
                capture_output=True,
                text=True,
                check=True,
                env=env,
            )
            return res.stdout.strip()
        except subprocess.CalledProcessError as e:
            raise RuntimeError(f"Git error: {(e.stderr or '').strip() or e}") from e
        except FileNotFoundError as e:
            raise RuntimeError("Git error: git executable not found") from e

    def relative_path(self, file: Path) -> str:
        """Expresses `file` relative to the repository root, with '/' separators."""
        return Path(os.path.relpath(file, self.path)).as_posix()

    def add(self, path: str) -> None:
        """Stages a single path.

        Args:
            path (str): Path relative to the repository root.
        """
        self._run(["add", "--", path])

    def has_staged_changes(self, path: str | None = None) -> bool:
        """Reports whether the index differs from HEAD.

        Args:
            path (str | None): Limit the check to one path. Defaults to None.

        Returns:
            bool: True if there is something to commit.

        Raises:
            RuntimeError: If git could not compare the index.
        """
        cmd = ["diff", "--cached", "--name-only"]
        if path:
            cmd.extend(["--", path])
        return bool(self._run(cmd))

    def commit(self, message: str) -> None:
        """Creates a new commit with the provided message.

        Args:
            message (str): The commit message.
        """
        self._run(["commit", "-m", message])

    def push(self, remote: str) -> None:
        """Pushes the current branch to `remote`.

        SSH runs in batch mode so a background process never waits on a
        password prompt.

        Args:
            remote (str): The name of the remote (e.g., 'origin').
        """
        env = os.environ.copy()
        env["GIT_SSH_COMMAND"] = "ssh -o BatchMode=yes"
        env["GIT_TERMINAL_PROMPT"] = "0"
        self._run(["push", remote, "HEAD"], env=env)
