"""
Git client implementation for smartcommit.

This module wraps the Git operations required by the commit assistant:
opening a repository, listing pending changes, reading diffs, staging,
committing and pushing. All subprocess calls go through
:meth:`GitClient._run` so that unit tests can mock them easily.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from smartcommit.diff.context_extractor import is_binary_path


logger = logging.getLogger(__name__)
# Attach a null handler to avoid logging errors when the root logger is not
# configured. Logs will propagate to the root when configured by the CLI.
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


STATUS_NAMES = {
    "A": "Added",
    "M": "Modified",
    "D": "Deleted",
    "R": "Renamed",
    "C": "Copied",
    "U": "Unmerged",
    "?": "Untracked",
    " ": "Unchanged",
}


@dataclass(frozen=True)
class FileChange:
    """Snapshot of a single pending change, as reported by ``git status``.

    ``index_status`` and ``worktree_status`` are the two porcelain status
    columns (``X`` and ``Y``). For renames ``path`` is the new location and
    ``orig_path`` the old one.
    """

    path: str
    index_status: str = " "
    worktree_status: str = " "
    size: int = 0
    is_binary: bool = False
    orig_path: Optional[str] = None

    @property
    def status(self) -> str:
        """Primary single-letter status (index column wins)."""
        if self.index_status not in (" ", "?"):
            return self.index_status
        if self.worktree_status == "?":
            return "?"
        return self.worktree_status.strip() or "M"

    @property
    def is_new(self) -> bool:
        return self.worktree_status == "?" or self.index_status == "A"

    @property
    def is_deleted(self) -> bool:
        return "D" in (self.index_status, self.worktree_status)

    @property
    def status_description(self) -> str:
        index_name = STATUS_NAMES.get(self.index_status, "Unknown")
        worktree_name = STATUS_NAMES.get(self.worktree_status, "Unknown")
        if self.index_status == "?" and self.worktree_status == "?":
            return "Untracked"
        if self.index_status != " " and self.worktree_status != " ":
            return f"{index_name} (staged), {worktree_name} (unstaged)"
        if self.index_status != " ":
            return f"{index_name} (staged)"
        if self.worktree_status != " ":
            return f"{worktree_name} (unstaged)"
        return "No changes"


class GitError(Exception):
    """Raised when a Git command fails."""

    pass


class RepositoryError(GitError):
    """Raised when a path is missing or is not a Git repository."""

    pass


class CommitError(GitError):
    """Raised when creating a commit or pushing it fails."""

    pass


class GitClient:
    """Client for interacting with a Git repository."""

    def __init__(self, repo_root: Path) -> None:
        self.repo_root = repo_root

    # ------------------------------------------------------------------
    # Static helpers
    # ------------------------------------------------------------------
    @staticmethod
    def is_repo(path: Path) -> bool:
        """Return True if the given path is the root of a Git repository."""
        return (path / ".git").exists()

    @staticmethod
    def find_repo_root(start: Path) -> Optional[Path]:
        """Find the root of the Git repository starting from ``start``.

        Walk upwards until a ``.git`` directory is found or the filesystem
        root is reached.
        """
        current = start.resolve()
        while True:
            if (current / ".git").exists():
                return current
            if current.parent == current:
                # reached filesystem root
                return None
            current = current.parent

    @classmethod
    def open(cls, path: Path) -> "GitClient":
        """Open the repository containing ``path``.

        Raises
        ------
        RepositoryError
            If ``path`` does not exist or is not inside a Git repository.
        """
        if not path.exists():
            raise RepositoryError(f"Path does not exist: {path}")
        root = cls.find_repo_root(path)
        if root is None:
            raise RepositoryError(f"Not a git repository: {path}")
        logger.debug("Opened Git repository at %s", root)
        return cls(root)

    @property
    def repo_name(self) -> str:
        return self.repo_root.resolve().name

    # ------------------------------------------------------------------
    # Basic Git commands
    # ------------------------------------------------------------------
    def _run(self, args: List[str], check: bool = True) -> subprocess.CompletedProcess:
        """Run a Git command in the repository root.

        Raises
        ------
        GitError
            If the command exits with a non-zero status when ``check`` is True.
        """
        full_cmd = ["git"] + args
        logger.debug("Executing Git command: %s", " ".join(full_cmd))
        try:
            result = subprocess.run(
                full_cmd,
                cwd=self.repo_root,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",  # Replace invalid characters instead of failing
            )
        except OSError as e:
            logger.error("Failed to execute git: %s", e)
            raise GitError(f"Failed to execute git: {e}") from e

        if check and result.returncode != 0:
            logger.error(
                "Git command failed: %s\nSTDOUT: %s\nSTDERR: %s",
                " ".join(full_cmd),
                result.stdout,
                result.stderr,
            )
            raise GitError(result.stderr.strip() or result.stdout.strip())
        return result

    # ------------------------------------------------------------------
    # Status and change detection
    # ------------------------------------------------------------------
    def get_changes(self, include_untracked: bool = True) -> List[FileChange]:
        """Get the list of changed files in the repository.

        Untracked files are listed individually (``-uall``) so that every
        entry is a file path that can be read and staged. Output is read
        in ``-z`` form, so paths arrive verbatim (no C-style quoting) and
        a rename's source path follows as its own NUL-separated field.

        Raises
        ------
        GitError
            If the git status command fails.
        """
        result = self._run(["status", "--porcelain", "-z", "-uall"], check=True)
        changes = []

        fields = iter(result.stdout.split("\0"))
        for entry in fields:
            # Git porcelain format: XY filename
            if len(entry) < 4:
                continue

            index_status, worktree_status = entry[0], entry[1]
            filename = entry[3:]

            orig_path = None
            if index_status in ("R", "C") or worktree_status in ("R", "C"):
                orig_path = next(fields, None) or None

            if index_status == "?" and not include_untracked:
                continue
            if index_status == "!":
                # ignored
                continue

            abs_path = self.repo_root / filename
            try:
                size = abs_path.stat().st_size if abs_path.is_file() else 0
            except OSError:
                size = 0

            changes.append(
                FileChange(
                    path=filename,
                    index_status=index_status,
                    worktree_status=worktree_status,
                    size=size,
                    is_binary=is_binary_path(filename),
                    orig_path=orig_path,
                )
            )

        return changes

    def get_diff(self, path: Optional[str] = None, cached: bool = False) -> str:
        """Return the unified diff, optionally restricted to ``path``.

        With ``cached=True`` the staged diff (index against HEAD) is
        returned, otherwise the working tree against the index.
        """
        args = ["diff"]
        if cached:
            args.append("--cached")
        if path is not None:
            args.extend(["--", path])
        return self._run(args, check=True).stdout

    def get_staged_files(self) -> List[str]:
        """Return the paths currently staged in the index."""
        result = self._run(["diff", "--cached", "--name-only", "-z"], check=True)
        return [path for path in result.stdout.split("\0") if path]

    # ------------------------------------------------------------------
    # Branch operations
    # ------------------------------------------------------------------
    def get_current_branch(self) -> str:
        """Get the name of the current branch.

        Raises
        ------
        GitError
            If unable to determine the current branch.
        """
        result = self._run(["rev-parse", "--abbrev-ref", "HEAD"], check=True)
        return result.stdout.strip()

    # ------------------------------------------------------------------
    # Staging, committing, pushing
    # ------------------------------------------------------------------
    def reset_to_head(self) -> None:
        """Unstage everything, leaving the working tree untouched."""
        self._run(["reset", "--quiet"], check=True)

    def stage_files(self, files: Sequence[str]) -> None:
        """Stage the given files for commit.

        For deleted files, ``git rm`` is used; otherwise ``git add``.
        """
        for file in files:
            abs_path = self.repo_root / file
            if abs_path.exists():
                # Modified or added file
                self._run(["add", "--", file], check=True)
            else:
                # Deleted file
                self._run(["rm", "--cached", "--quiet", "--", file], check=True)

    def stage_all(self) -> None:
        """Stage every pending change, including deletions and new files."""
        self._run(["add", "--all"], check=True)

    def commit(self, message: str) -> None:
        """Create a commit with the given message.

        Multi-line commit messages are supported.

        Raises
        ------
        CommitError
            If the commit fails.
        """
        try:
            self._run(["commit", "-m", message], check=True)
        except GitError as exc:
            raise CommitError(f"Commit failed: {exc}") from exc

    def push(self, remote: Optional[str] = None, set_upstream: bool = False) -> None:
        """Push the current branch.

        When the branch has no upstream yet, the push is retried once with
        ``--set-upstream`` against ``remote`` (``origin`` by default).

        Raises
        ------
        CommitError
            If pushing fails.
        """
        remote = remote or "origin"
        try:
            if set_upstream:
                self._push_with_upstream(remote)
                return
            try:
                self._run(["push"], check=True)
            except GitError as exc:
                if "no upstream branch" not in str(exc):
                    raise
                logger.info("No upstream branch configured; pushing to %s", remote)
                self._push_with_upstream(remote)
        except GitError as exc:
            raise CommitError(f"Push failed: {exc}") from exc

    def _push_with_upstream(self, remote: str) -> None:
        branch = self.get_current_branch()
        self._run(["push", "--set-upstream", remote, branch], check=True)
