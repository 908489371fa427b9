"""
Exact-scope staging for a single commit.

:class:`StagingCoordinator` makes the index contain exactly the files a
commit proposal declares, independent of whatever else is pending in the
working tree. The index is reset to ``HEAD`` first so that residue from a
previous proposal in the same run never leaks into the next commit.
"""

from __future__ import annotations

import logging
from typing import List, Sequence

from smartcommit.vcs.git_client import GitClient, GitError


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


class StagingError(Exception):
    """Raised when a file selection cannot be staged."""

    pass


class StagingCoordinator:
    """Reset and selectively stage the index through a :class:`GitClient`."""

    def __init__(self, client: GitClient) -> None:
        self.client = client

    def stage_exact(self, files: Sequence[str]) -> List[str]:
        """Stage exactly ``files`` and nothing else.

        Parameters
        ----------
        files : Sequence[str]
            Repository-relative paths. Duplicates are ignored; order is kept.

        Returns
        -------
        List[str]
            The staged paths.

        Raises
        ------
        StagingError
            If ``files`` is empty (the index is left untouched) or if git
            refuses to reset or add one of the paths.
        """
        selected = [path for path in dict.fromkeys(files) if path]
        if not selected:
            raise StagingError("No files selected for staging")

        try:
            self.client.reset_to_head()
            logger.info("Reset staging area")
            self.client.stage_files(selected)
            staged = self.client.get_staged_files()
        except GitError as exc:
            raise StagingError(f"Failed to stage selected files: {exc}") from exc

        unexpected = sorted(set(staged) - set(selected))
        if unexpected:
            raise StagingError(f"Unexpected files staged: {', '.join(unexpected)}")
        unchanged = [path for path in selected if path not in staged]
        if unchanged:
            logger.warning("Selected files without pending changes: %s", ", ".join(unchanged))

        logger.info("Selected files staged successfully: %s", ", ".join(selected))
        return selected

    def stage_all(self) -> None:
        """Stage every pending change."""
        try:
            self.client.stage_all()
        except GitError as exc:
            raise StagingError(f"Failed to stage changes: {exc}") from exc
        logger.info("All changes staged successfully")
