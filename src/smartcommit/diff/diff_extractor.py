"""
Diff extraction utilities.

This module collects everything the prompt needs about the pending
changes of a repository into a :class:`DiffBundle`: the staged and
unstaged unified diffs, the list of changed files and a bounded excerpt
for each file. The callers provide a VCS client that implements
``get_changes``, ``get_diff`` and exposes ``repo_root``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from smartcommit.diff.context_extractor import DEFAULT_RADIUS, extract_excerpt
from smartcommit.vcs.git_client import FileChange, GitError


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


@dataclass
class DiffBundle:
    """Snapshot of the pending changes used to build one request.

    Attributes
    ----------
    staged_diff : str
        Diff of the index against ``HEAD``.
    unstaged_diff : str
        Diff of the working tree against the index.
    files : List[FileChange]
        Changed files in ``git status`` order.
    excerpts : Dict[str, str]
        Mapping of file path to its rendered excerpt or placeholder.
    """

    staged_diff: str
    unstaged_diff: str
    files: List[FileChange]
    excerpts: Dict[str, str] = field(default_factory=dict)

    @property
    def paths(self) -> List[str]:
        return [change.path for change in self.files]


def extract_diffs(
    vcs_client: any,
    changes: Iterable[FileChange],
) -> Dict[str, str]:
    """Extract per-file unified diffs for a list of file changes.

    Staged and unstaged hunks are concatenated so that a file modified in
    both places reports every changed line. New files are skipped since
    their excerpt is the whole file.

    Returns
    -------
    Dict[str, str]
        Mapping from file path to the diff text.
    """
    diffs: Dict[str, str] = {}
    for change in changes:
        if change.is_new:
            diffs[change.path] = ""
            continue
        try:
            staged = vcs_client.get_diff(change.path, cached=True)
            unstaged = vcs_client.get_diff(change.path)
        except GitError as exc:
            # In case diff cannot be obtained (e.g. file deleted),
            # store empty diff. The excerpt falls back to a placeholder.
            logger.debug("No diff for %s: %s", change.path, exc)
            staged, unstaged = "", ""
        diffs[change.path] = "\n".join(part for part in (staged, unstaged) if part)
    return diffs


def build_diff_bundle(vcs_client: any, radius: int = DEFAULT_RADIUS) -> Optional[DiffBundle]:
    """Collect the pending changes of the repository.

    Returns ``None`` when the working tree is clean.

    Raises
    ------
    GitError
        If ``git status`` or the repository-wide diffs cannot be read.
    """
    changes = vcs_client.get_changes()
    if not changes:
        return None

    staged_diff = vcs_client.get_diff(cached=True)
    unstaged_diff = vcs_client.get_diff()
    diffs = extract_diffs(vcs_client, changes)

    excerpts = {
        change.path: extract_excerpt(
            vcs_client.repo_root / change.path,
            diffs.get(change.path, ""),
            radius=radius,
            is_new=change.is_new,
        )
        for change in changes
    }
    logger.debug("Built diff bundle for %d file(s)", len(changes))
    return DiffBundle(
        staged_diff=staged_diff,
        unstaged_diff=unstaged_diff,
        files=list(changes),
        excerpts=excerpts,
    )
