"""
Version control integration.

This package contains the :class:`GitClient` used to inspect, stage,
commit and push changes, and the :class:`StagingCoordinator` which stages
an exact file set for one commit.
"""

from .git_client import (  # noqa: F401
    CommitError,
    FileChange,
    GitClient,
    GitError,
    RepositoryError,
)
from .staging import StagingCoordinator, StagingError  # noqa: F401
