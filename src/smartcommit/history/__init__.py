"""
Commit history and generation records.

See :mod:`smartcommit.history.store` for the on-disk layout.
"""

from .store import HistoryStore  # noqa: F401
