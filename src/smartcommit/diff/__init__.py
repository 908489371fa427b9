"""
Utilities for turning pending changes into prompt context.

:mod:`smartcommit.diff.context_extractor` renders bounded excerpts around
changed lines; :mod:`smartcommit.diff.diff_extractor` assembles the
per-run :class:`~smartcommit.diff.diff_extractor.DiffBundle`.
"""

from .context_extractor import DiffError, extract, extract_excerpt  # noqa: F401
