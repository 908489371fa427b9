"""
Data models for commit proposals.

A :class:`CommitProposal` is a candidate commit (message plus optional
explicit file scope) that has not been applied yet. Proposals come from
the language model, either one at a time or as an ordered group, and are
reviewed by the user before anything touches the repository. The outcome
of applying an accepted proposal is recorded as a :class:`CommitOutcome`.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


DEFAULT_COMMIT_TYPE = "chore"


class ReviewDecision(Enum):
    """User decision for one proposal of a grouped run."""

    ACCEPT = "accept"
    SKIP = "skip"
    CANCEL = "cancel"


class SingleCommitDecision(Enum):
    """User decision for the proposal of a single-commit run."""

    ACCEPT = "accept"
    REGENERATE = "regenerate"
    CANCEL = "cancel"


@dataclass(frozen=True)
class CommitProposal:
    """Representation of a proposed commit.

    Attributes
    ----------
    summary : str
        Subject line, usually ``type(scope): description``.
    description : str
        Body text. Declared changes and issue references are already
        folded in by the parser.
    type : str
        Conventional Commit type (feat, fix, docs, etc.).
    scope : Optional[str]
        Conventional Commit scope, if any.
    breaking : bool
        Whether the change is a breaking change.
    issues : Tuple[str, ...]
        Issue numbers the commit closes.
    changes : Tuple[str, ...]
        Individual changes as listed by the model.
    files : Tuple[str, ...]
        Explicit file scope. Empty means "everything pending".
    tracking_id : Optional[str]
        Identifier attached by whoever drives the proposal through review.
    """

    summary: str
    description: str = ""
    type: str = DEFAULT_COMMIT_TYPE
    scope: Optional[str] = None
    breaking: bool = False
    issues: Tuple[str, ...] = ()
    changes: Tuple[str, ...] = ()
    files: Tuple[str, ...] = field(default_factory=tuple)
    tracking_id: Optional[str] = None

    @property
    def message(self) -> str:
        """Full commit message: summary, blank line, description."""
        if self.description:
            return f"{self.summary}\n\n{self.description}"
        return self.summary

    @property
    def has_explicit_scope(self) -> bool:
        return bool(self.files)

    def with_tracking_id(self, tracking_id: str) -> "CommitProposal":
        return dataclasses.replace(self, tracking_id=tracking_id)

    def to_dict(self) -> Dict[str, Any]:
        """Serialise in the shape stored in generation records."""
        return {
            "summary": self.summary,
            "description": self.description,
            "type": self.type,
            "scope": self.scope,
            "breaking": self.breaking,
            "issues": list(self.issues),
            "changes": list(self.changes),
            "selectedFiles": list(self.files),
            "fullMessage": self.message,
        }


@dataclass(frozen=True)
class CommitOutcome:
    """Result of applying one accepted proposal.

    ``committed`` is True as soon as the commit exists locally; ``success``
    additionally requires the push to have gone through.
    """

    proposal: CommitProposal
    success: bool
    applied_order: int
    error: Optional[str] = None
    committed: bool = False
