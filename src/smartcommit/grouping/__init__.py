"""
Commit proposals and their review.

This package defines the :class:`CommitProposal` model and the
:class:`GroupedCommitOrchestrator` which reviews an ordered list of
proposals and applies the accepted ones. See
:mod:`smartcommit.grouping.group_model` and
:mod:`smartcommit.grouping.orchestrator` for details.
"""

from .group_model import (  # noqa: F401
    CommitOutcome,
    CommitProposal,
    ReviewDecision,
    SingleCommitDecision,
)
from .orchestrator import GroupedCommitOrchestrator, GroupedRunReport, ProposalState  # noqa: F401
