"""
Review and application of grouped commit proposals.

The orchestrator walks an ordered list of proposals through two review
passes. Every proposal starts as ``PROPOSED``; a proposal skipped in the
first pass becomes ``SKIPPED`` and is offered once more in the second
pass, where skipping it again makes it ``DECLINED``. Since the second pass
only visits ``SKIPPED`` proposals and no decision leads back to
``SKIPPED``, a proposal can never be offered a third time.

Accepted proposals are applied immediately, in the order supplied:
exact-scope staging, commit, then push. A failure is recorded against
that proposal and the run moves on. Cancelling stops the run at the
current decision point; commits already made are kept.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from smartcommit.grouping.group_model import CommitOutcome, CommitProposal, ReviewDecision
from smartcommit.vcs.git_client import GitError
from smartcommit.vcs.staging import StagingCoordinator, StagingError


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


class ProposalState(Enum):
    PROPOSED = "proposed"
    SKIPPED = "skipped"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    CANCELLED = "cancelled"


_TRANSITIONS = {
    (ProposalState.PROPOSED, ReviewDecision.ACCEPT): ProposalState.ACCEPTED,
    (ProposalState.PROPOSED, ReviewDecision.SKIP): ProposalState.SKIPPED,
    (ProposalState.PROPOSED, ReviewDecision.CANCEL): ProposalState.CANCELLED,
    (ProposalState.SKIPPED, ReviewDecision.ACCEPT): ProposalState.ACCEPTED,
    (ProposalState.SKIPPED, ReviewDecision.SKIP): ProposalState.DECLINED,
    (ProposalState.SKIPPED, ReviewDecision.CANCEL): ProposalState.CANCELLED,
}

# Each review pass offers the proposals that are in this state.
REVIEW_PASSES = (ProposalState.PROPOSED, ProposalState.SKIPPED)


def next_state(state: ProposalState, decision: ReviewDecision) -> ProposalState:
    """Apply ``decision`` to a proposal in ``state``.

    Raises
    ------
    ValueError
        If ``state`` is terminal.
    """
    try:
        return _TRANSITIONS[(state, decision)]
    except KeyError:
        raise ValueError(f"No transition from {state.value} on {decision.value}") from None


@dataclass
class GroupedRunReport:
    """Summary of one grouped run."""

    outcomes: List[CommitOutcome] = field(default_factory=list)
    states: Dict[str, ProposalState] = field(default_factory=dict)
    cancelled: bool = False

    @property
    def committed_count(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.committed)

    @property
    def failed_count(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.success)

    @property
    def declined(self) -> List[str]:
        return [tid for tid, state in self.states.items() if state is ProposalState.DECLINED]

    def summary_line(self) -> str:
        return f"{self.committed_count} committed, {self.failed_count} failed"


class GroupedCommitOrchestrator:
    """Drive proposals through review and apply the accepted ones.

    Parameters
    ----------
    client : GitClient
        Repository used for commit and push.
    stager : StagingCoordinator
        Stages each proposal's exact file scope.
    decide : Callable[[CommitProposal, int], ReviewDecision], optional
        Interactive decision function, called with the proposal and the
        pass number (1 or 2). Not called in auto mode.
    auto : bool
        Accept every proposal without asking.
    push : bool
        Push after each successful commit.
    on_outcome : Callable[[CommitOutcome], None], optional
        Invoked after every applied proposal.
    """

    def __init__(
        self,
        client,
        stager: StagingCoordinator,
        decide: Optional[Callable[[CommitProposal, int], ReviewDecision]] = None,
        auto: bool = False,
        push: bool = True,
        on_outcome: Optional[Callable[[CommitOutcome], None]] = None,
    ) -> None:
        if decide is None and not auto:
            raise ValueError("A decision function is required unless auto mode is enabled")
        self.client = client
        self.stager = stager
        self.decide = decide
        self.auto = auto
        self.push = push
        self.on_outcome = on_outcome

    def _decision(self, proposal: CommitProposal, review_pass: int) -> ReviewDecision:
        if self.auto:
            return ReviewDecision.ACCEPT
        return self.decide(proposal, review_pass)

    def run(self, proposals: Sequence[CommitProposal]) -> GroupedRunReport:
        """Review and apply ``proposals`` in the order given.

        Proposals without a tracking id are numbered ``group-N`` by
        position.

        Raises
        ------
        ValueError
            If two proposals share a tracking id.
        """
        tracked = [
            proposal if proposal.tracking_id else proposal.with_tracking_id(f"group-{index}")
            for index, proposal in enumerate(proposals, start=1)
        ]
        ids = [proposal.tracking_id for proposal in tracked]
        duplicates = sorted({tid for tid in ids if ids.count(tid) > 1})
        if duplicates:
            raise ValueError(f"Duplicate proposal tracking ids: {', '.join(duplicates)}")
        report = GroupedRunReport(
            states={proposal.tracking_id: ProposalState.PROPOSED for proposal in tracked}
        )

        for review_pass, offered_state in enumerate(REVIEW_PASSES, start=1):
            pending = [p for p in tracked if report.states[p.tracking_id] is offered_state]
            if not pending:
                continue
            if review_pass > 1:
                logger.info("Offering %d skipped proposal(s) once more", len(pending))

            for proposal in pending:
                decision = self._decision(proposal, review_pass)
                state = next_state(report.states[proposal.tracking_id], decision)
                report.states[proposal.tracking_id] = state

                if state is ProposalState.CANCELLED:
                    report.cancelled = True
                    logger.info(
                        "Run cancelled after %d commit(s)", report.committed_count
                    )
                    return report
                if state is ProposalState.ACCEPTED:
                    outcome = self._apply(proposal, len(report.outcomes) + 1)
                    report.outcomes.append(outcome)
                    if self.on_outcome is not None:
                        self.on_outcome(outcome)
                elif state is ProposalState.DECLINED:
                    logger.info("Proposal %s declined", proposal.tracking_id)

        return report

    def _apply(self, proposal: CommitProposal, order: int) -> CommitOutcome:
        committed = False
        try:
            self.stager.stage_exact(list(proposal.files))
            self.client.commit(proposal.message)
            committed = True
            if self.push:
                self.client.push()
        except (StagingError, GitError) as exc:
            logger.warning("Proposal %s failed: %s", proposal.tracking_id, exc)
            return CommitOutcome(
                proposal=proposal,
                success=False,
                applied_order=order,
                error=str(exc),
                committed=committed,
            )
        logger.info("Committed proposal %s: %s", proposal.tracking_id, proposal.summary)
        return CommitOutcome(proposal=proposal, success=True, applied_order=order, committed=True)
