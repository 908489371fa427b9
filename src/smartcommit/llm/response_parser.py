"""
Parsing of completion responses into commit proposals.

The model is asked for JSON, but does not always comply. A response is
therefore classified as one of three variants:

* :class:`Parsed` -- the response was a JSON object with a summary.
* :class:`HeuristicFallback` -- JSON parsing failed, but a usable
  summary could be recovered from the plain text.
* :class:`Unparseable` -- nothing usable; the caller should retry.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Union

from smartcommit.grouping.group_model import DEFAULT_COMMIT_TYPE, CommitProposal


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


MIN_HEURISTIC_LINE_LENGTH = 10
FALLBACK_DESCRIPTION = "Various updates and improvements"

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)
_CONVENTIONAL_RE = re.compile(
    r"^(feat|fix|docs|style|refactor|test|chore|perf|ci|build|revert)(?:\(([^)]+)\))?!?:\s+",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class Parsed:
    proposal: CommitProposal


@dataclass(frozen=True)
class HeuristicFallback:
    proposal: CommitProposal


@dataclass(frozen=True)
class Unparseable:
    reason: str


ParseResult = Union[Parsed, HeuristicFallback, Unparseable]


def strip_code_fence(text: str) -> str:
    """Remove a surrounding Markdown code fence, if any."""
    cleaned = text.strip()
    match = _FENCE_RE.match(cleaned)
    return match.group(1) if match else cleaned


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if str(item).strip()]


def _flag(value: Any) -> bool:
    """A real boolean, or the string ``"true"`` in any case."""
    if isinstance(value, bool):
        return value
    return isinstance(value, str) and value.strip().lower() == "true"


def compose_description(description: str, changes: List[str], issues: List[str]) -> str:
    """Fold declared changes and issue references into the body text."""
    body = description or ""
    if changes:
        body += "\n\n" + "\n".join(f"- {change}" for change in changes)
    if issues:
        body += "\n\n" + ", ".join(f"Closes #{issue.lstrip('#')}" for issue in issues)
    return body.strip()


def proposal_from_mapping(data: Mapping[str, Any]) -> CommitProposal:
    """Normalise one JSON commit object.

    Raises
    ------
    ValueError
        If the object has no non-empty ``summary``.
    """
    summary = data.get("summary")
    if not isinstance(summary, str) or not summary.strip():
        raise ValueError("Response missing required summary field")

    changes = _string_list(data.get("changes"))
    issues = _string_list(data.get("issues"))
    files = _string_list(data.get("files")) or _string_list(data.get("selectedFiles"))
    description = data.get("description") if isinstance(data.get("description"), str) else ""

    return CommitProposal(
        summary=summary.strip(),
        description=compose_description(description, changes, issues),
        type=data.get("type") or DEFAULT_COMMIT_TYPE,
        scope=data.get("scope") or None,
        breaking=_flag(data.get("breaking")),
        issues=tuple(issues),
        changes=tuple(changes),
        files=tuple(files),
    )


def heuristic_proposal(text: str) -> Optional[CommitProposal]:
    """Recover a proposal from free text.

    Lines that look like JSON punctuation, mention JSON, or are too short
    to be a subject are discarded. The first remaining line is the
    summary, the rest the description.
    """
    kept = []
    for line in text.strip().splitlines():
        stripped = line.strip()
        if (
            not stripped
            or stripped.startswith(("{", "}", '"', "```"))
            or "JSON" in stripped
            or len(stripped) <= MIN_HEURISTIC_LINE_LENGTH
        ):
            continue
        kept.append(stripped)

    if not kept:
        return None

    summary = kept[0]
    match = _CONVENTIONAL_RE.match(summary)
    return CommitProposal(
        summary=summary,
        description="\n".join(kept[1:]) or FALLBACK_DESCRIPTION,
        type=match.group(1).lower() if match else DEFAULT_COMMIT_TYPE,
        scope=match.group(2) if match else None,
    )


def parse_commit_response(text: str) -> ParseResult:
    """Classify a single-commit response."""
    if not text or not text.strip():
        return Unparseable("Empty response")

    try:
        data = json.loads(strip_code_fence(text))
        if not isinstance(data, dict):
            raise ValueError("Response is not a JSON object")
        return Parsed(proposal_from_mapping(data))
    except ValueError as exc:
        # json.JSONDecodeError is a ValueError subclass
        logger.warning("Failed to parse JSON response (%s), falling back to text parsing", exc)

    proposal = heuristic_proposal(text)
    if proposal is None:
        return Unparseable("Generated commit message could not be parsed or was empty")
    return HeuristicFallback(proposal)


def parse_grouped_response(text: str) -> Optional[List[CommitProposal]]:
    """Parse a grouped response into proposals, in the order given.

    Elements without a summary or without files are dropped. Returns
    ``None`` when the response is not a non-empty JSON array or no
    element survives.
    """
    try:
        data = json.loads(strip_code_fence(text or ""))
    except ValueError:
        logger.warning("Failed to parse JSON response for grouped commits")
        return None
    if not isinstance(data, list) or not data:
        logger.warning("Grouped response is not a non-empty array of commits")
        return None

    proposals = []
    for index, item in enumerate(data, start=1):
        if not isinstance(item, dict):
            logger.warning("Dropping grouped commit %d: not an object", index)
            continue
        try:
            proposal = proposal_from_mapping(item)
        except ValueError as exc:
            logger.warning("Dropping grouped commit %d: %s", index, exc)
            continue
        if not proposal.files:
            logger.warning("Dropping grouped commit %d: no files listed", index)
            continue
        proposals.append(proposal)
    return proposals or None
