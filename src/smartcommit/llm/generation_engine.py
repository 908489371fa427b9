"""
Commit generation with bounded retries.

:class:`GenerationRetryEngine` builds a request payload, sends it to a
completion client and parses the answer. A transport failure or an
unusable answer counts as a failed attempt; after each failed attempt the
engine waits ``unit * base ** attempt`` and tries again until the attempt
ceiling is reached, at which point :class:`GenerationError` is raised with
the last underlying message. Attempt bookkeeping is done by
``tenacity.Retrying`` with the delay policy and sleep function plugged in.

The engine does not persist anything. Its results carry the raw text,
the payload and the model actually used so the caller can record them.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import tenacity

from smartcommit.diff.diff_extractor import DiffBundle
from smartcommit.grouping.group_model import CommitProposal
from smartcommit.llm.base import LLMError
from smartcommit.llm.request_builder import RequestBuilder, to_prompt
from smartcommit.llm.response_parser import (
    HeuristicFallback,
    Unparseable,
    parse_commit_response,
    parse_grouped_response,
)


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


DEFAULT_MAX_ATTEMPTS = 3


class GenerationError(Exception):
    """Raised when every generation attempt failed."""

    def __init__(self, message: str, attempts: int, last_error: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


class UnusableResponseError(Exception):
    """The service answered, but nothing usable could be parsed."""

    pass


@dataclass(frozen=True)
class BackoffPolicy:
    """Exponential delay between attempts: ``unit * base ** attempt`` seconds."""

    base: float = 2.0
    unit: float = 1.0

    def delay(self, attempt: int) -> float:
        return self.unit * self.base ** attempt

    def __call__(self, retry_state: tenacity.RetryCallState) -> float:
        return self.delay(retry_state.attempt_number)


@dataclass(frozen=True)
class GenerationInputs:
    """Everything the request builder needs for one run."""

    bundle: DiffBundle
    recent_commits: Sequence[Mapping[str, Any]] = ()
    additional_instruction: Optional[str] = None
    selective_instruction: Optional[str] = None


@dataclass(frozen=True)
class GenerationResult:
    """Successful single-commit generation plus what is needed to record it."""

    proposal: CommitProposal
    raw_text: str
    payload: Dict[str, Any]
    model_used: Optional[str]
    elapsed_ms: int
    attempts: int
    heuristic: bool
    changed_files: Tuple[str, ...]
    additional_instruction: Optional[str] = None

    def request_metadata(self) -> Dict[str, Any]:
        """The ``request`` object stored with a generation record."""
        return {
            "rawResponse": self.raw_text,
            "parsedMessage": self.proposal.to_dict(),
            "structuredRequest": self.payload,
            "fileCount": len(self.changed_files),
            "changedFiles": list(self.changed_files),
            "additionalContext": self.additional_instruction,
            "model": self.model_used,
            "generationTime": self.elapsed_ms,
            "parseFallback": self.heuristic,
        }


@dataclass(frozen=True)
class GroupedGenerationResult:
    """Successful grouped generation."""

    proposals: Tuple[CommitProposal, ...]
    raw_text: str
    payload: Dict[str, Any]
    model_used: Optional[str]
    elapsed_ms: int
    attempts: int
    changed_files: Tuple[str, ...]
    additional_instruction: Optional[str] = None

    def request_metadata(self) -> Dict[str, Any]:
        return {
            "rawResponse": self.raw_text,
            "parsedMessage": [proposal.to_dict() for proposal in self.proposals],
            "structuredRequest": self.payload,
            "fileCount": len(self.changed_files),
            "changedFiles": list(self.changed_files),
            "additionalContext": self.additional_instruction,
            "model": self.model_used,
            "generationTime": self.elapsed_ms,
        }


class GenerationRetryEngine:
    """Generate commit proposals through a completion client.

    Parameters
    ----------
    client : object
        Completion client exposing ``complete(model, prompt)``.
    builder : RequestBuilder
        Builds request payloads.
    model : str
        Model name passed to the client.
    max_attempts : int
        Attempt ceiling, at least 1.
    backoff : BackoffPolicy, optional
        Delay policy between attempts.
    sleep : Callable[[float], None], optional
        Delay function, ``time.sleep`` by default.
    clock : Callable[[], float], optional
        Monotonic clock used to measure latency.
    """

    def __init__(
        self,
        client,
        builder: RequestBuilder,
        model: str,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff: Optional[BackoffPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.client = client
        self.builder = builder
        self.model = model
        self.max_attempts = max_attempts
        self.backoff = backoff or BackoffPolicy()
        self.sleep = sleep
        self.clock = clock

    def _attempts(
        self,
        label: str,
        make_payload: Callable[[], Dict[str, Any]],
        interpret: Callable[[str], Any],
    ) -> Tuple[Any, Dict[str, Any], str, Optional[str], int, int]:
        retryer = tenacity.Retrying(
            retry=tenacity.retry_if_exception_type((LLMError, UnusableResponseError)),
            wait=self.backoff,
            stop=tenacity.stop_after_attempt(self.max_attempts),
            sleep=self.sleep,
            before_sleep=tenacity.before_sleep_log(logger, logging.WARNING),
        )
        try:
            for attempt in retryer:
                with attempt:
                    number = attempt.retry_state.attempt_number
                    logger.info("Attempt %d/%d: generating %s", number, self.max_attempts, label)
                    payload = make_payload()
                    started = self.clock()
                    completion = self.client.complete(self.model, to_prompt(payload))
                    elapsed_ms = int((self.clock() - started) * 1000)
                    value = interpret(completion.text)
        except tenacity.RetryError as exc:
            last_attempt = exc.last_attempt
            error = last_attempt.exception()
            raise GenerationError(
                f"Failed to generate {label} after {last_attempt.attempt_number} attempts. "
                f"Last error: {error}",
                attempts=last_attempt.attempt_number,
                last_error=error,
            ) from error

        logger.info("Generated %s on attempt %d (%dms)", label, number, elapsed_ms)
        return value, payload, completion.text, completion.model_used, elapsed_ms, number

    def generate(self, inputs: GenerationInputs) -> GenerationResult:
        """Generate one commit proposal.

        Raises
        ------
        GenerationError
            When all attempts failed.
        """

        def make_payload() -> Dict[str, Any]:
            return self.builder.build(
                inputs.bundle,
                recent_commits=inputs.recent_commits,
                additional_instruction=inputs.additional_instruction,
                selective_instruction=inputs.selective_instruction,
            )

        def interpret(text: str):
            result = parse_commit_response(text)
            if isinstance(result, Unparseable):
                raise UnusableResponseError(result.reason)
            return result

        parsed, payload, raw, model_used, elapsed_ms, attempts = self._attempts(
            "commit message", make_payload, interpret
        )
        return GenerationResult(
            proposal=parsed.proposal,
            raw_text=raw,
            payload=payload,
            model_used=model_used or self.model,
            elapsed_ms=elapsed_ms,
            attempts=attempts,
            heuristic=isinstance(parsed, HeuristicFallback),
            changed_files=tuple(inputs.bundle.paths),
            additional_instruction=inputs.additional_instruction,
        )

    def generate_grouped(self, inputs: GenerationInputs) -> GroupedGenerationResult:
        """Generate an ordered list of grouped commit proposals.

        Raises
        ------
        GenerationError
            When all attempts failed.
        """

        def make_payload() -> Dict[str, Any]:
            return self.builder.build_grouped(
                inputs.bundle,
                additional_instruction=inputs.additional_instruction,
            )

        def interpret(text: str) -> List[CommitProposal]:
            proposals = parse_grouped_response(text)
            if not proposals:
                raise UnusableResponseError("Generated grouped commits could not be parsed or were empty")
            return proposals

        proposals, payload, raw, model_used, elapsed_ms, attempts = self._attempts(
            "grouped commits", make_payload, interpret
        )
        return GroupedGenerationResult(
            proposals=tuple(proposals),
            raw_text=raw,
            payload=payload,
            model_used=model_used or self.model,
            elapsed_ms=elapsed_ms,
            attempts=attempts,
            changed_files=tuple(inputs.bundle.paths),
            additional_instruction=inputs.additional_instruction,
        )
