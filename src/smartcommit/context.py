"""
Per-run settings.

A :class:`RunContext` is built once by the CLI from the parsed options
and the loaded configuration, then passed explicitly to everything that
needs it.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from smartcommit.diff.context_extractor import DEFAULT_RADIUS
from smartcommit.llm.generation_engine import DEFAULT_MAX_ATTEMPTS


@dataclass(frozen=True)
class RunContext:
    """Immutable settings for one invocation.

    Attributes
    ----------
    repo_root : Path
        Root of the target repository.
    repo_name : str
        Repository name used for history and prompts.
    model : str
        Model requested from the completion service.
    provider : str
        Completion provider name.
    radius : int
        Context radius around changed lines, greater than zero.
    additional_instruction : str, optional
        Free text the user wants the model to take into account.
    selective_instruction : str, optional
        Restricts the commit to changes related to this text.
    grouped : bool
        Split the changes into several commits.
    auto : bool
        Accept every proposal without asking.
    max_attempts : int
        Generation attempt ceiling, at least 1.
    """

    repo_root: Path
    repo_name: str
    model: str
    provider: str = "openrouter"
    radius: int = DEFAULT_RADIUS
    additional_instruction: Optional[str] = None
    selective_instruction: Optional[str] = None
    grouped: bool = False
    auto: bool = False
    max_attempts: int = DEFAULT_MAX_ATTEMPTS

    def __post_init__(self) -> None:
        if self.radius < 1:
            raise ValueError("radius must be a positive integer")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.grouped and self.selective_instruction:
            raise ValueError("grouped mode cannot be combined with a selective instruction")

    @classmethod
    def from_options(
        cls,
        repo_root: Path,
        repo_name: str,
        config: Dict[str, Any],
        model: Optional[str] = None,
        radius: int = DEFAULT_RADIUS,
        additional: Optional[str] = None,
        only: Optional[str] = None,
        grouped: bool = False,
        auto: bool = False,
    ) -> "RunContext":
        """Combine command line options with the loaded configuration."""
        return cls(
            repo_root=repo_root,
            repo_name=repo_name,
            model=model or config["model"],
            provider=config.get("provider", "openrouter"),
            radius=radius,
            additional_instruction=additional or None,
            selective_instruction=only or None,
            grouped=grouped,
            auto=auto,
            max_attempts=config.get("max_retries", DEFAULT_MAX_ATTEMPTS),
        )
