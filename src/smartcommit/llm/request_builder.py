"""
Structured prompt payloads for commit generation.

The prompt sent to the model is a JSON document with four parts: the
task instructions (including the exact output schema the model must
return), the repository context (recent commits, user instructions), the
raw staged and unstaged diffs, and a per-file section carrying each
file's status and bounded excerpt.

Building a payload is deterministic and touches neither the network nor
the disk; all inputs come from the :class:`DiffBundle`.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Mapping, Optional, Sequence

from smartcommit.diff.diff_extractor import DiffBundle


COMMIT_TYPES = (
    "feat",      # New features
    "fix",       # Bug fixes
    "docs",      # Documentation only changes
    "style",     # Formatting, white-space, missing semi-colons
    "refactor",  # Neither fixes a bug nor adds a feature
    "test",      # Adding or correcting tests
    "chore",     # Build process or auxiliary tools
    "perf",      # Performance improvements
    "ci",        # CI configuration files and scripts
    "build",     # Build system or external dependencies
    "revert",    # Reverts a previous commit
)

SUMMARY_MAX_LENGTH = 50
FILE_CONTENT_LIMIT = 2000
RECENT_COMMIT_LIMIT = 3
UNREADABLE_FILE = "[Unable to read file]"


def _common_guidelines() -> List[str]:
    return [
        f"Use conventional commit types: {', '.join(COMMIT_TYPES)}",
        f"Keep summary under {SUMMARY_MAX_LENGTH} characters",
        "Use present tense ('add' not 'added')",
        "Be specific about what changed",
        "Explain the 'why' in the description",
    ]


def build_commit_instructions(
    selective_instruction: Optional[str] = None,
    additional_instruction: Optional[str] = None,
) -> Dict[str, Any]:
    """Instructions for a single commit message."""
    if selective_instruction:
        task = (
            "Generate a professional git commit message based on ONLY the code changes "
            f'related to: "{selective_instruction}". Analyze all changes but only include '
            "files/changes that match this context."
        )
    else:
        task = "Generate a professional git commit message based on the provided code changes"

    guidelines = _common_guidelines() + [
        "Focus on the business value or problem solved",
        "Analyze the full file contents to understand the complete context",
        "Set 'breaking' to true only for breaking changes",
        "Include issue numbers in 'issues' array if this fixes any issues",
    ]
    if additional_instruction:
        guidelines.append("Pay special attention to the additional context provided by the user")
    if selective_instruction:
        guidelines.append(
            f'IMPORTANT: Only commit changes related to "{selective_instruction}". Identify which '
            "files/changes match this context and include only those in the commit. Add a "
            "'selectedFiles' array listing the files that should be committed."
        )

    output_format: Dict[str, Any] = {
        "summary": "<type>(<scope>): <description>",
        "description": "<detailed explanation of what was changed and why>",
        "changes": ["<specific change 1>", "<specific change 2>", "<specific change 3>"],
        "type": "<commit type>",
        "scope": "<commit scope>",
        "breaking": False,
        "issues": ["<issue-number>"],
    }
    if selective_instruction:
        output_format["selectedFiles"] = ["<file1.py>", "<file2.py>"]

    return {
        "task": task,
        "format": "Return a JSON object with the specified structure",
        "guidelines": guidelines,
        "outputFormat": output_format,
    }


def build_grouped_instructions(additional_instruction: Optional[str] = None) -> Dict[str, Any]:
    """Instructions for splitting the changes into several commits."""
    guidelines = [
        "Each commit object must have a 'summary', 'description', and 'files' array.",
        "The 'files' array should contain the file paths related to that commit.",
        "Each file should only appear in one commit group.",
        "Order the commits so that foundational changes come first and every commit "
        "only depends on commits listed before it.",
    ] + _common_guidelines()
    if additional_instruction:
        guidelines.append("Pay special attention to the additional context provided by the user")

    return {
        "task": (
            "Analyze the provided code changes and group them into a series of related commits. "
            "Each commit should represent a logical unit of work."
        ),
        "format": "Return a JSON array of commit objects, where each object has the specified structure.",
        "guidelines": guidelines,
        "outputFormat": [
            {
                "summary": "<type>(<scope>): <description>",
                "description": "<detailed explanation of what was changed and why>",
                "type": "<commit type>",
                "scope": "<commit scope>",
                "files": ["<file1.py>", "<file2.py>"],
            }
        ],
    }


def recent_commit_context(history: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Reduce the last few history entries to what the prompt needs."""
    recent = []
    for commit in list(history)[-RECENT_COMMIT_LIMIT:]:
        description = commit.get("description") or None
        recent.append(
            {
                "summary": commit.get("summary"),
                "description": description.split("\n")[0] if description else None,
                "type": commit.get("type") or None,
                "scope": commit.get("scope") or None,
                "timestamp": commit.get("timestamp"),
            }
        )
    return recent


class RequestBuilder:
    """Assemble request payloads for one repository."""

    def __init__(self, repository: str) -> None:
        self.repository = repository

    def _files_payload(self, bundle: DiffBundle) -> Dict[str, Any]:
        files: Dict[str, Any] = {}
        for change in bundle.files:
            content = bundle.excerpts.get(change.path) or UNREADABLE_FILE
            if len(content) > FILE_CONTENT_LIMIT:
                content = (
                    content[:FILE_CONTENT_LIMIT]
                    + f"\n\n[Content truncated - showing first {FILE_CONTENT_LIMIT} characters]"
                )
            files[change.path] = {
                "status": {
                    "index": change.index_status,
                    "workingDir": change.worktree_status,
                    "statusDescription": change.status_description,
                },
                "content": content,
                "path": change.path,
                "isBinary": change.is_binary,
                "size": change.size,
            }
        return files

    def build(
        self,
        bundle: DiffBundle,
        recent_commits: Sequence[Mapping[str, Any]] = (),
        additional_instruction: Optional[str] = None,
        selective_instruction: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Payload asking for one commit message."""
        return {
            "instructions": build_commit_instructions(selective_instruction, additional_instruction),
            "context": {
                "repository": self.repository,
                "changedFilesCount": len(bundle.files),
                "recentCommits": recent_commit_context(recent_commits),
                "additionalContext": additional_instruction,
                "selectiveContext": selective_instruction,
            },
            "diff": {
                "staged": bundle.staged_diff or "",
                "unstaged": bundle.unstaged_diff or "",
            },
            "files": self._files_payload(bundle),
        }

    def build_grouped(
        self,
        bundle: DiffBundle,
        additional_instruction: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Payload asking for an ordered list of grouped commits."""
        return {
            "instructions": build_grouped_instructions(additional_instruction),
            "context": {
                "repository": self.repository,
                "changedFilesCount": len(bundle.files),
                "additionalContext": additional_instruction,
            },
            "diff": {
                "staged": bundle.staged_diff or "",
                "unstaged": bundle.unstaged_diff or "",
            },
            "files": self._files_payload(bundle),
        }


def to_prompt(payload: Mapping[str, Any]) -> str:
    """Serialise a payload into the prompt text sent to the model."""
    return json.dumps(payload, indent=2)
