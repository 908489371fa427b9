"""
On-disk commit history and generation records.

The data directory holds a ``history/`` directory with one
``<repository>.json`` file per repository listing the most recent
commits made through the tool (used as prompt context), and a ``generations/`` directory with one JSON record per
generation::

    {
      "timestamp": "...",
      "repository": "my-repo",
      "accepted": false,
      "request": {...},
      "generation": {...},
      "metadata": {"model": "...", "provider": "openrouter", "version": "..."}
    }

History is best effort: read and write failures are logged and never
abort a commit.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from smartcommit.grouping.group_model import CommitProposal


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


HISTORY_LIMIT = 50


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(moment: datetime) -> str:
    return moment.isoformat().replace("+00:00", "Z")


class HistoryStore:
    """Read and write history files under ``data_dir``."""

    def __init__(self, data_dir: Path, provider: str = "openrouter", version: str = "0.0.0") -> None:
        self.data_dir = data_dir
        self.history_dir = data_dir / "history"
        self.generations_dir = data_dir / "generations"
        self.provider = provider
        self.version = version

    def _ensure_directories(self) -> None:
        self.history_dir.mkdir(parents=True, exist_ok=True)
        self.generations_dir.mkdir(parents=True, exist_ok=True)

    def history_path(self, repo_name: str) -> Path:
        return self.history_dir / f"{repo_name}.json"

    # ------------------------------------------------------------------
    # Commit history
    # ------------------------------------------------------------------
    def load_history(self, repo_name: str) -> List[Dict[str, Any]]:
        path = self.history_path(repo_name)
        if not path.exists():
            return []
        try:
            history = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("History file corrupted, starting fresh: %s", exc)
            return []
        return history if isinstance(history, list) else []

    def save_history(self, repo_name: str, history: List[Dict[str, Any]]) -> None:
        try:
            self._ensure_directories()
            self.history_path(repo_name).write_text(json.dumps(history, indent=2), encoding="utf-8")
        except OSError as exc:
            logger.error("Failed to save history: %s", exc)

    def append_commit(
        self,
        repo_name: str,
        proposal: CommitProposal,
        files: Optional[List[str]] = None,
        limit: int = HISTORY_LIMIT,
    ) -> None:
        """Record a commit and keep only the last ``limit`` entries."""
        history = self.load_history(repo_name)
        history.append(
            {
                "timestamp": _iso(_now()),
                "summary": proposal.summary,
                "description": proposal.description,
                "type": proposal.type,
                "scope": proposal.scope,
                "breaking": proposal.breaking,
                "issues": list(proposal.issues),
                "files": list(files if files is not None else proposal.files),
            }
        )
        self.save_history(repo_name, history[-limit:])

    # ------------------------------------------------------------------
    # Generation records
    # ------------------------------------------------------------------
    def save_generation(
        self,
        repo_name: str,
        generation: Dict[str, Any],
        accepted: bool = False,
        request: Optional[Dict[str, Any]] = None,
        model: Optional[str] = None,
    ) -> Optional[str]:
        """Write a generation record and return its id (the file name).

        Returns ``None`` if the record could not be written.
        """
        moment = _now()
        stem = moment.strftime("%Y-%m-%d-%H-%M-%S")
        record = {
            "timestamp": _iso(moment),
            "repository": repo_name,
            "accepted": accepted,
            "request": request,
            "generation": generation,
            "metadata": {
                "model": model,
                "provider": self.provider,
                "version": self.version,
            },
        }
        try:
            self._ensure_directories()
            path = self.generations_dir / f"{stem}.json"
            counter = 1
            while path.exists():
                path = self.generations_dir / f"{stem}-{counter}.json"
                counter += 1
            path.write_text(json.dumps(record, indent=2), encoding="utf-8")
        except OSError as exc:
            logger.error("Failed to save generation: %s", exc)
            return None
        logger.info("Generation saved: %s", path.name)
        return path.name

    def update_status(self, record_id: Optional[str], accepted: bool = True) -> None:
        """Mark a generation record as accepted or rejected."""
        if not record_id:
            return
        path = self.generations_dir / record_id
        if not path.exists():
            return
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            data["accepted"] = accepted
            data["acceptedAt"] = _iso(_now())
            path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        except (OSError, json.JSONDecodeError) as exc:
            logger.error("Failed to update generation status: %s", exc)
            return
        logger.info("Generation status updated: %s", record_id)

    def generation_stats(self, repo_name: Optional[str] = None) -> Dict[str, Any]:
        """Count accepted and rejected generations."""
        records = []
        if self.generations_dir.exists():
            for path in sorted(self.generations_dir.glob("*.json")):
                try:
                    records.append(json.loads(path.read_text(encoding="utf-8")))
                except (OSError, json.JSONDecodeError):
                    continue
        if repo_name is not None:
            records = [r for r in records if r.get("repository") == repo_name]

        total = len(records)
        accepted = sum(1 for r in records if r.get("accepted"))
        return {
            "total": total,
            "accepted": accepted,
            "rejected": total - accepted,
            "acceptance_rate": round(accepted / total * 100, 1) if total else 0.0,
        }

    def clean(self) -> None:
        """Delete history files and generation records (not the config)."""
        try:
            for directory in (self.history_dir, self.generations_dir):
                if directory.exists():
                    for path in directory.glob("*.json"):
                        path.unlink()
        except OSError as exc:
            logger.error("Failed to clean history data: %s", exc)
            return
        logger.info("History data cleaned")
