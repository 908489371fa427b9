"""
Bounded-context excerpts around changed lines.

Instead of sending whole files to the language model, the assistant sends
only the lines surrounding each change. The changed lines are taken from
the new-file side of every hunk header in a unified diff, each one is
widened by a context radius, and overlapping or adjacent windows are
merged so that every source line is rendered at most once::

    [Contextual content - Total lines: 20]

    Lines 7-16:
    7: ...
    8: ...

:func:`extract_excerpt` is failure-absorbing: whatever goes wrong while
reading or parsing, it returns a placeholder string rather than raising.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


# Hunk headers look like ``@@ -10,7 +10,9 @@ optional section heading``
HUNK_HEADER_RE = re.compile(r"^@@\s+-(\d+)(?:,(\d+))?\s+\+(\d+)(?:,(\d+))?\s+@@")

MAX_FILE_SIZE = 100 * 1024
NEW_FILE_CHAR_LIMIT = 2000
FALLBACK_CHAR_LIMIT = 1000
DEFAULT_RADIUS = 10

BINARY_EXTENSIONS = frozenset(
    {
        ".jpg", ".jpeg", ".png", ".gif", ".bmp", ".svg", ".ico",
        ".mp3", ".wav", ".mp4", ".avi", ".mov", ".pdf", ".zip",
        ".tar", ".gz", ".exe", ".dll", ".so", ".dylib", ".bin",
        ".obj", ".o", ".a", ".lib", ".class", ".jar",
    }
)

NO_LINES_DETECTED = "[File modified but no specific lines detected]"
FILE_DELETED = "[File deleted or moved]"
BINARY_FILE = "[Binary file]"
NO_CONTEXT = "[No contextual content available]"


class DiffError(Exception):
    """Raised when a unified diff contains a malformed hunk header."""

    pass


@dataclass(frozen=True)
class ChangeHunk:
    """New-file line range covered by one hunk."""

    start: int
    count: int

    @property
    def lines(self) -> range:
        return range(self.start, self.start + self.count)


@dataclass(frozen=True)
class ContextWindow:
    """Inclusive, 1-based line range of an excerpt block."""

    start: int
    end: int


def is_binary_path(path: str) -> bool:
    """Return True if ``path`` has a well-known binary file extension."""
    return Path(path).suffix.lower() in BINARY_EXTENSIONS


def truncate(content: str, limit: int, note: str) -> str:
    if len(content) <= limit:
        return content
    return f"{content[:limit]}\n\n[{note}]"


def parse_hunks(diff_text: str) -> List[ChangeHunk]:
    """Parse every hunk header in ``diff_text``.

    An omitted new-side count means one line. A zero count (pure deletion)
    still yields the line the deletion sits next to, so the excerpt shows
    where code disappeared.

    Raises
    ------
    DiffError
        If a line starting with ``@@`` is not a valid hunk header.
    """
    hunks = []
    for line in diff_text.splitlines():
        if not line.startswith("@@"):
            continue
        match = HUNK_HEADER_RE.match(line)
        if match is None:
            raise DiffError(f"Malformed hunk header: {line!r}")
        start = int(match.group(3))
        count = int(match.group(4)) if match.group(4) is not None else 1
        hunks.append(ChangeHunk(start=max(start, 1), count=max(count, 1)))
    return hunks


def extract_changed_lines(diff_text: str) -> List[int]:
    """Return the sorted, de-duplicated new-file line numbers touched by the diff."""
    changed = set()
    for hunk in parse_hunks(diff_text):
        changed.update(hunk.lines)
    return sorted(changed)


def build_windows(changed_lines: Iterable[int], radius: int, total_lines: int) -> List[ContextWindow]:
    """Widen every changed line by ``radius``, clamped to the file bounds."""
    windows = []
    for line_number in changed_lines:
        start = max(1, line_number - radius)
        end = min(total_lines, line_number + radius)
        if start <= end:
            windows.append(ContextWindow(start, end))
    return windows


def merge_windows(windows: Iterable[ContextWindow]) -> List[ContextWindow]:
    """Union overlapping and adjacent windows.

    The result is sorted by start, and consecutive blocks are separated by
    at least one line that no window covers. Merging a merged list returns
    it unchanged.
    """
    merged: List[ContextWindow] = []
    for window in sorted(windows, key=lambda w: (w.start, w.end)):
        if merged and window.start <= merged[-1].end + 1:
            last = merged[-1]
            merged[-1] = ContextWindow(last.start, max(last.end, window.end))
        else:
            merged.append(window)
    return merged


def render_blocks(blocks: List[ContextWindow], lines: List[str]) -> str:
    """Render merged blocks as numbered source lines."""
    if not blocks:
        return NO_CONTEXT

    rendered = []
    for block in blocks:
        body = "\n".join(
            f"{number}: {lines[number - 1] if number <= len(lines) else ''}"
            for number in range(block.start, block.end + 1)
        )
        rendered.append(f"Lines {block.start}-{block.end}:\n{body}")
    header = f"[Contextual content - Total lines: {len(lines)}]\n\n"
    return header + "\n...\n\n".join(rendered)


def extract(diff_text: str, full_content: str, radius: int = DEFAULT_RADIUS, is_new: bool = False) -> str:
    """Build the excerpt for one file from its diff and current content.

    New files are returned whole (capped at :data:`NEW_FILE_CHAR_LIMIT`)
    since every line is a change. A malformed diff falls back to the head
    of the raw content.
    """
    if is_new:
        return truncate(
            full_content,
            NEW_FILE_CHAR_LIMIT,
            f"Content truncated - showing first {NEW_FILE_CHAR_LIMIT} characters",
        )

    try:
        changed_lines = extract_changed_lines(diff_text or "")
    except DiffError as exc:
        logger.debug("Falling back to raw content: %s", exc)
        return truncate(full_content, FALLBACK_CHAR_LIMIT, "Content truncated due to diff parsing error")

    if not changed_lines:
        return NO_LINES_DETECTED

    lines = full_content.splitlines()
    blocks = merge_windows(build_windows(changed_lines, radius, len(lines)))
    return render_blocks(blocks, lines)


def extract_excerpt(file_path: Path, diff_text: str, radius: int = DEFAULT_RADIUS, is_new: bool = False) -> str:
    """Read ``file_path`` and return its excerpt, or a placeholder.

    Missing files, files over :data:`MAX_FILE_SIZE` and files with a binary
    extension are described rather than read.
    """
    try:
        if not file_path.is_file():
            return FILE_DELETED
        size = file_path.stat().st_size
        if size > MAX_FILE_SIZE:
            return f"[File too large: {round(size / 1024)}KB]"
        if is_binary_path(file_path.name):
            return BINARY_FILE
        content = file_path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        logger.warning("Could not read %s: %s", file_path, exc)
        return f"[Error reading file: {exc}]"

    return extract(diff_text, content, radius=radius, is_new=is_new)
