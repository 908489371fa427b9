"""
Shared types for completion-service clients.

Every client exposes ``complete(model, prompt) -> Completion`` and raises
:class:`LLMError` on transport, HTTP or response-shape failures, so the
generation engine can treat providers interchangeably.
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass
from typing import Optional, Tuple


CONNECTION_TEST_PROMPT = 'Hello! Please respond with just "Hello from [your model name]!" and nothing else.'


class LLMError(Exception):
    """Raised when communication with the completion service fails."""

    pass


@dataclass(frozen=True)
class Completion:
    """Text returned by a completion service.

    ``model_used`` is the model the service reports having used, which can
    differ from the requested one when the provider routes requests.
    """

    text: str
    model_used: Optional[str] = None


def strip_thinking_tags(text: str) -> str:
    """Remove thinking process tags from LLM responses.

    Many modern LLMs with reasoning capabilities output their thinking
    process in XML-like tags such as <think>, <thinking>, <thought>,
    or <reasoning>. This function strips these tags and their contents
    from the response, leaving only the actual output.

    Examples
    --------
    >>> strip_thinking_tags("<think>reasoning...</think>Answer")
    'Answer'
    """
    thinking_patterns = [
        r'<think>.*?</think>',
        r'<thinking>.*?</thinking>',
        r'<thought>.*?</thought>',
        r'<reasoning>.*?</reasoning>',
    ]

    result = text
    for pattern in thinking_patterns:
        result = re.sub(pattern, '', result, flags=re.DOTALL | re.IGNORECASE)
    return result.strip()


def check_connection(client, model: str) -> Tuple[str, Optional[str], int]:
    """Send a trivial prompt and report ``(reply, model_used, elapsed_ms)``.

    Raises
    ------
    LLMError
        If the service cannot be reached.
    """
    started = time.monotonic()
    completion = client.complete(model, CONNECTION_TEST_PROMPT)
    elapsed_ms = int((time.monotonic() - started) * 1000)
    return completion.text.strip(), completion.model_used, elapsed_ms
