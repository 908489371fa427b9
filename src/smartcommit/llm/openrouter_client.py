"""
Client for the OpenRouter chat-completions API.

Requests are sent to ``{base_url}/chat/completions`` with a bearer API
key. The generated text is taken from ``choices[0].message.content`` and
the routed model name from the top-level ``model`` field.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict

import requests

from smartcommit.llm.base import Completion, LLMError, strip_thinking_tags


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
REFERER = "https://github.com/niellevince/smartcommit"
TITLE = "SmartCommit"


@dataclass
class OpenRouterClient:
    """Client for OpenRouter.

    Parameters
    ----------
    api_key : str
        OpenRouter API key.
    base_url : str, optional
        API root, defaults to the public OpenRouter endpoint.
    request_timeout : float, optional
        Timeout in seconds for HTTP requests.
    max_tokens : int, optional
        Upper bound on generated tokens.
    temperature : float, optional
        Sampling temperature.
    """

    api_key: str
    base_url: str = DEFAULT_BASE_URL
    request_timeout: float = 60.0
    max_tokens: int = 2000
    temperature: float = 0.7

    provider = "openrouter"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "HTTP-Referer": REFERER,
            "X-Title": TITLE,
            "Content-Type": "application/json",
        }

    def complete(self, model: str, prompt: str) -> Completion:
        """Send ``prompt`` as a single user message to ``model``.

        Raises
        ------
        LLMError
            On connection failure, non-200 status or unexpected payload.
        """
        payload: Dict[str, Any] = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        url = f"{self.base_url.rstrip('/')}/chat/completions"
        logger.debug("Sending request to %s with model %s", url, model)
        try:
            response = requests.post(
                url,
                json=payload,
                headers=self._headers(),
                timeout=self.request_timeout,
            )
        except requests.RequestException as exc:
            logger.error("Failed to connect to OpenRouter: %s", exc)
            raise LLMError(str(exc)) from exc

        try:
            data = response.json()
        except (json.JSONDecodeError, ValueError) as exc:
            if response.status_code != 200:
                raise LLMError(f"OpenRouter returned status {response.status_code}: {response.text}") from exc
            logger.error("Failed to parse OpenRouter response: %s", exc)
            raise LLMError("Failed to parse OpenRouter response") from exc

        if response.status_code != 200:
            message = response.text
            if isinstance(data, dict) and isinstance(data.get("error"), dict):
                message = data["error"].get("message", message)
            logger.error("OpenRouter returned status %s: %s", response.status_code, message)
            raise LLMError(f"OpenRouter returned status {response.status_code}: {message}")

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise LLMError("Unexpected response structure from OpenRouter") from exc
        return Completion(strip_thinking_tags(content or ""), data.get("model", model))
