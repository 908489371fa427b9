"""
Language model integration for smartcommit.

This package contains the completion clients (:class:`OpenRouterClient`
and :class:`OllamaClient`), the :class:`RequestBuilder` which assembles
structured prompts, the response parser, and the
:class:`GenerationRetryEngine` which ties them together with retries.
"""

from .base import Completion, LLMError  # noqa: F401
from .generation_engine import (  # noqa: F401
    BackoffPolicy,
    GenerationError,
    GenerationInputs,
    GenerationRetryEngine,
)
from .ollama_client import OllamaClient  # noqa: F401
from .openrouter_client import OpenRouterClient  # noqa: F401
from .request_builder import RequestBuilder  # noqa: F401
