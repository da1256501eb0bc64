# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Intelligence module for AI-powered operations.

LiteLLM is the unified interface for completions, enabling Ollama, OpenAI,
Anthropic, Google and other providers behind one client.

Example:
    >>> from src.core.intelligence import LLMClient
    >>> client = LLMClient()
    >>> response = await client.complete("Suggest a fine motor activity")
"""

from src.core.intelligence.llm import LLMClient, LLMError, LLMResponse

__all__ = [
    "LLMClient",
    "LLMError",
    "LLMResponse",
]
