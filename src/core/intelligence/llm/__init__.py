# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""LLM client module using LiteLLM.

Example:
    >>> from src.core.intelligence.llm import LLMClient
    >>> client = LLMClient()
    >>> data = await client.complete_json("Return a JSON worksheet")
"""

from src.core.intelligence.llm.client import (
    LLMClient,
    LLMError,
    LLMResponse,
    parse_json_content,
)

__all__ = [
    "LLMClient",
    "LLMError",
    "LLMResponse",
    "parse_json_content",
]
