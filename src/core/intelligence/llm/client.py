# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""LLM client using LiteLLM for multi-provider support.

The provider and model come from LLMSettings. API keys and endpoints are
passed directly to LiteLLM's acompletion() rather than through environment
variables, which LiteLLM 1.80+ needs for Ollama and custom endpoints.

Example:
    >>> from src.core.intelligence.llm import LLMClient
    >>> client = LLMClient()
    >>> response = await client.complete("Suggest a fine-motor activity")
    >>> print(response.content)
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional

import litellm
from litellm import acompletion

from src.core.config.settings import LLMSettings, get_settings

logger = logging.getLogger(__name__)

_JSON_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


@dataclass
class LLMResponse:
    """Response from an LLM completion.

    Attributes:
        content: The generated text content.
        model: The model that generated the response.
        tokens_input: Number of input tokens used.
        tokens_output: Number of output tokens generated.
        finish_reason: Why generation stopped (stop, length, etc.).
        raw_response: Original response object from LiteLLM.
    """

    content: str
    model: str
    tokens_input: int = 0
    tokens_output: int = 0
    finish_reason: str = "stop"
    raw_response: Optional[object] = field(default=None, repr=False)

    @property
    def total_tokens(self) -> int:
        """Get total tokens used (input + output)."""
        return self.tokens_input + self.tokens_output


class LLMError(Exception):
    """Exception raised when LLM operation fails.

    Attributes:
        message: Error description.
        model: Model that caused the error.
        error_code: Error code if available.
        original_error: Original exception if any.
    """

    def __init__(
        self,
        message: str,
        model: Optional[str] = None,
        error_code: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        self.message = message
        self.model = model
        self.error_code = error_code
        self.original_error = original_error
        super().__init__(self.message)


def parse_json_content(content: str) -> dict[str, Any]:
    """Parse a JSON object out of an LLM response.

    Markdown code fences are stripped. When the model wraps the object in
    prose, the outermost braces are used.

    Args:
        content: Raw completion text.

    Returns:
        The parsed JSON object.

    Raises:
        ValueError: If no JSON object can be parsed.
    """
    text = _JSON_FENCE.sub("", content.strip())
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        start = text.find("{")
        end = text.rfind("}")
        if start == -1 or end <= start:
            raise ValueError("Response contains no JSON object")
        parsed = json.loads(text[start : end + 1])

    if not isinstance(parsed, dict):
        raise ValueError("Response JSON is not an object")
    return parsed


class LLMClient:
    """Client for LLM operations via LiteLLM.

    Attributes:
        model: Default model to use for completions.
        timeout: Request timeout in seconds.
        max_retries: Maximum retry attempts inside LiteLLM.
    """

    def __init__(
        self,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        llm_settings: Optional[LLMSettings] = None,
    ):
        """Initialize the LLM client.

        Args:
            model: Model in LiteLLM format. Falls back to the provider default.
            timeout: Request timeout in seconds. Falls back to settings.
            max_retries: Maximum retry attempts. Falls back to settings.
            llm_settings: LLM configuration. Uses get_settings() if None.
        """
        self._settings = llm_settings or get_settings().llm
        self._model = model or self._settings.get_default_model()
        self._timeout = timeout or self._settings.request_timeout
        self._max_retries = max_retries if max_retries is not None else self._settings.max_retries

        litellm.set_verbose = False
        litellm.drop_params = True

        logger.debug(
            "LLMClient initialized with model=%s, timeout=%.1fs, max_retries=%d",
            self._model,
            self._timeout,
            self._max_retries,
        )

    @property
    def model(self) -> str:
        return self._model

    async def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        **kwargs: Any,
    ) -> LLMResponse:
        """Generate a completion for the given prompt.

        Args:
            prompt: User prompt text.
            system_prompt: Optional system prompt to set context.
            temperature: Sampling temperature (0-2).
            max_tokens: Maximum tokens to generate. Falls back to settings.
            **kwargs: Additional LiteLLM parameters.

        Returns:
            LLMResponse with generated content and metadata.

        Raises:
            LLMError: If generation fails after retries.
            ValueError: If prompt is empty.
        """
        if not prompt or not prompt.strip():
            raise ValueError("Prompt cannot be empty")

        chat_messages: list[dict[str, str]] = []
        if system_prompt:
            chat_messages.append({"role": "system", "content": system_prompt})
        chat_messages.append({"role": "user", "content": prompt})

        try:
            response = await acompletion(
                model=self._model,
                messages=chat_messages,
                temperature=temperature,
                max_tokens=max_tokens or self._settings.max_tokens,
                timeout=self._timeout,
                num_retries=self._max_retries,
                **self._settings.get_provider_params(),
                **kwargs,
            )
        except Exception as e:
            logger.error("LLM completion failed: model=%s, error=%s", self._model, str(e))
            raise LLMError(
                message=f"Completion failed: {e}",
                model=self._model,
                error_code=getattr(e, "status_code", None),
                original_error=e,
            ) from e

        content = response.choices[0].message.content or ""
        finish_reason = response.choices[0].finish_reason or "stop"
        usage = getattr(response, "usage", None)

        result = LLMResponse(
            content=content,
            model=self._model,
            tokens_input=getattr(usage, "prompt_tokens", 0) or 0,
            tokens_output=getattr(usage, "completion_tokens", 0) or 0,
            finish_reason=finish_reason,
            raw_response=response,
        )

        logger.debug(
            "Completion generated: model=%s, tokens_in=%d, tokens_out=%d",
            result.model,
            result.tokens_input,
            result.tokens_output,
        )
        return result

    async def complete_json(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> dict[str, Any]:
        """Generate a completion and parse it as a JSON object.

        Raises:
            LLMError: If generation fails or the output is not a JSON object.
        """
        response = await self.complete(
            prompt=prompt,
            system_prompt=system_prompt,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        try:
            return parse_json_content(response.content)
        except ValueError as e:
            raise LLMError(
                message=f"Model returned invalid JSON: {e}",
                model=self._model,
                error_code="invalid_json",
                original_error=e,
            ) from e
