# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""LLM client using LiteLLM for multi-provider support.

API keys and endpoints are passed directly to LiteLLM's acompletion()
rather than through environment variables.

Supported providers:
- Ollama: Local or remote LLM inference
- OpenAI: GPT-4o family
- Anthropic: Claude models
- Google: Gemini models

Example:
    >>> from tutor_memory.core.intelligence.llm import LLMClient
    >>> client = LLMClient()
    >>> response = await client.complete("Is this worth remembering?")
    >>> print(response.content)
"""

import asyncio
import logging
from dataclasses import dataclass, field

import litellm
from litellm import acompletion

from tutor_memory.core.config.settings import LLMSettings, get_settings
from tutor_memory.core.exceptions import MalformedResponseError
from tutor_memory.core.intelligence.errors import translate_provider_error

logger = logging.getLogger(__name__)


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
    raw_response: object | None = field(default=None, repr=False)

    @property
    def total_tokens(self) -> int:
        """Get total tokens used (input + output)."""
        return self.tokens_input + self.tokens_output


class LLMClient:
    """Client for LLM completions via LiteLLM.

    Every completion is bounded twice: LiteLLM's own request timeout and an
    outer asyncio.wait_for that also covers retries.

    Attributes:
        model: Default model to use for completions.
        timeout: Request timeout in seconds.
        max_retries: Maximum retry attempts.
    """

    def __init__(
        self,
        model: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        llm_settings: LLMSettings | None = None,
    ):
        """Initialize the LLM client.

        Args:
            model: Default model in LiteLLM format. Falls back to settings.
            timeout: Request timeout in seconds. Falls back to settings.
            max_retries: Maximum retry attempts. Falls back to settings.
            llm_settings: LLM configuration. Uses get_settings() if None.
        """
        self._settings = llm_settings or get_settings().llm

        self._model = model or self._settings.get_default_model()
        self._timeout = timeout or self._settings.request_timeout
        self._max_retries = (
            max_retries if max_retries is not None else self._settings.max_retries
        )
        self._provider_params = self._settings.get_provider_params()

        litellm.set_verbose = False
        litellm.drop_params = True

        logger.info(
            "LLMClient initialized with model=%s, timeout=%.1fs, max_retries=%d",
            self._model,
            self._timeout,
            self._max_retries,
        )

    @property
    def model(self) -> str:
        """Get the default model."""
        return self._model

    @property
    def timeout(self) -> float:
        """Get the request timeout in seconds."""
        return self._timeout

    async def complete(
        self,
        prompt: str,
        model: str | None = None,
        system_prompt: str | None = None,
        temperature: float = 0.3,
        max_tokens: int = 512,
        timeout: float | None = None,
        **kwargs,
    ) -> LLMResponse:
        """Generate a completion for the given prompt.

        Args:
            prompt: User prompt text.
            model: Override default model for this request.
            system_prompt: Optional system prompt to set context.
            temperature: Sampling temperature (0-2).
            max_tokens: Maximum tokens to generate.
            timeout: Override the request timeout for this call.
            **kwargs: Additional LiteLLM parameters.

        Returns:
            LLMResponse with generated content and metadata.

        Raises:
            UpstreamUnavailableError: Or one of its typed subclasses.
            ValueError: If prompt is empty.
        """
        if not prompt or not prompt.strip():
            raise ValueError("Prompt cannot be empty")

        use_model = model or self._model
        use_timeout = timeout or self._timeout

        chat_messages: list[dict[str, str]] = []
        if system_prompt:
            chat_messages.append({"role": "system", "content": system_prompt})
        chat_messages.append({"role": "user", "content": prompt})

        try:
            response = await asyncio.wait_for(
                acompletion(
                    model=use_model,
                    messages=chat_messages,
                    temperature=temperature,
                    max_tokens=max_tokens,
                    timeout=use_timeout,
                    num_retries=self._max_retries,
                    **self._provider_params,
                    **kwargs,
                ),
                timeout=use_timeout,
            )
        except Exception as e:
            logger.error(
                "Completion failed: model=%s, prompt_length=%d, error=%s",
                use_model,
                len(prompt),
                str(e),
            )
            raise translate_provider_error(e, "evaluator", use_model) from e

        choices = getattr(response, "choices", None) or []
        message = getattr(choices[0], "message", None) if choices else None
        if message is None:
            logger.error("Completion without a message: model=%s", use_model)
            raise MalformedResponseError(
                f"Completion from {use_model} has no message",
                upstream="evaluator",
            )

        content = message.content or ""
        finish_reason = choices[0].finish_reason or "stop"
        usage = getattr(response, "usage", None)
        tokens_input = getattr(usage, "prompt_tokens", 0) or 0
        tokens_output = getattr(usage, "completion_tokens", 0) or 0

        logger.debug(
            "Completion generated: model=%s, tokens_in=%d, tokens_out=%d",
            use_model,
            tokens_input,
            tokens_output,
        )

        return LLMResponse(
            content=content,
            model=use_model,
            tokens_input=tokens_input,
            tokens_output=tokens_output,
            finish_reason=finish_reason,
            raw_response=response,
        )
