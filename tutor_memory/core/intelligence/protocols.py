# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Capability protocols for the model-provider gateways."""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Embedder(Protocol):
    """Turns text into a fixed-length vector."""

    @property
    def dimension(self) -> int: ...

    async def embed_text(self, text: str) -> list[float]:
        """Embed a single text.

        Raises:
            UpstreamUnavailableError: On timeout, rate limit or provider error.
        """
        ...


@runtime_checkable
class Evaluator(Protocol):
    """Judges a prompt and answers with a JSON object."""

    async def evaluate(self, prompt: str) -> dict[str, Any]:
        """Evaluate a prompt.

        Raises:
            UpstreamUnavailableError: On timeout, rate limit, provider error
                or an answer that holds no JSON object.
        """
        ...
