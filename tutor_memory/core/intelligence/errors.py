# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Translation of provider failures into the gateway error taxonomy."""

import asyncio

from litellm.exceptions import RateLimitError, Timeout

from tutor_memory.core.exceptions import (
    GatewayRateLimitedError,
    GatewayTimeoutError,
    UpstreamUnavailableError,
)


def translate_provider_error(
    error: Exception,
    upstream: str,
    model: str,
) -> UpstreamUnavailableError:
    """Map a raw provider exception onto a typed gateway error.

    Args:
        error: Exception raised by LiteLLM or asyncio.
        upstream: Name of the gateway (embedding, evaluator).
        model: Model the call was made against.

    Returns:
        The typed error to raise in place of the original.
    """
    if isinstance(error, UpstreamUnavailableError):
        return error
    if isinstance(error, (asyncio.TimeoutError, Timeout)):
        return GatewayTimeoutError(
            f"{upstream} call to {model} timed out",
            original_error=error,
            upstream=upstream,
        )
    if isinstance(error, RateLimitError):
        return GatewayRateLimitedError(
            f"{upstream} call to {model} was rate limited",
            original_error=error,
            upstream=upstream,
        )
    return UpstreamUnavailableError(
        f"{upstream} call to {model} failed",
        original_error=error,
        upstream=upstream,
    )
