# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Error taxonomy for the memory subsystem.

- ValidationError: bad input shape or pattern. Always client-facing (4xx).
- UpstreamUnavailableError: embedding, evaluator or store failure. Callers
  convert it into a documented fallback instead of propagating it.
- ConfigurationError: missing secret or credentials. Server-facing, reported
  separately from validation so operators can tell a bad request from a
  misconfigured deployment.
- AuthenticationError: a caller presented a missing or wrong shared secret.

An absence of memories is not an error; retrieval returns an empty context.
"""


class MemorySystemError(Exception):
    """Base exception for the memory subsystem.

    Attributes:
        message: Human-readable error description.
        original_error: The underlying exception, if any.
    """

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        """Initialize the error.

        Args:
            message: Human-readable error description.
            original_error: The underlying exception that caused this error.
        """
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.original_error:
            return f"{self.message}: {self.original_error}"
        return self.message


class ValidationError(MemorySystemError):
    """Raised when client input fails a shape or pattern check.

    Attributes:
        field: Name of the offending field, if known.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class ConfigurationError(MemorySystemError):
    """Raised when a required secret or credential is not provisioned."""


class UpstreamUnavailableError(MemorySystemError):
    """Raised when an upstream dependency cannot serve a request.

    Attributes:
        upstream: Name of the failing dependency (embedding, evaluator, store).
    """

    upstream: str = "upstream"

    def __init__(
        self,
        message: str,
        original_error: Exception | None = None,
        upstream: str | None = None,
    ) -> None:
        super().__init__(message, original_error)
        if upstream is not None:
            self.upstream = upstream


class GatewayTimeoutError(UpstreamUnavailableError):
    """The upstream call did not complete within its timeout."""


class GatewayRateLimitedError(UpstreamUnavailableError):
    """The upstream provider refused the call because of rate limits."""


class MalformedResponseError(UpstreamUnavailableError):
    """The upstream provider answered with an unusable payload."""


class StoreUnavailableError(UpstreamUnavailableError):
    """The database or vector store failed."""

    upstream = "store"


class AuthenticationError(MemorySystemError):
    """Raised when a caller presents a missing or wrong shared secret."""
