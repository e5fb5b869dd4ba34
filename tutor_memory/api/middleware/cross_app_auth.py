# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Shared-secret authentication for cross-application endpoints.

A cooperating application proves it is trusted by sending the shared
secret in a header. The secret is compared in constant time.

Headers:
    X-Cross-App-Secret: The shared secret (required on protected paths)

Example:
    POST /api/v1/memories/retrieve
    X-Cross-App-Secret: 3f1c...e9
    {"user_id": "brandon", "query": "fractions"}
"""

import logging
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from tutor_memory.core.config import CrossAppSettings, get_settings
from tutor_memory.core.exceptions import AuthenticationError, ConfigurationError
from tutor_memory.core.sync import CROSS_APP_SECRET_HEADER, verify_cross_app_secret
from tutor_memory.utils.logging import bind_context, clear_context

logger = logging.getLogger(__name__)

# Path prefixes that require the shared secret
PROTECTED_PATH_PREFIXES = ("/api/v1/memories/",)


def _default_settings() -> CrossAppSettings:
    return get_settings().cross_app


class CrossAppAuthMiddleware(BaseHTTPMiddleware):
    """Rejects cross-app requests without the right shared secret.

    - secret not provisioned on this side: 500
    - header missing or wrong: 401

    Attributes:
        _get_settings: Callable returning the current cross-app settings.
    """

    def __init__(
        self,
        app: ASGIApp,
        get_cross_app_settings: Callable[[], CrossAppSettings] = _default_settings,
    ) -> None:
        """Initialize the middleware.

        Args:
            app: ASGI application.
            get_cross_app_settings: Returns the settings holding the secret.
                Read on every request.
        """
        super().__init__(app)
        self._get_settings = get_cross_app_settings

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Response],
    ) -> Response:
        """Check the shared secret on protected paths."""
        if not self._is_protected(request.url.path):
            return await call_next(request)

        # Tag every log line of this request with its origin
        clear_context()
        bind_context(
            cross_app_path=request.url.path,
            client=request.client.host if request.client else "unknown",
        )
        try:
            return await self._authenticate(request, call_next)
        finally:
            clear_context()

    async def _authenticate(
        self,
        request: Request,
        call_next: Callable[[Request], Response],
    ) -> Response:
        try:
            verify_cross_app_secret(
                request.headers.get(CROSS_APP_SECRET_HEADER),
                self._get_settings(),
            )
        except ConfigurationError as e:
            logger.error("Cross-app request refused: %s", e.message)
            return self._error_response("Server configuration error", 500)
        except AuthenticationError:
            logger.warning("Cross-app auth failed: missing or wrong secret")
            return self._error_response("Unauthorized", 401)

        return await call_next(request)

    @staticmethod
    def _is_protected(path: str) -> bool:
        return path.startswith(PROTECTED_PATH_PREFIXES)

    @staticmethod
    def _error_response(message: str, status_code: int) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            content={"error": message, "success": False},
        )
