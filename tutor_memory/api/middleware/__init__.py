# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""HTTP middleware."""

from tutor_memory.api.middleware.cross_app_auth import CrossAppAuthMiddleware

__all__ = ["CrossAppAuthMiddleware"]
