# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API v1 routes package.

Modules:
    memory: Cross-app retrieve, status and feedback endpoints.
"""

from fastapi import APIRouter

from tutor_memory.api.v1 import memory

router = APIRouter(prefix="/api/v1")

router.include_router(memory.router, tags=["Memory"])

__all__ = ["router"]
