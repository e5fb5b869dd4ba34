# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Cross-application memory sharing.

Components:
- CrossAppGateway: authenticates peers and serves them a user's context
- PeerMemoryClient: reads memories held by the cooperating application
- validation: user id, email, query and limit checks, constant-time compare
"""

from tutor_memory.core.sync.gateway import (
    CrossAppGateway,
    shape_response,
    verify_cross_app_secret,
)
from tutor_memory.core.sync.peer import PeerMemoryClient
from tutor_memory.core.sync.schemas import (
    CROSS_APP_SECRET_HEADER,
    CrossAppRetrieveRequest,
    CrossAppRetrieveResponse,
    ErrorResponse,
)

__all__ = [
    "CROSS_APP_SECRET_HEADER",
    "CrossAppGateway",
    "CrossAppRetrieveRequest",
    "CrossAppRetrieveResponse",
    "ErrorResponse",
    "PeerMemoryClient",
    "shape_response",
    "verify_cross_app_secret",
]
