# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Run the memory API with uvicorn: python -m tutor_memory."""

import uvicorn

from tutor_memory.core.config import get_settings


def main() -> None:
    """Start the API server using APISettings."""
    settings = get_settings()
    uvicorn.run(
        "tutor_memory.api.app:create_app",
        factory=True,
        host=settings.api.host,
        port=settings.api.port,
        workers=1 if settings.api.reload else settings.api.workers,
        reload=settings.api.reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
