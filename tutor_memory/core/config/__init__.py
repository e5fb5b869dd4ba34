# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Configuration package.

Example:
    >>> from tutor_memory.core.config import get_settings
    >>> settings = get_settings()
    >>> print(settings.environment)
    'development'
"""

from tutor_memory.core.config.settings import (
    APISettings,
    CrossAppSettings,
    DatabaseSettings,
    EmbeddingSettings,
    LLMSettings,
    MemorySettings,
    QdrantSettings,
    Settings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    "APISettings",
    "CrossAppSettings",
    "DatabaseSettings",
    "EmbeddingSettings",
    "LLMSettings",
    "MemorySettings",
    "QdrantSettings",
    "Settings",
    "clear_settings_cache",
    "get_settings",
]
