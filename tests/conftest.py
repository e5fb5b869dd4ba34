# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test types:
- Unit tests
- Integration tests (API with service doubles, no external services)
"""

from collections.abc import Generator
from datetime import datetime, timedelta
from typing import Any, Callable
from uuid import uuid4

import pytest

from tutor_memory.core.config import MemorySettings, clear_settings_cache
from tutor_memory.models.memory import MemoryKind, MemoryRecord
from tutor_memory.utils.datetime import utc_now

EMBEDDING_DIMENSION = 8


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )


# =============================================================================
# Environment Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def fresh_settings() -> Generator[None, None, None]:
    """Reload settings around every test so env patches take effect."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def memory_settings() -> MemorySettings:
    """Memory policy with small, fast values."""
    return MemorySettings(
        filter_batch_size=2,
        dedup_sample_size=3,
        evaluator_timeout=0.2,
        default_limit=10,
        candidate_pool_factor=3,
    )


# =============================================================================
# Helper Fixtures
# =============================================================================


@pytest.fixture
def sample_user_id() -> str:
    """Provide a sample user ID for testing."""
    return "brandon"


@pytest.fixture
def sample_embedding() -> list[float]:
    """Provide a vector of the test dimension."""
    return [0.1] * EMBEDDING_DIMENSION


@pytest.fixture
def make_record() -> Callable[..., MemoryRecord]:
    """Factory for MemoryRecord instances with sensible defaults."""

    def _make(
        content: str = "I'm a visual learner",
        *,
        user_id: str = "brandon",
        kind: MemoryKind = MemoryKind.USER_FACT,
        strength: float = 0.5,
        age: timedelta = timedelta(0),
        **overrides: Any,
    ) -> MemoryRecord:
        now: datetime = utc_now() - age
        fields: dict[str, Any] = {
            "id": str(uuid4()),
            "user_id": user_id,
            "kind": kind,
            "content": content,
            "summary": content[:100],
            "category": "personal_fact",
            "embedding": [0.1] * EMBEDDING_DIMENSION,
            "memory_strength": strength,
            "current_importance": strength,
            "created_at": now,
            "updated_at": now,
        }
        fields.update(overrides)
        return MemoryRecord(**fields)

    return _make
