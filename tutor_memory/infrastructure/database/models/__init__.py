# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy ORM models."""

from tutor_memory.infrastructure.database.models.base import Base, TimestampMixin
from tutor_memory.infrastructure.database.models.memory import MemoryRecordModel

__all__ = ["Base", "MemoryRecordModel", "TimestampMixin"]
