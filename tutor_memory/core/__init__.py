# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Core package for the memory subsystem.

This package contains the business logic and shared utilities:
- config: Application configuration and settings
- intelligence: Embedding and evaluator gateways
- memory: Filter, scoring, storage and retrieval of memories
- sync: Cross-application memory sharing
"""
