# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Model-provider gateways.

The memory subsystem consumes two capabilities from model providers:
- embed text, return a fixed-length vector (Embedder)
- evaluate a prompt, return a structured judgment (Evaluator)

Both are described as Protocols so that any implementation can be injected.
The LiteLLM-backed implementations live in the embeddings and llm packages.
"""

from tutor_memory.core.intelligence.protocols import Embedder, Evaluator

__all__ = ["Embedder", "Evaluator"]
