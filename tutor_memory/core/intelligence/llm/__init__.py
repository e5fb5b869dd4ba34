# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Evaluator gateway using LiteLLM.

Components:
- LLMClient: bounded text completions against the configured provider
- EvaluatorGateway: completions that must answer with a JSON object

Example:
    >>> from tutor_memory.core.intelligence.llm import EvaluatorGateway, LLMClient
    >>> evaluator = EvaluatorGateway(LLMClient())
    >>> verdict = await evaluator.evaluate("Answer with JSON: {\\"ok\\": true}")
    >>> verdict["ok"]
    True
"""

from tutor_memory.core.intelligence.llm.client import LLMClient, LLMResponse
from tutor_memory.core.intelligence.llm.evaluator import (
    EvaluatorGateway,
    extract_json_object,
)

__all__ = [
    "EvaluatorGateway",
    "LLMClient",
    "LLMResponse",
    "extract_json_object",
]
