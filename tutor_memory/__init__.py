"""Tutor Memory Backend.

Adaptive long-term memory for an AI tutor: decides what is worth remembering
about a student, scores and decays memory importance, stores memories for
semantic lookup and serves ranked context to chat, voice and cooperating
applications.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "1.0.0"
