# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Input checks for cross-application requests."""

import hmac
import math
import re
from typing import Any

from tutor_memory.core.exceptions import ValidationError

USER_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

DEFAULT_LIMIT = 10


def validate_user_id(value: Any) -> str:
    """Accept only non-empty ids made of letters, digits, '_' and '-'.

    Raises:
        ValidationError: If the id is missing or has other characters.
    """
    if not isinstance(value, str) or not USER_ID_PATTERN.fullmatch(value):
        raise ValidationError("Invalid user_id format", field="user_id")
    return value


def validate_email(value: Any) -> str | None:
    """Accept a missing email or one shaped local@domain.tld.

    Raises:
        ValidationError: If the email is present but malformed.
    """
    if value is None:
        return None
    if not isinstance(value, str) or not EMAIL_PATTERN.fullmatch(value):
        raise ValidationError("Invalid email format", field="email")
    return value


def validate_query(value: Any, max_length: int = 2000) -> str | None:
    """Accept a missing query or a string of at most max_length characters.

    Blank queries are treated as missing.

    Raises:
        ValidationError: If the query is not a string or too long.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError("Query must be a string", field="query")
    if len(value) > max_length:
        raise ValidationError(
            f"Query too long (max {max_length} characters)",
            field="query",
        )
    return value if value.strip() else None


def clamp_limit(
    value: Any,
    minimum: int = 1,
    maximum: int = 100,
    default: int = DEFAULT_LIMIT,
) -> int:
    """Clamp a requested result count into [minimum, maximum].

    A missing limit becomes the default.

    Raises:
        ValidationError: If the limit is not a finite number.
    """
    if value is None:
        value = default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError("Limit must be a number", field="limit")
    if isinstance(value, float) and not math.isfinite(value):
        raise ValidationError("Limit must be a finite number", field="limit")
    return max(minimum, min(maximum, int(value)))


def email_local_part(email: str) -> str:
    """Lowercased part of an email before the '@'."""
    return email.split("@", 1)[0].lower()


def constant_time_compare(supplied: str, expected: str) -> bool:
    """Compare a supplied secret with the expected one in constant time.

    On a length mismatch the supplied value is still compared against
    itself, so the call takes comparable time whether the length or the
    content is wrong.
    """
    supplied_bytes = supplied.encode("utf-8")
    expected_bytes = expected.encode("utf-8")

    if len(supplied_bytes) != len(expected_bytes):
        hmac.compare_digest(supplied_bytes, supplied_bytes)
        return False

    return hmac.compare_digest(supplied_bytes, expected_bytes)
