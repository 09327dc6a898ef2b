"""Share token generation and syntactic validation.

Tokens are lowercase hex drawn from the OS CSPRNG.  ``validate_token`` only
checks shape; whether a token exists is decided by a storage lookup.
"""

from __future__ import annotations

import re
import secrets

MIN_TOKEN_LENGTH = 8
DEFAULT_TOKEN_LENGTH = 12

_TOKEN_PATTERN = re.compile(r'[a-f0-9]+', re.IGNORECASE)


def generate_token(length: int = DEFAULT_TOKEN_LENGTH) -> str:
    """Return ``max(length, 8)`` random lowercase hex characters."""
    effective = max(length, MIN_TOKEN_LENGTH)
    # token_hex yields two characters per byte.
    return secrets.token_hex((effective + 1) // 2)[:effective]


def validate_token(token: object) -> bool:
    """True iff ``token`` is a hex string of at least 8 characters."""
    return (
        isinstance(token, str)
        and len(token) >= MIN_TOKEN_LENGTH
        and _TOKEN_PATTERN.fullmatch(token) is not None
    )
