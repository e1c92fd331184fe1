"""Human friendly user codes for the device authorization grant.

RFC 8628 §6.1 recommends short codes drawn from a charset without
characters that are easily confused when read aloud or typed, e.g.
``0``/``O`` or ``1``/``I``/``l``. Codes are shown to the user as
``XXXX-XXXX`` but stored and compared in their normalized form.
"""

from __future__ import annotations

__all__ = (
    "AMBIGUOUS_CHARACTERS",
    "DEFAULT_USER_CODE_CHARSET",
    "MAX_GENERATION_ATTEMPTS",
    "format_user_code",
    "generate_user_code",
    "is_valid_user_code",
    "normalize_user_code",
)

import re
import secrets

DEFAULT_USER_CODE_CHARSET = "BCDFGHJKLMNPQRSTVWXYZ23456789"
# Codes are uppercase so the lowercase "l" never shows up
AMBIGUOUS_CHARACTERS = "01OI"
MAX_GENERATION_ATTEMPTS = 10
USER_CODE_CHUNK_SIZE = 4


def generate_user_code(length: int, charset: str = DEFAULT_USER_CODE_CHARSET) -> str:
    """Draw a raw (unformatted) user code from ``charset``."""
    return "".join(secrets.choice(charset) for _ in range(length))


def format_user_code(raw_code: str) -> str:
    """Insert a hyphen every four characters: ``BCDFGHJK`` -> ``BCDF-GHJK``."""
    return "-".join(
        raw_code[i : i + USER_CODE_CHUNK_SIZE]
        for i in range(0, len(raw_code), USER_CODE_CHUNK_SIZE)
    )


def normalize_user_code(user_code: str) -> str:
    """Uppercase and drop everything which is not alphanumeric.

    Users type codes with spaces, hyphens or in lowercase.
    """
    return re.sub(r"[^A-Z0-9]", "", user_code.upper())


def is_valid_user_code(
    user_code: str, length: int, charset: str = DEFAULT_USER_CODE_CHARSET
) -> bool:
    normalized = normalize_user_code(user_code)
    return len(normalized) == length and all(c in charset for c in normalized)
