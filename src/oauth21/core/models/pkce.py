from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel


class PkceMethod(StrEnum):
    """Code challenge methods of RFC 7636 §4.2."""

    S256 = "S256"
    plain = "plain"


class EnforcedPkceMethod(StrEnum):
    """Which challenge method native clients are held to."""

    off = "off"
    S256 = "S256"
    plain = "plain"


class PkceValidationResult(BaseModel):
    valid: bool
    errors: list[str] = []
    warnings: list[str] = []
    # Whether the native app (RFC 8252) rules were applied
    enhanced_applied: bool = False
