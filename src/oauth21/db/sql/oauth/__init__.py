from __future__ import annotations

__all__ = ("OAuthDB",)

from .db import OAuthDB
