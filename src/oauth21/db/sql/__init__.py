from __future__ import annotations

__all__ = ("OAuthDB",)

from .oauth.db import OAuthDB
