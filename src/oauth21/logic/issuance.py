"""Issuing and checking opaque bearer tokens.

Tokens are random strings, only their sha256 digest is stored so a leak
of the database does not leak usable tokens.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.exc import NoResultFound

from oauth21.core.models import TokenResponse, TokenTypeHint
from oauth21.core.settings import OAuthSettings
from oauth21.db.sql import OAuthDB

logger = logging.getLogger(__name__)


async def issue_tokens(
    client_id: str,
    user_id: str | None,
    scope: str,
    oauth_db: OAuthDB,
    settings: OAuthSettings,
) -> TokenResponse:
    """Create an access token and a refresh token bound to it."""
    access_token = secrets.token_urlsafe(32)
    access_token_jti = await oauth_db.insert_access_token(
        access_token,
        client_id,
        user_id,
        scope,
        settings.access_token_lifetime_seconds,
    )

    refresh_token = secrets.token_urlsafe(32)
    await oauth_db.insert_refresh_token(
        refresh_token,
        client_id,
        user_id,
        scope,
        settings.refresh_token_lifetime_seconds,
        access_token_jti=access_token_jti,
    )

    logger.info(
        "Issued access token %s to client %s for user %s",
        access_token_jti,
        client_id,
        user_id,
    )
    return TokenResponse(
        access_token=access_token,
        expires_in=settings.access_token_lifetime_seconds,
        refresh_token=refresh_token,
        scope=scope or None,
    )


async def verify_access_token(
    token_value: str, oauth_db: OAuthDB
) -> dict[str, Any] | None:
    """Return the stored access token if it is neither revoked nor expired."""
    try:
        token = await oauth_db.get_token(token_value, TokenTypeHint.access_token)
    except NoResultFound:
        return None
    if token["Revoked"] or token["ExpiresAt"] <= datetime.now(tz=timezone.utc):
        return None
    return token
