"""Helpers shared by the test suites: well known clients and PKCE pairs."""

from __future__ import annotations

__all__ = (
    "ADMIN_CLIENT_ID",
    "ADMIN_CLIENT_SECRET",
    "ALL_GRANTS",
    "DEVICE_CLIENT_ID",
    "ISSUER",
    "NATIVE_CLIENT_ID",
    "NATIVE_REDIRECT_URI",
    "WEB_CLIENT_ID",
    "WEB_CLIENT_SECRET",
    "WEB_REDIRECT_URI",
    "insert_test_clients",
    "make_code_verifier",
)

import secrets

from oauth21.core.models import GrantType
from oauth21.db.sql import OAuthDB

ISSUER = "https://auth.example.org"

# Public client running on the user's machine
NATIVE_CLIENT_ID = "native-cli"
NATIVE_REDIRECT_URI = "http://127.0.0.1:51004/callback"
# Confidential web application
WEB_CLIENT_ID = "web-portal"
WEB_CLIENT_SECRET = "web-portal-secret"  # noqa: S105
WEB_REDIRECT_URI = "https://portal.example.org/callback"
# Public client without any redirect URI, e.g. a TV app
DEVICE_CLIENT_ID = "smart-tv"
# Service allowed to revoke any token
ADMIN_CLIENT_ID = "admin-service"
ADMIN_CLIENT_SECRET = "admin-secret"  # noqa: S105

ALL_GRANTS = [grant.value for grant in GrantType]


async def insert_test_clients(oauth_db: OAuthDB) -> None:
    """Register the clients above. Must be called within a transaction."""
    await oauth_db.insert_client(
        NATIVE_CLIENT_ID,
        redirect_uris=[NATIVE_REDIRECT_URI],
        grant_types=ALL_GRANTS,
    )
    await oauth_db.insert_client(
        WEB_CLIENT_ID,
        secret=WEB_CLIENT_SECRET,
        redirect_uris=[WEB_REDIRECT_URI],
        grant_types=[GrantType.authorization_code, GrantType.refresh_token],
    )
    await oauth_db.insert_client(
        DEVICE_CLIENT_ID,
        grant_types=[GrantType.device_code, GrantType.refresh_token],
    )
    await oauth_db.insert_client(
        ADMIN_CLIENT_ID,
        secret=ADMIN_CLIENT_SECRET,
        grant_types=[GrantType.refresh_token],
    )


def make_code_verifier() -> str:
    """A verifier as RFC 7636 §4.1 recommends: 32 random bytes, base64url encoded."""
    return secrets.token_urlsafe(32)
