"""Token endpoint implementation."""

from __future__ import annotations

__all__ = (
    "authenticate_client",
    "get_token",
    "issue_tokens",
    "verify_access_token",
)

import hmac
import logging
from datetime import datetime, timezone

from sqlalchemy.exc import NoResultFound

from oauth21.core.models import (
    GrantType,
    OAuthClient,
    OAuthErrorCode,
    OAuthErrorResult,
    TokenResponse,
    TokenTypeHint,
)
from oauth21.core.settings import DeviceFlowSettings, OAuthSettings, PkceSettings
from oauth21.db.sql import OAuthDB
from oauth21.db.sql.utils import hash

from .clients import client_from_row
from .device_flow import poll_device_token
from .issuance import issue_tokens, verify_access_token
from .pkce import validate_pkce_parameters
from .utils import parse_scope

logger = logging.getLogger(__name__)


def _missing(parameter: str) -> OAuthErrorResult:
    return OAuthErrorResult(
        error=OAuthErrorCode.invalid_request,
        error_description=f"Missing {parameter} parameter",
    )


def _invalid_grant(description: str) -> OAuthErrorResult:
    return OAuthErrorResult(
        error=OAuthErrorCode.invalid_grant, error_description=description
    )


async def authenticate_client(
    client_id: str, client_secret: str | None, oauth_db: OAuthDB
) -> OAuthClient | None:
    """Public clients are identified by their id alone,
    confidential ones must present their secret.
    """
    try:
        row = await oauth_db.get_client(client_id)
    except NoResultFound:
        return None

    if row["IsConfidential"]:
        if not client_secret or not row["SecretHash"]:
            return None
        if not hmac.compare_digest(hash(client_secret), row["SecretHash"]):
            logger.warning("Wrong secret presented for client %s", client_id)
            return None
    return client_from_row(row)


async def get_token(
    grant_type: str,
    client: OAuthClient,
    oauth_db: OAuthDB,
    oauth_settings: OAuthSettings,
    pkce_settings: PkceSettings,
    device_settings: DeviceFlowSettings,
    device_code: str | None = None,
    code: str | None = None,
    redirect_uri: str | None = None,
    code_verifier: str | None = None,
    refresh_token: str | None = None,
    scope: str | None = None,
) -> TokenResponse | OAuthErrorResult:
    """Dispatch a token request to the grant it is for."""
    try:
        grant = GrantType(grant_type)
    except ValueError:
        return OAuthErrorResult(
            error=OAuthErrorCode.unsupported_grant_type,
            error_description=f"Unsupported grant type: {grant_type}",
        )

    if grant not in client.grant_types:
        return OAuthErrorResult(
            error=OAuthErrorCode.unauthorized_client,
            error_description=f"Client is not authorized to use the {grant} grant",
        )

    if grant == GrantType.device_code:
        if not device_code:
            return _missing("device_code")
        return await poll_device_token(
            device_code, client.client_id, oauth_db, device_settings, oauth_settings
        )

    if grant == GrantType.authorization_code:
        if not code:
            return _missing("code")
        return await exchange_authorization_code(
            code,
            client,
            redirect_uri,
            code_verifier,
            oauth_db,
            oauth_settings,
            pkce_settings,
        )

    if not refresh_token:
        return _missing("refresh_token")
    return await rotate_refresh_token(
        refresh_token, client, scope, oauth_db, oauth_settings
    )


async def exchange_authorization_code(
    code: str,
    client: OAuthClient,
    redirect_uri: str | None,
    code_verifier: str | None,
    oauth_db: OAuthDB,
    oauth_settings: OAuthSettings,
    pkce_settings: PkceSettings,
) -> TokenResponse | OAuthErrorResult:
    """Exchange an authorization code, verifying its PKCE binding.

    The code is consumed before any check, a failed attempt burns it.
    """
    try:
        info = await oauth_db.consume_authorization_code(code)
    except NoResultFound:
        return _invalid_grant("Invalid authorization code")

    if info["ClientID"] != client.client_id:
        logger.warning(
            "Client %s presented a code issued to %s",
            client.client_id,
            info["ClientID"],
        )
        return _invalid_grant("Invalid authorization code")

    if info["ExpiresAt"] <= datetime.now(tz=timezone.utc):
        return _invalid_grant("Authorization code expired")

    if redirect_uri != info["RedirectURI"]:
        return _invalid_grant("Redirect URI mismatch")

    code_challenge = info["CodeChallenge"]
    if bool(code_challenge) != bool(code_verifier):
        logger.warning(
            "PKCE verification failed for client %s: %s",
            client.client_id,
            "missing code verifier" if code_challenge else "unexpected code verifier",
        )
        return _invalid_grant("PKCE verification failed")

    if code_challenge:
        result = validate_pkce_parameters(
            client,
            pkce_settings,
            code_challenge=code_challenge,
            code_challenge_method=info["CodeChallengeMethod"],
            code_verifier=code_verifier,
        )
        if not result.valid:
            return _invalid_grant("PKCE verification failed")

    return await issue_tokens(
        client.client_id, info["UserID"], info["Scope"], oauth_db, oauth_settings
    )


async def rotate_refresh_token(
    refresh_token: str,
    client: OAuthClient,
    scope: str | None,
    oauth_db: OAuthDB,
    oauth_settings: OAuthSettings,
) -> TokenResponse | OAuthErrorResult:
    """Refresh tokens are single use: the presented one is revoked
    and a new pair is issued, optionally with a narrower scope.
    """
    try:
        info = await oauth_db.get_token(refresh_token, TokenTypeHint.refresh_token)
    except NoResultFound:
        return _invalid_grant("Invalid refresh token")

    if info["ClientID"] != client.client_id:
        logger.warning(
            "Client %s presented a refresh token issued to %s",
            client.client_id,
            info["ClientID"],
        )
        return _invalid_grant("Invalid refresh token")

    if info["Revoked"]:
        logger.warning(
            "Revoked refresh token %s reused by client %s",
            info["JTI"],
            client.client_id,
        )
        return _invalid_grant("Invalid refresh token")

    if info["ExpiresAt"] <= datetime.now(tz=timezone.utc):
        return _invalid_grant("Refresh token expired")

    granted = parse_scope(info["Scope"])
    requested = parse_scope(scope) if scope else granted
    if not set(requested) <= set(granted):
        return OAuthErrorResult(
            error=OAuthErrorCode.invalid_scope,
            error_description="Requested scope exceeds the granted scope",
        )

    if not await oauth_db.revoke_token(TokenTypeHint.refresh_token, info["JTI"]):
        # Rotated concurrently
        return _invalid_grant("Invalid refresh token")

    return await issue_tokens(
        client.client_id,
        info["UserID"],
        " ".join(requested),
        oauth_db,
        oauth_settings,
    )
