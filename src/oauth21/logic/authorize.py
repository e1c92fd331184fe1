"""Authorization code grant, front channel leg."""

from __future__ import annotations

import logging

from sqlalchemy.exc import NoResultFound

from oauth21.core.models import (
    GrantType,
    OAuthErrorCode,
    OAuthErrorResult,
    PkceMethod,
)
from oauth21.core.settings import OAuthSettings, PkceSettings
from oauth21.db.sql import OAuthDB

from .clients import client_from_row
from .pkce import validate_pkce_parameters
from .utils import add_query_parameters, validate_scope

logger = logging.getLogger(__name__)


async def initiate_authorization(
    client_id: str,
    redirect_uri: str | None,
    response_type: str,
    scope: str,
    state: str | None,
    code_challenge: str | None,
    code_challenge_method: str | None,
    user_id: str,
    oauth_db: OAuthDB,
    pkce_settings: PkceSettings,
    oauth_settings: OAuthSettings,
) -> str | OAuthErrorResult:
    """Issue an authorization code for an authenticated user.

    Returns the URL to redirect the user agent to. Errors are only
    redirected once the redirect URI is known to belong to the client,
    otherwise they are returned to be shown to the user directly.
    """
    try:
        client = client_from_row(await oauth_db.get_client(client_id))
    except NoResultFound:
        return OAuthErrorResult(
            error=OAuthErrorCode.invalid_client,
            error_description="Client identifier is invalid",
        )

    if redirect_uri is None and len(client.redirect_uris) == 1:
        redirect_uri = client.redirect_uris[0]
    if redirect_uri is None or redirect_uri not in client.redirect_uris:
        logger.warning(
            "Unregistered redirect URI %r for client %s", redirect_uri, client_id
        )
        return OAuthErrorResult(
            error=OAuthErrorCode.invalid_request,
            error_description="Invalid redirect URI",
        )

    def redirect_error(error: OAuthErrorCode, description: str) -> str:
        return add_query_parameters(
            redirect_uri,
            error=str(error),
            error_description=description,
            state=state,
        )

    if response_type != "code":
        return redirect_error(
            OAuthErrorCode.unsupported_response_type,
            f"Unsupported response type: {response_type}",
        )

    if GrantType.authorization_code not in client.grant_types:
        return redirect_error(
            OAuthErrorCode.unauthorized_client,
            "Client is not authorized to use the authorization code grant",
        )

    if error := validate_scope(scope, oauth_settings):
        return redirect_error(error.error, error.error_description or "")

    result = validate_pkce_parameters(
        client,
        pkce_settings,
        code_challenge=code_challenge,
        code_challenge_method=code_challenge_method,
    )
    if not result.valid:
        return redirect_error(OAuthErrorCode.invalid_request, "Invalid PKCE parameters")

    if code_challenge and code_challenge_method is None:
        # RFC 7636 §4.3
        code_challenge_method = PkceMethod.plain

    code = await oauth_db.insert_authorization_code(
        client_id,
        user_id,
        redirect_uri,
        scope,
        code_challenge or None,
        code_challenge_method if code_challenge else None,
        oauth_settings.authorization_code_lifetime_seconds,
    )
    logger.info("Authorization code issued to client %s for %s", client_id, user_id)
    return add_query_parameters(redirect_uri, code=code, state=state)
