"""Authorization endpoint of the authorization code grant, with PKCE."""

from __future__ import annotations

from fastapi import status
from fastapi.responses import RedirectResponse

from oauth21.core.models import OAuthErrorResult
from oauth21.logic.authorize import (
    initiate_authorization as initiate_authorization_bl,
)

from ..dependencies import OAuthDB, OAuthSettings, PkceSettings
from ..fastapi_classes import OAuth21Router
from ..utils.responses import oauth_error_response
from ..utils.users import AuthorizedUser

router = OAuth21Router()


@router.get("/authorize")
async def authorize(
    response_type: str,
    client_id: str,
    user_info: AuthorizedUser,
    oauth_db: OAuthDB,
    pkce_settings: PkceSettings,
    oauth_settings: OAuthSettings,
    redirect_uri: str | None = None,
    scope: str = "",
    state: str | None = None,
    code_challenge: str | None = None,
    code_challenge_method: str | None = None,
) -> RedirectResponse:
    """Issue a code to the client for the authenticated user.

    The user is redirected back to the client, carrying either the code
    or an error. Errors which cannot be trusted to be redirected (unknown
    client, unregistered redirect URI) are answered directly.
    """
    result = await initiate_authorization_bl(
        client_id,
        redirect_uri,
        response_type,
        scope,
        state,
        code_challenge,
        code_challenge_method,
        user_info.sub,
        oauth_db,
        pkce_settings,
        oauth_settings,
    )
    if isinstance(result, OAuthErrorResult):
        return oauth_error_response(result)  # type: ignore[return-value]
    return RedirectResponse(result, status_code=status.HTTP_302_FOUND)
