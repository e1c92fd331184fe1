"""Token endpoint."""

from __future__ import annotations

from typing import Annotated

from fastapi import Form

from oauth21.core.models import OAuthErrorResult, TokenResponse
from oauth21.logic.token import get_token as get_token_bl

from ..dependencies import DeviceFlowSettings, OAuthDB, OAuthSettings, PkceSettings
from ..fastapi_classes import OAuth21Router
from ..utils.clients import AuthenticatedClient
from ..utils.responses import NO_CACHE_HEADERS, no_cache_response, oauth_error_response

router = OAuth21Router()


@router.post("/token")
async def token(
    grant_type: Annotated[str, Form(description="OAuth2 Grant type")],
    client: AuthenticatedClient,
    oauth_db: OAuthDB,
    oauth_settings: OAuthSettings,
    pkce_settings: PkceSettings,
    device_settings: DeviceFlowSettings,
    device_code: Annotated[
        str | None, Form(description="device code for OAuth2 device flow")
    ] = None,
    code: Annotated[
        str | None, Form(description="Code for OAuth2 authorization code flow")
    ] = None,
    redirect_uri: Annotated[
        str | None,
        Form(description="redirect_uri used with OAuth2 authorization code flow"),
    ] = None,
    code_verifier: Annotated[
        str | None,
        Form(description="Verifier for the PKCE code challenge"),
    ] = None,
    refresh_token: Annotated[
        str | None,
        Form(description="Refresh token used with OAuth2 refresh token flow"),
    ] = None,
    scope: Annotated[
        str | None, Form(description="Narrower scope when refreshing")
    ] = None,
) -> TokenResponse:
    """Exchange a grant for an access token.

    This is also the endpoint polled by devices during the device flow.
    """
    result = await get_token_bl(
        grant_type,
        client,
        oauth_db,
        oauth_settings,
        pkce_settings,
        device_settings,
        device_code=device_code,
        code=code,
        redirect_uri=redirect_uri,
        code_verifier=code_verifier,
        refresh_token=refresh_token,
        scope=scope,
    )
    if isinstance(result, OAuthErrorResult):
        return oauth_error_response(result, headers=NO_CACHE_HEADERS)  # type: ignore[return-value]
    return no_cache_response(result.model_dump(exclude_none=True))  # type: ignore[return-value]
