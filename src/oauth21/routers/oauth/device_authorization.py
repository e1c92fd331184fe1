"""Device authorization endpoint (RFC 8628 §3.1).

The device asks for a device code and a user code, shows the user code
and the verification URI to the user, and then polls the token endpoint
with the device code until the user has approved or denied the request
on a second device (see ``device_verification``).
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Form, Request

from oauth21.core.models import DeviceAuthorizationResponse, OAuthErrorResult
from oauth21.logic.device_flow import (
    request_device_authorization as request_device_authorization_bl,
)

from ..dependencies import DeviceFlowSettings, OAuthDB, OAuthSettings
from ..fastapi_classes import OAuth21Router
from ..utils.responses import NO_CACHE_HEADERS, no_cache_response, oauth_error_response

router = OAuth21Router()


@router.post("/device_authorization")
async def device_authorization(
    request: Request,
    oauth_db: OAuthDB,
    settings: DeviceFlowSettings,
    oauth_settings: OAuthSettings,
    client_id: Annotated[str | None, Form(description="OAuth2 client id")] = None,
    scope: Annotated[str, Form(description="Space separated scopes")] = "",
) -> DeviceAuthorizationResponse:
    """Start a device flow and return the codes to show to the user."""
    verification_uri = settings.verification_uri
    if verification_uri.startswith("/"):
        verification_uri = f"{str(request.base_url).rstrip('/')}{verification_uri}"

    result = await request_device_authorization_bl(
        client_id,
        scope,
        verification_uri,
        oauth_db,
        settings,
        oauth_settings,
    )
    if isinstance(result, OAuthErrorResult):
        return oauth_error_response(result, headers=NO_CACHE_HEADERS)  # type: ignore[return-value]
    return no_cache_response(result)  # type: ignore[return-value]
