"""Introspection endpoint (RFC 7662)."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Form, status
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials

from oauth21.core.exceptions import OAuth21HttpResponseError
from oauth21.core.models import IntrospectionResponse
from oauth21.logic.introspection import introspect_token as introspect_token_bl

from ..dependencies import OAuthDB, OAuthSettings
from ..fastapi_classes import OAuth21Router
from ..utils.users import AuthorizedUserInfo, bearer_scheme, read_bearer_token

router = OAuth21Router()


async def verify_introspection_requester(
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(bearer_scheme)
    ],
    oauth_db: OAuthDB,
) -> AuthorizedUserInfo:
    requester = await read_bearer_token(credentials, oauth_db)
    if requester is None:
        raise OAuth21HttpResponseError(
            status_code=status.HTTP_401_UNAUTHORIZED,
            data={
                "error": "invalid_client",
                "error_description": "Authentication required",
            },
            headers={"WWW-Authenticate": "Bearer"},
        )
    return requester


@router.post("/introspect")
async def introspect(
    requester: Annotated[AuthorizedUserInfo, Depends(verify_introspection_requester)],
    oauth_db: OAuthDB,
    settings: OAuthSettings,
    token: Annotated[str | None, Form(description="The token to introspect")] = None,
    token_type_hint: Annotated[
        str | None,
        Form(description="access_token or refresh_token, informational only"),
    ] = None,
) -> IntrospectionResponse:
    """Tell whether a token is active and, if so, what it grants.

    Requesters only see their own tokens unless their token carries the
    introspection bypass scope.
    """
    if not token:
        raise OAuth21HttpResponseError(
            status_code=status.HTTP_400_BAD_REQUEST,
            data={
                "error": "invalid_request",
                "error_description": "Missing token parameter",
            },
        )

    return await introspect_token_bl(
        token,
        requester.sub,
        settings.introspection_bypass_scope in requester.scopes,
        oauth_db,
        settings,
    )


@router.get("/introspect", include_in_schema=False)
async def introspect_method_not_allowed() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        content={
            "error": "invalid_request",
            "error_description": "Introspection requires POST",
        },
        headers={"Allow": "POST"},
    )
