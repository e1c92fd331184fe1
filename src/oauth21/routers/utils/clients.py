from __future__ import annotations

from typing import Annotated
from urllib.parse import unquote_plus

from fastapi import Depends, Form, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from oauth21.core.exceptions import OAuth21HttpResponseError
from oauth21.core.models import OAuthClient
from oauth21.logic.token import authenticate_client
from oauth21.routers.dependencies import OAuthDB

basic_scheme = HTTPBasic(auto_error=False, realm="oauth21")


async def verify_client(
    credentials: Annotated[HTTPBasicCredentials | None, Depends(basic_scheme)],
    oauth_db: OAuthDB,
    client_id: Annotated[
        str | None, Form(description="Client id, when not using HTTP Basic")
    ] = None,
    client_secret: Annotated[
        str | None, Form(description="Client secret, when not using HTTP Basic")
    ] = None,
) -> OAuthClient:
    """Authenticate the client with HTTP Basic (RFC 6749 §2.3.1) or form fields."""
    if credentials is not None:
        # The credentials are form-urlencoded before being base64 encoded
        client_id = unquote_plus(credentials.username)
        client_secret = unquote_plus(credentials.password) or None

    client = None
    if client_id:
        client = await authenticate_client(client_id, client_secret, oauth_db)
    if client is None:
        headers = None
        if credentials is not None:
            headers = {"WWW-Authenticate": 'Basic realm="oauth21"'}
        raise OAuth21HttpResponseError(
            status_code=status.HTTP_401_UNAUTHORIZED,
            data={
                "error": "invalid_client",
                "error_description": "Client authentication failed",
            },
            headers=headers,
        )
    return client


AuthenticatedClient = Annotated[OAuthClient, Depends(verify_client)]
