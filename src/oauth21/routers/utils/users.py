from __future__ import annotations

from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from oauth21.core.exceptions import InvalidCredentialsError
from oauth21.logic.issuance import verify_access_token
from oauth21.logic.utils import parse_scope
from oauth21.routers.dependencies import OAuthDB

# auto_error=False so that a missing token gets an RFC 6750 error
# rather than the default 403
bearer_scheme = HTTPBearer(auto_error=False)


class AuthorizedUserInfo(BaseModel):
    # raw token for propagation
    bearer_token: str
    token_id: str
    client_id: str
    sub: str | None = None
    scopes: list[str] = []


async def read_bearer_token(
    credentials: HTTPAuthorizationCredentials | None, oauth_db: OAuthDB
) -> AuthorizedUserInfo | None:
    """Resolve the bearer credentials to an active access token, if any."""
    if credentials is None:
        return None
    token = await verify_access_token(credentials.credentials, oauth_db)
    if token is None:
        return None
    return AuthorizedUserInfo(
        bearer_token=credentials.credentials,
        token_id=str(token["JTI"]),
        client_id=token["ClientID"],
        sub=token["UserID"],
        scopes=parse_scope(token["Scope"]),
    )


async def verify_user_access_token(
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(bearer_scheme)
    ],
    oauth_db: OAuthDB,
) -> AuthorizedUserInfo:
    """Authenticate the resource owner of a front channel request."""
    user_info = await read_bearer_token(credentials, oauth_db)
    if user_info is None or user_info.sub is None:
        raise InvalidCredentialsError("Missing, invalid or expired access token")
    return user_info


AuthorizedUser = Annotated[AuthorizedUserInfo, Depends(verify_user_access_token)]
