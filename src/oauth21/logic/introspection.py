"""Token introspection (RFC 7662)."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.exc import NoResultFound

from oauth21.core.models import IntrospectionResponse, TokenTypeHint
from oauth21.core.settings import OAuthSettings
from oauth21.db.sql import OAuthDB

logger = logging.getLogger(__name__)


def _inactive() -> IntrospectionResponse:
    return {"active": False}


async def introspect_token(
    token_value: str,
    requester_id: str | None,
    has_bypass_permission: bool,
    oauth_db: OAuthDB,
    settings: OAuthSettings,
) -> IntrospectionResponse:
    """Describe a token to its owner.

    Tokens which do not exist, are not visible to the requester, are
    revoked or expired all get the very same ``{"active": False}``.
    """
    found: dict[TokenTypeHint, dict[str, Any]] = {}
    # Both lookups always run so the response time does not depend on
    # the kind of token
    for token_type in (TokenTypeHint.access_token, TokenTypeHint.refresh_token):
        try:
            found[token_type] = await oauth_db.get_token(token_value, token_type)
        except NoResultFound:
            pass

    token = found.get(TokenTypeHint.access_token) or found.get(
        TokenTypeHint.refresh_token
    )
    if token is None:
        return _inactive()

    if not has_bypass_permission and (
        requester_id is None or token["UserID"] != requester_id
    ):
        logger.info(
            "Introspection of token %s denied to %s", token["JTI"], requester_id
        )
        return _inactive()

    if token["Revoked"] or token["ExpiresAt"] <= datetime.now(tz=timezone.utc):
        return _inactive()

    response: IntrospectionResponse = {
        "active": True,
        "scope": token["Scope"],
        "client_id": token["ClientID"],
        "token_type": "Bearer",
        "exp": int(token["ExpiresAt"].timestamp()),
        "iat": int(token["CreationTime"].timestamp()),
        "aud": token["ClientID"],
        "iss": settings.issuer,
        "jti": str(token["JTI"]),
    }
    if token["UserID"]:
        response["username"] = token["UserID"]
        response["sub"] = token["UserID"]
    return response
