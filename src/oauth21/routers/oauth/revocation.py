"""Revocation endpoint (RFC 7009)."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Form, Response, status

from oauth21.core.exceptions import OAuth21HttpResponseError
from oauth21.logic.revocation import revoke_token as revoke_token_bl

from ..dependencies import OAuthDB, OAuthSettings
from ..fastapi_classes import OAuth21Router
from ..utils.clients import AuthenticatedClient

logger = logging.getLogger(__name__)

router = OAuth21Router()


@router.post("/revoke")
async def revoke(
    client: AuthenticatedClient,
    oauth_db: OAuthDB,
    settings: OAuthSettings,
    token: Annotated[str | None, Form(description="The token to revoke")] = None,
    token_type_hint: Annotated[
        str | None,
        Form(description="access_token or refresh_token, informational only"),
    ] = None,
) -> Response:
    """Revoke a token.

    The answer is the same whether the token existed or not.
    """
    if not token:
        raise OAuth21HttpResponseError(
            status_code=status.HTTP_400_BAD_REQUEST,
            data={
                "error": "invalid_request",
                "error_description": "Missing token parameter",
            },
        )

    bypass = client.client_id in settings.revocation_bypass_client_ids
    revoked = await revoke_token_bl(token, client.client_id, oauth_db, bypass)
    logger.info(
        "Revocation request from client %s (hint: %s, bypass: %s): %s",
        client.client_id,
        token_type_hint,
        bypass,
        "accepted" if revoked else "refused",
    )
    return Response(status_code=status.HTTP_200_OK)
