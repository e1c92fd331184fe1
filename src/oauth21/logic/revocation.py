"""Token revocation (RFC 7009)."""

from __future__ import annotations

import logging

from sqlalchemy.exc import NoResultFound

from oauth21.core.models import TokenTypeHint
from oauth21.db.sql import OAuthDB

logger = logging.getLogger(__name__)


async def revoke_token(
    token_value: str | None,
    client_id: str,
    oauth_db: OAuthDB,
    bypass_ownership: bool = False,
) -> bool:
    """Revoke a token on behalf of ``client_id``.

    Unknown tokens count as revoked (RFC 7009 §2.2), so the answer does
    not tell whether a token exists. Only a token belonging to another
    client, without ``bypass_ownership``, gives False.
    """
    if not token_value:
        return True

    # The type hint is not trusted, both kinds are always searched
    for token_type in (TokenTypeHint.access_token, TokenTypeHint.refresh_token):
        try:
            token = await oauth_db.get_token(token_value, token_type)
        except NoResultFound:
            continue

        if token["ClientID"] != client_id and not bypass_ownership:
            logger.warning(
                "Client %s attempted to revoke %s %s owned by %s",
                client_id,
                token_type,
                token["JTI"],
                token["ClientID"],
            )
            return False

        if token["Revoked"]:
            return True

        await oauth_db.revoke_token(token_type, token["JTI"])
        if token_type == TokenTypeHint.refresh_token and token["AccessTokenJTI"]:
            # RFC 7009 §2.1: the access token of the same grant goes too
            await oauth_db.revoke_token(
                TokenTypeHint.access_token, token["AccessTokenJTI"]
            )
        logger.info(
            "Client %s revoked %s %s (bypass: %s)",
            client_id,
            token_type,
            token["JTI"],
            bypass_ownership,
        )
        return True

    logger.info("Client %s attempted to revoke an unknown token", client_id)
    return True
