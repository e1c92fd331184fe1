from __future__ import annotations

import logging

import pytest

from oauth21.core.models import TokenTypeHint
from oauth21.db.sql import OAuthDB
from oauth21.logic.issuance import issue_tokens
from oauth21.logic.revocation import revoke_token
from oauth21.testing import ADMIN_CLIENT_ID, NATIVE_CLIENT_ID, WEB_CLIENT_ID

ACCESS = TokenTypeHint.access_token
REFRESH = TokenTypeHint.refresh_token


@pytest.fixture
async def tokens(with_clients: OAuthDB, oauth_settings):
    async with with_clients as oauth_db:
        return await issue_tokens(
            NATIVE_CLIENT_ID, "alice", "openid", oauth_db, oauth_settings
        )


async def is_revoked(oauth_db: OAuthDB, token: str, token_type: TokenTypeHint):
    async with oauth_db as oauth_db:
        return (await oauth_db.get_token(token, token_type))["Revoked"]


async def test_unknown_token(with_clients: OAuthDB):
    async with with_clients as oauth_db:
        assert await revoke_token("nonexistent-token", NATIVE_CLIENT_ID, oauth_db)
        assert await revoke_token("", NATIVE_CLIENT_ID, oauth_db)
        assert await revoke_token(None, NATIVE_CLIENT_ID, oauth_db)


async def test_revoke_access_token(with_clients: OAuthDB, tokens):
    async with with_clients as oauth_db:
        assert await revoke_token(tokens.access_token, NATIVE_CLIENT_ID, oauth_db)
    assert await is_revoked(with_clients, tokens.access_token, ACCESS)
    # The refresh token of the grant is left alone
    assert not await is_revoked(with_clients, tokens.refresh_token, REFRESH)

    # Idempotent
    async with with_clients as oauth_db:
        assert await revoke_token(tokens.access_token, NATIVE_CLIENT_ID, oauth_db)
    assert await is_revoked(with_clients, tokens.access_token, ACCESS)


async def test_revoke_refresh_token(with_clients: OAuthDB, tokens):
    async with with_clients as oauth_db:
        assert await revoke_token(tokens.refresh_token, NATIVE_CLIENT_ID, oauth_db)
        assert await revoke_token(tokens.refresh_token, NATIVE_CLIENT_ID, oauth_db)

    assert await is_revoked(with_clients, tokens.refresh_token, REFRESH)
    # Along with the access token issued with it
    assert await is_revoked(with_clients, tokens.access_token, ACCESS)


async def test_foreign_token(with_clients: OAuthDB, tokens, caplog):
    with caplog.at_level(logging.WARNING, logger="oauth21.logic.revocation"):
        async with with_clients as oauth_db:
            assert not await revoke_token(tokens.access_token, WEB_CLIENT_ID, oauth_db)
            assert not await revoke_token(tokens.refresh_token, WEB_CLIENT_ID, oauth_db)
    assert WEB_CLIENT_ID in caplog.text
    assert not await is_revoked(with_clients, tokens.access_token, ACCESS)

    # Unless the client may revoke any token
    async with with_clients as oauth_db:
        assert await revoke_token(
            tokens.access_token, ADMIN_CLIENT_ID, oauth_db, bypass_ownership=True
        )
    assert await is_revoked(with_clients, tokens.access_token, ACCESS)
