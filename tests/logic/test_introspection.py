from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest

from oauth21.core.models import TokenTypeHint
from oauth21.db.sql import OAuthDB
from oauth21.logic.introspection import introspect_token
from oauth21.logic.issuance import issue_tokens
from oauth21.logic.revocation import revoke_token
from oauth21.testing import ISSUER, NATIVE_CLIENT_ID


@pytest.fixture
def introspect(with_clients: OAuthDB, oauth_settings):
    async def introspect(token, requester_id="alice", has_bypass_permission=False):
        async with with_clients as oauth_db:
            return await introspect_token(
                token, requester_id, has_bypass_permission, oauth_db, oauth_settings
            )

    return introspect


@pytest.fixture
def issue(with_clients: OAuthDB, oauth_settings):
    async def issue(user_id="alice"):
        async with with_clients as oauth_db:
            return await issue_tokens(
                NATIVE_CLIENT_ID, user_id, "openid profile", oauth_db, oauth_settings
            )

    return issue


async def test_active_token(with_clients: OAuthDB, introspect, issue, frozen_time):
    tokens = await issue()
    now = datetime.now(tz=timezone.utc)

    response = await introspect(tokens.access_token)
    async with with_clients as oauth_db:
        stored = await oauth_db.get_token(
            tokens.access_token, TokenTypeHint.access_token
        )
    assert response == {
        "active": True,
        "scope": "openid profile",
        "client_id": NATIVE_CLIENT_ID,
        "username": "alice",
        "sub": "alice",
        "token_type": "Bearer",
        "exp": int((now + timedelta(hours=1)).timestamp()),
        "iat": int(now.timestamp()),
        "aud": NATIVE_CLIENT_ID,
        "iss": ISSUER,
        "jti": str(stored["JTI"]),
    }

    # Refresh tokens can be introspected too
    response = await introspect(tokens.refresh_token)
    assert response["active"] is True
    assert response["exp"] == int((now + timedelta(days=14)).timestamp())


async def test_inactive_responses_are_identical(
    introspect, issue, with_clients, frozen_time
):
    expired = await issue()
    revoked = await issue()
    foreign = await issue(user_id="bob")

    async with with_clients as oauth_db:
        assert await revoke_token(revoked.access_token, NATIVE_CLIENT_ID, oauth_db)

    responses = [
        await introspect("nonexistent-token"),
        await introspect(foreign.access_token),
        await introspect(foreign.refresh_token),
        await introspect(revoked.access_token),
        await introspect(expired.access_token, requester_id=None),
    ]
    frozen_time.tick(timedelta(hours=2))
    responses.append(await introspect(expired.access_token))

    assert [json.dumps(r) for r in responses] == ['{"active": false}'] * 6


async def test_expired_token(introspect, issue, frozen_time):
    tokens = await issue()
    frozen_time.tick(timedelta(hours=1))
    assert await introspect(tokens.access_token) == {"active": False}
    # The refresh token lives longer
    assert (await introspect(tokens.refresh_token))["active"] is True


async def test_bypass(introspect, issue, with_clients: OAuthDB, oauth_settings):
    tokens = await issue(user_id="bob")
    response = await introspect(tokens.access_token, has_bypass_permission=True)
    assert response["active"] is True
    assert response["sub"] == "bob"

    # Tokens without resource owner are only visible with the bypass
    async with with_clients as oauth_db:
        client_tokens = await issue_tokens(
            NATIVE_CLIENT_ID, None, "openid", oauth_db, oauth_settings
        )
    assert await introspect(client_tokens.access_token, requester_id=None) == {
        "active": False
    }
    response = await introspect(client_tokens.access_token, has_bypass_permission=True)
    assert response["active"] is True
    assert "username" not in response
    assert "sub" not in response
