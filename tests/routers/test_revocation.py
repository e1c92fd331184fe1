from __future__ import annotations

from oauth21.testing import (
    ADMIN_CLIENT_ID,
    ADMIN_CLIENT_SECRET,
    NATIVE_CLIENT_ID,
    WEB_CLIENT_ID,
    WEB_CLIENT_SECRET,
)
from oauth21.testing.utils import USER_TOKEN


def is_active(client, token) -> bool:
    r = client.get(
        "/oauth/device",
        params={"user_code": "BCDF-GHJK"},
        headers={"Authorization": f"Bearer {token}"},
    )
    # 400 as the user code is unknown, but the token was accepted
    return r.status_code != 401


def test_client_authentication(client_factory):
    with client_factory.unauthenticated() as client:
        r = client.post("/oauth/revoke", data={"token": USER_TOKEN})
        assert r.status_code == 401, r.json()
        assert r.json()["error"] == "invalid_client"

        r = client.post(
            "/oauth/revoke",
            data={"token": USER_TOKEN},
            auth=(WEB_CLIENT_ID, "wrong-secret"),
        )
        assert r.status_code == 401, r.json()

        r = client.post("/oauth/revoke", data={"client_id": NATIVE_CLIENT_ID})
        assert r.status_code == 400, r.json()
        assert r.json() == {
            "error": "invalid_request",
            "error_description": "Missing token parameter",
        }

        assert is_active(client, USER_TOKEN)


def test_revoke(client_factory):
    with client_factory.unauthenticated() as client:
        # Unknown tokens are not told apart
        r = client.post(
            "/oauth/revoke",
            data={"client_id": NATIVE_CLIENT_ID, "token": "nonexistent-token"},
        )
        assert r.status_code == 200
        assert r.content == b""

        for _ in range(2):
            r = client.post(
                "/oauth/revoke",
                data={
                    "client_id": NATIVE_CLIENT_ID,
                    "token": USER_TOKEN,
                    "token_type_hint": "refresh_token",
                },
            )
            assert r.status_code == 200
            assert r.content == b""

        assert not is_active(client, USER_TOKEN)


def test_revoke_foreign_token(client_factory):
    with client_factory.unauthenticated() as client:
        # Same answer, but the token survives
        r = client.post(
            "/oauth/revoke",
            data={"token": USER_TOKEN},
            auth=(WEB_CLIENT_ID, WEB_CLIENT_SECRET),
        )
        assert r.status_code == 200
        assert r.content == b""
        assert is_active(client, USER_TOKEN)

        # Unless the client may revoke any token
        r = client.post(
            "/oauth/revoke",
            data={"token": USER_TOKEN},
            auth=(ADMIN_CLIENT_ID, ADMIN_CLIENT_SECRET),
        )
        assert r.status_code == 200
        assert not is_active(client, USER_TOKEN)
