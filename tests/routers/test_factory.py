from __future__ import annotations

import pytest

from oauth21.core.exceptions import UserCodeGenerationError
from oauth21.core.settings import OAuthSettings, PkceSettings
from oauth21.db.sql import OAuthDB
from oauth21.db.sql.utils import SQLDBUnavailableError
from oauth21.testing import DEVICE_CLIENT_ID
from oauth21.testing.utils import ClientFactory


def test_missing_settings():
    with pytest.raises(NotImplementedError, match="requires"):
        ClientFactory([OAuthSettings(), PkceSettings()])


def test_db_unavailable(client_factory, monkeypatch):
    async def ping(self):
        raise SQLDBUnavailableError("Cannot ping the DB")

    monkeypatch.setattr(OAuthDB, "ping", ping)

    with client_factory.unauthenticated() as client:
        r = client.post(
            "/oauth/device_authorization", data={"client_id": DEVICE_CLIENT_ID}
        )
    assert r.status_code == 503, r.json()
    assert r.headers["Retry-After"] == "10"
    # Not an OAuth error, clients must not give up on the flow
    assert "error" not in r.json()


def test_user_code_exhaustion(client_factory, monkeypatch):
    async def insert_device_code(self, *args, **kwargs):
        raise UserCodeGenerationError(
            "Unable to generate unique user code after maximum attempts"
        )

    monkeypatch.setattr(OAuthDB, "insert_device_code", insert_device_code)

    with client_factory.unauthenticated() as client:
        r = client.post(
            "/oauth/device_authorization", data={"client_id": DEVICE_CLIENT_ID}
        )
    assert r.status_code == 500, r.json()
    assert r.json() == {
        "error": "server_error",
        "error_description": (
            "Unable to generate unique user code after maximum attempts"
        ),
    }
