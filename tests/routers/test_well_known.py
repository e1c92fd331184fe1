from __future__ import annotations

from oauth21.testing import ISSUER


def test_authorization_server_metadata(client_factory):
    with client_factory.unauthenticated() as client:
        r = client.get("/.well-known/oauth-authorization-server")
    assert r.status_code == 200, r.json()

    metadata = r.json()
    assert metadata["issuer"] == ISSUER
    assert metadata["authorization_endpoint"] == "http://testserver/oauth/authorize"
    assert metadata["token_endpoint"] == "http://testserver/oauth/token"
    assert metadata["device_authorization_endpoint"] == (
        "http://testserver/oauth/device_authorization"
    )
    assert metadata["revocation_endpoint"] == "http://testserver/oauth/revoke"
    assert metadata["introspection_endpoint"] == "http://testserver/oauth/introspect"
    assert metadata["response_types_supported"] == ["code"]
    assert metadata["code_challenge_methods_supported"] == ["S256"]
    assert "urn:ietf:params:oauth:grant-type:device_code" in (
        metadata["grant_types_supported"]
    )
    # Unset optional fields are left out
    assert "registration_endpoint" not in metadata
    assert "ui_locales_supported" not in metadata


def test_protected_resource_metadata(client_factory):
    with client_factory.unauthenticated() as client:
        r = client.get("/.well-known/oauth-protected-resource")
    assert r.status_code == 200, r.json()
    assert r.json() == {
        "resource": ISSUER,
        "authorization_servers": [ISSUER],
        "bearer_methods_supported": ["header", "body", "query"],
    }
