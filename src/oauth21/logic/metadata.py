"""Discovery documents: RFC 8414 server metadata and RFC 9728 resource metadata."""

from __future__ import annotations

from typing import Any

from cachetools import TTLCache

from oauth21.core.exceptions import ConfigurationError
from oauth21.core.models import (
    EnforcedPkceMethod,
    GrantType,
    PkceMethod,
    ResourceMetadata,
    ServerMetadata,
)
from oauth21.core.settings import MetadataSettings, OAuthSettings, PkceSettings

REQUIRED_SERVER_METADATA = ("issuer", "response_types_supported")

_resource_metadata_cache: TTLCache = TTLCache(maxsize=16, ttl=3600)


def _drop_empty(document: dict[str, Any], required: tuple[str, ...]) -> dict[str, Any]:
    """Drop optional fields that are None or empty. Booleans are kept."""
    return {
        key: value
        for key, value in document.items()
        if key in required or isinstance(value, bool) or value not in (None, "", [])
    }


async def get_server_metadata(
    authorization_endpoint: str,
    token_endpoint: str,
    device_authorization_endpoint: str,
    revocation_endpoint: str,
    introspection_endpoint: str,
    oauth_settings: OAuthSettings,
    pkce_settings: PkceSettings,
    metadata_settings: MetadataSettings,
) -> ServerMetadata:
    """Authorization server metadata (RFC 8414 §2)."""
    if pkce_settings.enforced_method == EnforcedPkceMethod.S256:
        code_challenge_methods = [PkceMethod.S256.value]
    else:
        code_challenge_methods = [PkceMethod.S256.value, PkceMethod.plain.value]

    metadata = {
        "issuer": oauth_settings.issuer,
        "authorization_endpoint": authorization_endpoint,
        "token_endpoint": token_endpoint,
        "device_authorization_endpoint": device_authorization_endpoint,
        "revocation_endpoint": revocation_endpoint,
        "introspection_endpoint": introspection_endpoint,
        "response_types_supported": ["code"],
        "response_modes_supported": ["query"],
        "grant_types_supported": [grant.value for grant in GrantType],
        "scopes_supported": list(oauth_settings.scopes_supported),
        "token_endpoint_auth_methods_supported": [
            "client_secret_basic",
            "client_secret_post",
            "none",
        ],
        "revocation_endpoint_auth_methods_supported": [
            "client_secret_basic",
            "client_secret_post",
            "none",
        ],
        "introspection_endpoint_auth_methods_supported": ["bearer"],
        "code_challenge_methods_supported": code_challenge_methods,
        "registration_endpoint": metadata_settings.registration_endpoint,
        "service_documentation": metadata_settings.service_documentation,
        "op_policy_uri": metadata_settings.op_policy_uri,
        "op_tos_uri": metadata_settings.op_tos_uri,
        "ui_locales_supported": list(metadata_settings.ui_locales_supported),
    }
    return _drop_empty(metadata, REQUIRED_SERVER_METADATA)  # type: ignore[return-value]


def validate_server_metadata(metadata: dict[str, Any]) -> None:
    """:raises: ConfigurationError if a required field is missing"""
    if missing := [key for key in REQUIRED_SERVER_METADATA if not metadata.get(key)]:
        raise ConfigurationError(
            f"Server metadata is missing required fields: {', '.join(missing)}"
        )


async def get_resource_metadata(
    oauth_settings: OAuthSettings, metadata_settings: MetadataSettings
) -> ResourceMetadata:
    """Protected resource metadata (RFC 9728 §2), cached for an hour."""
    key = (oauth_settings.model_dump_json(), metadata_settings.model_dump_json())
    resource_metadata = _resource_metadata_cache.get(key)
    if resource_metadata is None:
        resource_metadata = _drop_empty(
            {
                "resource": oauth_settings.issuer,
                "authorization_servers": [oauth_settings.issuer],
                "bearer_methods_supported": ["header", "body", "query"],
                "scopes_supported": list(oauth_settings.scopes_supported),
                "resource_documentation": metadata_settings.resource_documentation,
                "resource_policy_uri": metadata_settings.resource_policy_uri,
                "resource_tos_uri": metadata_settings.resource_tos_uri,
            },
            ("resource", "authorization_servers", "bearer_methods_supported"),
        )
        _resource_metadata_cache[key] = resource_metadata
    return resource_metadata
