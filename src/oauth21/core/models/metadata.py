from __future__ import annotations

from typing_extensions import NotRequired, TypedDict


class ServerMetadata(TypedDict):
    """RFC 8414 authorization server metadata."""

    issuer: str
    authorization_endpoint: str
    token_endpoint: str
    device_authorization_endpoint: str
    revocation_endpoint: str
    introspection_endpoint: str
    response_types_supported: list[str]
    response_modes_supported: list[str]
    grant_types_supported: list[str]
    token_endpoint_auth_methods_supported: list[str]
    revocation_endpoint_auth_methods_supported: list[str]
    introspection_endpoint_auth_methods_supported: list[str]
    code_challenge_methods_supported: list[str]
    scopes_supported: NotRequired[list[str]]
    registration_endpoint: NotRequired[str]
    service_documentation: NotRequired[str]
    op_policy_uri: NotRequired[str]
    op_tos_uri: NotRequired[str]
    ui_locales_supported: NotRequired[list[str]]


class ResourceMetadata(TypedDict):
    """RFC 9728 protected resource metadata."""

    resource: str
    authorization_servers: list[str]
    bearer_methods_supported: list[str]
    scopes_supported: NotRequired[list[str]]
    resource_documentation: NotRequired[str]
    resource_policy_uri: NotRequired[str]
    resource_tos_uri: NotRequired[str]
