from __future__ import annotations

from fastapi import Request

from oauth21.core.models import ResourceMetadata, ServerMetadata
from oauth21.logic.metadata import get_resource_metadata as get_resource_metadata_bl
from oauth21.logic.metadata import get_server_metadata as get_server_metadata_bl
from oauth21.logic.metadata import validate_server_metadata

from .dependencies import MetadataSettings, OAuthSettings, PkceSettings
from .fastapi_classes import OAuth21Router

router = OAuth21Router()


@router.get("/oauth-authorization-server")
async def authorization_server_metadata(
    request: Request,
    oauth_settings: OAuthSettings,
    pkce_settings: PkceSettings,
    metadata_settings: MetadataSettings,
) -> ServerMetadata:
    """RFC 8414 authorization server metadata."""
    metadata = await get_server_metadata_bl(
        authorization_endpoint=str(request.url_for("authorize")),
        token_endpoint=str(request.url_for("token")),
        device_authorization_endpoint=str(request.url_for("device_authorization")),
        revocation_endpoint=str(request.url_for("revoke")),
        introspection_endpoint=str(request.url_for("introspect")),
        oauth_settings=oauth_settings,
        pkce_settings=pkce_settings,
        metadata_settings=metadata_settings,
    )
    validate_server_metadata(dict(metadata))
    return metadata


@router.get("/oauth-protected-resource")
async def protected_resource_metadata(
    oauth_settings: OAuthSettings,
    metadata_settings: MetadataSettings,
) -> ResourceMetadata:
    """RFC 9728 protected resource metadata."""
    return await get_resource_metadata_bl(oauth_settings, metadata_settings)
