"""Models used to define the data structure of the requests and responses.

Shared between the services components (db, logic, routers).
"""

from __future__ import annotations

__all__ = [
    # OAuth
    "ClientKind",
    "GrantType",
    "IntrospectionResponse",
    "OAuthClient",
    "OAuthErrorCode",
    "OAuthErrorResult",
    "TokenResponse",
    "TokenTypeHint",
    # PKCE
    "EnforcedPkceMethod",
    "PkceMethod",
    "PkceValidationResult",
    # Device flow
    "DeviceAuthorizationResponse",
    "DeviceCodeCleanupReport",
    "DeviceCodeState",
    "DeviceCodeStatistics",
    "PendingDeviceAuthorization",
    # Metadata
    "ResourceMetadata",
    "ServerMetadata",
]

from .device_flow import (
    DeviceAuthorizationResponse,
    DeviceCodeCleanupReport,
    DeviceCodeState,
    DeviceCodeStatistics,
    PendingDeviceAuthorization,
)
from .metadata import ResourceMetadata, ServerMetadata
from .oauth import (
    ClientKind,
    GrantType,
    IntrospectionResponse,
    OAuthClient,
    OAuthErrorCode,
    OAuthErrorResult,
    TokenResponse,
    TokenTypeHint,
)
from .pkce import EnforcedPkceMethod, PkceMethod, PkceValidationResult
