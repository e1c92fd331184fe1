"""Settings for the core services."""

from __future__ import annotations

__all__ = (
    "SqlalchemyDsn",
    "ServiceSettingsBase",
    "OAuthSettings",
    "PkceSettings",
    "DeviceFlowSettings",
    "MetadataSettings",
)

import contextlib
import logging
from collections.abc import AsyncIterator
from typing import Annotated, Any, Self

from pydantic import AnyUrl, BeforeValidator, Field, UrlConstraints, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from oauth21.core.models import EnforcedPkceMethod
from oauth21.core.user_code import AMBIGUOUS_CHARACTERS, DEFAULT_USER_CODE_CHARSET

logger = logging.getLogger(__name__)


class SqlalchemyDsn(AnyUrl):
    _constraints = UrlConstraints(
        allowed_schemes=[
            "sqlite+aiosqlite",
            "mysql+aiomysql",
            "postgresql+asyncpg",
        ]
    )


class ServiceSettingsBase(BaseSettings):
    model_config = SettingsConfigDict(frozen=True)

    @classmethod
    def create(cls) -> Self:
        raise NotImplementedError("This should never be called")

    @contextlib.asynccontextmanager
    async def lifetime_function(self) -> AsyncIterator[None]:
        """A context manager that can be used to run code at startup and shutdown."""
        yield


class OAuthSettings(ServiceSettingsBase):
    """Settings for the token issuing, revocation and introspection endpoints."""

    model_config = SettingsConfigDict(env_prefix="OAUTH21_SERVICE_OAUTH_")

    # Base identifier of the authorization server, returned as "iss"
    issuer: str = "http://localhost:8000"

    access_token_lifetime_seconds: int = Field(default=3600, gt=0)
    refresh_token_lifetime_seconds: int = Field(default=14 * 24 * 3600, gt=0)
    authorization_code_lifetime_seconds: int = Field(default=600, gt=0)

    # When empty, any syntactically valid scope is accepted
    scopes_supported: list[str] = []

    # Clients allowed to revoke tokens they do not own
    revocation_bypass_client_ids: set[str] = set()
    # Bearer tokens carrying this scope may introspect any token
    introspection_bypass_scope: str = "introspection:bypass"


def _fallback_enforced_method(value: Any) -> Any:
    """Unknown values are treated as S256 rather than refusing to start."""
    if value is None or (
        isinstance(value, str) and value not in EnforcedPkceMethod.__members__
    ):
        logger.warning(
            "Invalid enforced PKCE method %r, falling back to %s",
            value,
            EnforcedPkceMethod.S256,
        )
        return EnforcedPkceMethod.S256
    return value


class PkceSettings(ServiceSettingsBase):
    """Settings for the PKCE enhancement engine (RFC 7636 and RFC 8252)."""

    model_config = SettingsConfigDict(env_prefix="OAUTH21_SERVICE_PKCE_")

    enforced_method: Annotated[
        EnforcedPkceMethod, BeforeValidator(_fallback_enforced_method)
    ] = EnforcedPkceMethod.S256
    enhanced_pkce_enabled: bool = True

    @classmethod
    def create(cls) -> Self:
        return cls()


class DeviceFlowSettings(ServiceSettingsBase):
    """Settings for the device authorization grant (RFC 8628)."""

    model_config = SettingsConfigDict(env_prefix="OAUTH21_SERVICE_DEVICE_FLOW_")

    device_code_lifetime: int = Field(default=1800, gt=0)
    polling_interval: int = Field(default=5, ge=1)
    user_code_length: int = Field(default=8, ge=4, le=32)
    user_code_charset: str = DEFAULT_USER_CODE_CHARSET
    # Relative paths are resolved against the request base URL
    verification_uri: str = "/oauth/device"
    cleanup_retention_days: int = Field(default=7, ge=0)
    cleanup_batch_size: int = Field(default=1000, gt=0)

    @field_validator("user_code_charset")
    @classmethod
    def check_user_code_charset(cls, value: str) -> str:
        if len(set(value)) < 2:
            raise ValueError("user_code_charset needs at least 2 distinct characters")
        if not value.isalnum() or value.upper() != value:
            raise ValueError("user_code_charset must contain uppercase letters/digits")
        if ambiguous := set(value) & set(AMBIGUOUS_CHARACTERS):
            raise ValueError(
                f"user_code_charset contains ambiguous characters {sorted(ambiguous)}"
            )
        return value


class MetadataSettings(ServiceSettingsBase):
    """Optional fields of the RFC 8414 and RFC 9728 metadata documents."""

    model_config = SettingsConfigDict(env_prefix="OAUTH21_SERVICE_METADATA_")

    registration_endpoint: str | None = None
    service_documentation: str | None = None
    op_policy_uri: str | None = None
    op_tos_uri: str | None = None
    ui_locales_supported: list[str] = []

    resource_documentation: str | None = None
    resource_policy_uri: str | None = None
    resource_tos_uri: str | None = None

    @classmethod
    def create(cls) -> Self:
        return cls()
