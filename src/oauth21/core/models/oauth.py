from __future__ import annotations

from enum import StrEnum
from http import HTTPStatus

from pydantic import BaseModel
from typing_extensions import NotRequired, TypedDict


class TokenTypeHint(StrEnum):
    """Token type hints for RFC7009 revocation and RFC7662 introspection."""

    access_token = "access_token"  # noqa: S105
    refresh_token = "refresh_token"  # noqa: S105


class GrantType(StrEnum):
    """Grant types for OAuth2."""

    authorization_code = "authorization_code"
    device_code = "urn:ietf:params:oauth:grant-type:device_code"
    refresh_token = "refresh_token"  # noqa: S105   # False positive of Bandit about hard coded password


class ClientKind(StrEnum):
    """Kind of client as seen by the RFC 8252 native app rules."""

    web = "web"
    native = "native"
    unknown = "unknown"


class OAuthErrorCode(StrEnum):
    """Error codes of RFC 6749 §5.2, RFC 8628 §3.5 and RFC 7009."""

    invalid_request = "invalid_request"
    invalid_client = "invalid_client"
    invalid_grant = "invalid_grant"
    invalid_scope = "invalid_scope"
    unauthorized_client = "unauthorized_client"
    unsupported_grant_type = "unsupported_grant_type"
    unsupported_response_type = "unsupported_response_type"
    authorization_pending = "authorization_pending"
    slow_down = "slow_down"
    access_denied = "access_denied"
    expired_token = "expired_token"  # noqa: S105
    server_error = "server_error"


class OAuthClient(BaseModel):
    """A registered client, as consumed by the core (read only)."""

    client_id: str
    is_confidential: bool = False
    redirect_uris: list[str] = []
    grant_types: list[str] = []
    enhanced_pkce_disabled: bool = False


class OAuthErrorResult(BaseModel):
    """The outcome of a protocol operation that did not succeed.

    Flow-state errors (``authorization_pending``, ``slow_down``...) are
    expected outcomes, so they are returned to the caller as values
    rather than raised.
    """

    error: OAuthErrorCode
    error_description: str | None = None
    status_code: int = HTTPStatus.BAD_REQUEST

    def to_response(self) -> dict[str, str]:
        data = {"error": str(self.error)}
        if self.error_description:
            data["error_description"] = self.error_description
        return data


class TokenResponse(BaseModel):
    # Based on RFC 6749
    access_token: str
    expires_in: int
    token_type: str = "Bearer"  # noqa: S105
    refresh_token: str | None = None
    scope: str | None = None


class IntrospectionResponse(TypedDict):
    """RFC 7662 §2.2 introspection response."""

    active: bool
    scope: NotRequired[str]
    client_id: NotRequired[str]
    username: NotRequired[str]
    sub: NotRequired[str]
    token_type: NotRequired[str]
    exp: NotRequired[int]
    iat: NotRequired[int]
    aud: NotRequired[str]
    iss: NotRequired[str]
    jti: NotRequired[str]
