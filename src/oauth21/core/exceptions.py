from __future__ import annotations

from http import HTTPStatus


class OAuth21HttpResponseError(RuntimeError):
    """Carry an RFC shaped JSON body (``{"error": ...}``) out of a route."""

    def __init__(self, status_code: int, data, headers: dict[str, str] | None = None):
        self.status_code = status_code
        self.data = data
        self.headers = headers


class OAuth21Error(RuntimeError):
    http_status_code = HTTPStatus.BAD_REQUEST  # 400
    http_headers: dict[str, str] | None = None
    # When set, the error is rendered as an RFC 6749 error response
    # with ``detail`` as the error_description
    oauth_error: str | None = None

    def __init__(self, detail: str = "Unknown"):
        self.detail = detail
        super().__init__(detail)


class ConfigurationError(OAuth21Error):
    """Used whenever we encounter a problem with the configuration."""

    http_status_code = HTTPStatus.INTERNAL_SERVER_ERROR
    oauth_error = "server_error"


class UserCodeGenerationError(ConfigurationError):
    """No unique user code could be generated.

    This only happens when the charset and length leave too few
    combinations for the number of active device codes.
    """


class InvalidCredentialsError(OAuth21Error):
    """The bearer token is missing, unknown, revoked or expired (RFC 6750 §3.1)."""

    http_status_code = HTTPStatus.UNAUTHORIZED
    http_headers = {"WWW-Authenticate": 'Bearer error="invalid_token"'}
    oauth_error = "invalid_token"
