from __future__ import annotations

import re
from urllib.parse import urlencode

from oauth21.core.models import OAuthErrorCode, OAuthErrorResult
from oauth21.core.settings import OAuthSettings

# RFC 6749 §3.3: scope-token = 1*( %x21 / %x23-5B / %x5D-7E )
SCOPE_TOKEN_PATTERN = re.compile(r"^[\x21\x23-\x5B\x5D-\x7E]+$")


def parse_scope(scope: str | None) -> list[str]:
    """Split a space separated scope, dropping duplicates but keeping the order."""
    return list(dict.fromkeys((scope or "").split()))


def validate_scope(
    scope: str | None, settings: OAuthSettings
) -> OAuthErrorResult | None:
    """Check the scope syntax and, when configured, that every token is supported."""
    tokens = parse_scope(scope)
    if invalid := [t for t in tokens if not SCOPE_TOKEN_PATTERN.match(t)]:
        return OAuthErrorResult(
            error=OAuthErrorCode.invalid_scope,
            error_description=f"Malformed scope: {' '.join(invalid)}",
        )
    if settings.scopes_supported:
        if unsupported := [t for t in tokens if t not in settings.scopes_supported]:
            return OAuthErrorResult(
                error=OAuthErrorCode.invalid_scope,
                error_description=f"Unsupported scope: {' '.join(unsupported)}",
            )
    return None


def add_query_parameters(url: str, **params: str | None) -> str:
    """Append the non None ``params`` to the query string of ``url``."""
    query = urlencode({k: v for k, v in params.items() if v is not None})
    if not query:
        return url
    return f"{url}{'&' if '?' in url else '?'}{query}"
