"""Client-type detection (RFC 8252).

A native application runs on a device the user controls and receives the
authorization response either on a private-use URI scheme
(``com.example.app:/callback``) or on a loopback interface
(``http://127.0.0.1:51004/callback``). Such clients cannot keep a secret,
so PKCE is their only protection against authorization code
interception and stricter rules are applied to them.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Any

from oauth21.core.models import ClientKind, OAuthClient
from oauth21.core.settings import PkceSettings

# Private-use URI scheme, e.g. "myapp://callback" or "com.example.app:/cb"
CUSTOM_SCHEME_PATTERN = re.compile(r"^(?!https?:)[a-z][a-z0-9+.-]*:/{0,2}.+$", re.I)
LOOPBACK_PATTERNS = (
    re.compile(r"^https?://(127\.0\.0\.1|localhost)(:\d+)?(/.*)?$", re.I),
    re.compile(r"^https?://\[::1\](:\d+)?(/.*)?$", re.I),
)


def is_native_redirect_uri(uri: str) -> bool:
    """Whether ``uri`` is a custom scheme or a loopback redirect URI."""
    if CUSTOM_SCHEME_PATTERN.match(uri):
        return True
    return any(pattern.match(uri) for pattern in LOOPBACK_PATTERNS)


def classify_client(redirect_uris: Iterable[str], is_confidential: bool) -> ClientKind:
    """Classify a client from its registration.

    Without any redirect URI nothing can be said. A confidential client is
    never native, whatever its redirect URIs look like.
    """
    redirect_uris = list(redirect_uris)
    if not redirect_uris:
        return ClientKind.unknown
    if not is_confidential and any(map(is_native_redirect_uri, redirect_uris)):
        return ClientKind.native
    return ClientKind.web


def client_requires_enhanced_pkce(client: OAuthClient, settings: PkceSettings) -> bool:
    """Native clients get the enhanced rules unless disabled globally or per client."""
    if not settings.enhanced_pkce_enabled or client.enhanced_pkce_disabled:
        return False
    kind = classify_client(client.redirect_uris, client.is_confidential)
    return kind == ClientKind.native


def client_from_row(row: dict[str, Any]) -> OAuthClient:
    """Build the client model from a ``Clients`` row."""
    return OAuthClient(
        client_id=row["ClientID"],
        is_confidential=row["IsConfidential"],
        redirect_uris=row["RedirectURIs"],
        grant_types=row["GrantTypes"],
        enhanced_pkce_disabled=row["EnhancedPkceDisabled"],
    )
