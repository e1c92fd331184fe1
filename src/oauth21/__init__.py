"""OAuth 2.1 security core: PKCE, device flow, revocation and introspection."""

from __future__ import annotations
