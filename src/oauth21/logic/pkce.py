"""PKCE enhancement engine (RFC 7636, hardened for native apps per RFC 8252).

Validation never raises: the outcome is a ``PkceValidationResult`` which the
caller maps to ``invalid_request`` (authorization request) or
``invalid_grant`` (token request). The details of a failure are only
logged, the client gets a generic error.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import math
import re
from collections import Counter

from oauth21.core.models import (
    EnforcedPkceMethod,
    OAuthClient,
    PkceMethod,
    PkceValidationResult,
)
from oauth21.core.settings import PkceSettings

from .clients import client_requires_enhanced_pkce

logger = logging.getLogger(__name__)

MIN_LENGTH = 43
MAX_LENGTH = 128
MIN_VERIFIER_ENTROPY_BITS = 128

# RFC 7636 §4.1 unreserved characters
VERIFIER_PATTERN = re.compile(r"^[A-Za-z0-9_~.-]+$")
# base64url without padding
S256_CHALLENGE_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def compute_code_challenge(code_verifier: str, method: PkceMethod) -> str:
    if method == PkceMethod.plain:
        return code_verifier
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).decode().rstrip("=")


def calculate_entropy(code_verifier: str) -> float:
    """Shannon entropy of the character distribution times the length, in bits."""
    if not code_verifier:
        return 0.0
    length = len(code_verifier)
    per_char = sum(
        (count / length) * math.log2(length / count)
        for count in Counter(code_verifier).values()
    )
    return per_char * length


def _check_format(
    value: str, pattern: re.Pattern[str], name: str, errors: list[str]
) -> None:
    if not (MIN_LENGTH <= len(value) <= MAX_LENGTH) or not pattern.match(value):
        errors.append(f"Invalid code {name} format")


def _check_pairing(
    code_challenge: str, method: PkceMethod, code_verifier: str, errors: list[str]
) -> None:
    expected = compute_code_challenge(code_verifier, method)
    if not hmac.compare_digest(expected.encode(), code_challenge.encode()):
        errors.append("Code challenge does not match verifier")


def _parse_method(
    code_challenge_method: str | None, errors: list[str]
) -> PkceMethod | None:
    # RFC 7636 §4.3: defaults to "plain" when not present
    if code_challenge_method is None:
        return PkceMethod.plain
    try:
        return PkceMethod(code_challenge_method)
    except ValueError:
        errors.append(f"Unsupported challenge method: {code_challenge_method}")
        return None


def validate_pkce_parameters(
    client: OAuthClient,
    settings: PkceSettings,
    code_challenge: str | None = None,
    code_challenge_method: str | None = None,
    code_verifier: str | None = None,
) -> PkceValidationResult:
    """Validate the PKCE parameters of an authorization or token request.

    The authorization request supplies the challenge and its method, the
    token request supplies the verifier along with the stored challenge.

    Clients that are not native only get format checks (plus the pairing
    check when both values are known). Native clients additionally must
    send PKCE parameters, use S256, and use a verifier with at least 128
    bits of entropy.
    """
    enhanced = client_requires_enhanced_pkce(client, settings)
    errors: list[str] = []
    warnings: list[str] = []

    if enhanced and not code_challenge and not code_verifier:
        errors.append("PKCE parameters are mandatory for native clients")
        return _report(client, errors, warnings, enhanced)

    method = None
    if code_challenge or code_challenge_method is not None:
        method = _parse_method(code_challenge_method, errors)

    if enhanced and method == PkceMethod.plain:
        warnings.append("Plain method is not recommended for native clients")
        errors.append("Native clients must use S256 challenge method")
    elif (
        enhanced
        and method is not None
        and settings.enforced_method != EnforcedPkceMethod.off
        and method != PkceMethod.S256
    ):
        errors.append("Native clients must use S256 challenge method")

    if code_challenge:
        challenge_pattern = (
            VERIFIER_PATTERN if method == PkceMethod.plain else S256_CHALLENGE_PATTERN
        )
        _check_format(code_challenge, challenge_pattern, "challenge", errors)

    if code_verifier:
        _check_format(code_verifier, VERIFIER_PATTERN, "verifier", errors)
        if enhanced:
            entropy = calculate_entropy(code_verifier)
            if entropy < MIN_VERIFIER_ENTROPY_BITS:
                errors.append(
                    f"Code verifier entropy ({entropy:.0f} bits) below minimum "
                    f"requirement ({MIN_VERIFIER_ENTROPY_BITS} bits)"
                )

    if code_challenge and code_verifier and method is not None:
        _check_pairing(code_challenge, method, code_verifier, errors)

    return _report(client, errors, warnings, enhanced)


def _report(
    client: OAuthClient, errors: list[str], warnings: list[str], enhanced: bool
) -> PkceValidationResult:
    result = PkceValidationResult(
        valid=not errors,
        errors=errors,
        warnings=warnings,
        enhanced_applied=enhanced,
    )
    if result.valid:
        logger.info(
            "PKCE validation passed for client %s (enhanced: %s)",
            client.client_id,
            enhanced,
        )
    else:
        logger.warning(
            "PKCE validation failed for client %s (enhanced: %s): %s",
            client.client_id,
            enhanced,
            "; ".join(errors),
        )
    return result
