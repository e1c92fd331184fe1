from __future__ import annotations

import logging
import secrets
import string

import pytest

from oauth21.core.models import EnforcedPkceMethod, OAuthClient, PkceMethod
from oauth21.core.settings import PkceSettings
from oauth21.logic.pkce import (
    calculate_entropy,
    compute_code_challenge,
    validate_pkce_parameters,
)
from oauth21.testing import NATIVE_REDIRECT_URI, WEB_REDIRECT_URI, make_code_verifier

NATIVE_CLIENT = OAuthClient(client_id="native", redirect_uris=[NATIVE_REDIRECT_URI])
WEB_CLIENT = OAuthClient(
    client_id="web", is_confidential=True, redirect_uris=[WEB_REDIRECT_URI]
)

VERIFIER_ALPHABET = string.ascii_letters + string.digits + "-._~"
BASE64URL_ALPHABET = string.ascii_letters + string.digits + "-_"


def random_verifier(length: int) -> str:
    return "".join(secrets.choice(VERIFIER_ALPHABET) for _ in range(length))


def mutate(value: str, alphabet: str) -> str:
    """Change a single character of ``value``, staying within ``alphabet``."""
    i = secrets.randbelow(len(value))
    replacement = secrets.choice([c for c in alphabet if c != value[i]])
    return value[:i] + replacement + value[i + 1 :]


def test_compute_code_challenge():
    # RFC 7636 Appendix B
    verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
    assert (
        compute_code_challenge(verifier, PkceMethod.S256)
        == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"
    )
    assert compute_code_challenge(verifier, PkceMethod.plain) == verifier


def test_calculate_entropy():
    assert calculate_entropy("") == 0
    assert calculate_entropy("a" * 43) == 0
    assert calculate_entropy("ab" * 22) == pytest.approx(44)
    assert calculate_entropy(make_code_verifier()) > 128


@pytest.mark.parametrize("length", [43, 64, 100, 128])
def test_s256_pair_is_valid(length):
    settings = PkceSettings()
    for _ in range(20):
        verifier = random_verifier(length)
        result = validate_pkce_parameters(
            NATIVE_CLIENT,
            settings,
            code_challenge=compute_code_challenge(verifier, PkceMethod.S256),
            code_challenge_method="S256",
            code_verifier=verifier,
        )
        assert result.valid, result.errors
        assert result.enhanced_applied


def test_tampered_pair_is_rejected():
    settings = PkceSettings()
    for _ in range(20):
        verifier = make_code_verifier()
        challenge = compute_code_challenge(verifier, PkceMethod.S256)

        for tampered_challenge, tampered_verifier in [
            (mutate(challenge, BASE64URL_ALPHABET), verifier),
            (challenge, mutate(verifier, VERIFIER_ALPHABET)),
        ]:
            result = validate_pkce_parameters(
                NATIVE_CLIENT,
                settings,
                code_challenge=tampered_challenge,
                code_challenge_method="S256",
                code_verifier=tampered_verifier,
            )
            assert not result.valid
            assert "Code challenge does not match verifier" in result.errors


def test_low_entropy_verifier():
    verifier = "a" * 43
    kwargs = {
        "code_challenge": compute_code_challenge(verifier, PkceMethod.S256),
        "code_challenge_method": "S256",
        "code_verifier": verifier,
    }

    result = validate_pkce_parameters(NATIVE_CLIENT, PkceSettings(), **kwargs)
    assert not result.valid
    assert result.errors == [
        "Code verifier entropy (0 bits) below minimum requirement (128 bits)"
    ]

    # Only native clients are held to the entropy floor
    assert validate_pkce_parameters(WEB_CLIENT, PkceSettings(), **kwargs).valid


def test_plain_method(caplog):
    verifier = make_code_verifier()
    kwargs = {
        "code_challenge": verifier,
        "code_challenge_method": "plain",
        "code_verifier": verifier,
    }

    with caplog.at_level(logging.WARNING, logger="oauth21.logic.pkce"):
        result = validate_pkce_parameters(NATIVE_CLIENT, PkceSettings(), **kwargs)
    assert not result.valid
    assert "Native clients must use S256 challenge method" in result.errors
    assert "Plain method is not recommended for native clients" in result.warnings
    assert "native" in caplog.text

    # Even when no method is enforced
    result = validate_pkce_parameters(
        NATIVE_CLIENT, PkceSettings(enforced_method=EnforcedPkceMethod.off), **kwargs
    )
    assert not result.valid

    # Web clients only get format checks
    result = validate_pkce_parameters(WEB_CLIENT, PkceSettings(), **kwargs)
    assert result.valid
    assert not result.enhanced_applied


def test_missing_method_defaults_to_plain():
    verifier = make_code_verifier()
    result = validate_pkce_parameters(
        WEB_CLIENT, PkceSettings(), code_challenge=verifier, code_verifier=verifier
    )
    assert result.valid

    result = validate_pkce_parameters(
        NATIVE_CLIENT, PkceSettings(), code_challenge=verifier, code_verifier=verifier
    )
    assert "Native clients must use S256 challenge method" in result.errors


def test_unsupported_method():
    verifier = make_code_verifier()
    for client in (NATIVE_CLIENT, WEB_CLIENT):
        result = validate_pkce_parameters(
            client,
            PkceSettings(),
            code_challenge=compute_code_challenge(verifier, PkceMethod.S256),
            code_challenge_method="S512",
        )
        assert not result.valid
        assert "Unsupported challenge method: S512" in result.errors


def test_mandatory_for_native_clients():
    result = validate_pkce_parameters(NATIVE_CLIENT, PkceSettings())
    assert not result.valid
    assert result.errors == ["PKCE parameters are mandatory for native clients"]

    # Optional otherwise
    assert validate_pkce_parameters(WEB_CLIENT, PkceSettings()).valid
    assert validate_pkce_parameters(
        NATIVE_CLIENT, PkceSettings(enhanced_pkce_enabled=False)
    ).valid
    assert validate_pkce_parameters(
        NATIVE_CLIENT.model_copy(update={"enhanced_pkce_disabled": True}),
        PkceSettings(),
    ).valid


@pytest.mark.parametrize(
    "code_challenge, code_verifier, error",
    [
        ("tooshort", None, "Invalid code challenge format"),
        ("x" * 129, None, "Invalid code challenge format"),
        ("a+b/" * 11, None, "Invalid code challenge format"),
        (None, "tooshort", "Invalid code verifier format"),
        (None, "a b " * 11, "Invalid code verifier format"),
    ],
)
def test_format(code_challenge, code_verifier, error):
    result = validate_pkce_parameters(
        WEB_CLIENT,
        PkceSettings(),
        code_challenge=code_challenge,
        code_challenge_method="S256" if code_challenge else None,
        code_verifier=code_verifier,
    )
    assert not result.valid
    assert result.errors == [error]


def test_authorization_request_leg():
    """Only the challenge is known when the authorization is requested."""
    challenge = compute_code_challenge(make_code_verifier(), PkceMethod.S256)
    result = validate_pkce_parameters(
        NATIVE_CLIENT,
        PkceSettings(),
        code_challenge=challenge,
        code_challenge_method="S256",
    )
    assert result.valid
    assert result.enhanced_applied
