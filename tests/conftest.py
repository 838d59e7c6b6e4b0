"""Shared pytest fixtures for the cognito_oauth test suite."""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any
from unittest.mock import MagicMock

import pytest
from authlib.jose import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from cognito_oauth.config import StrategyOptions
from cognito_oauth.models import Token
from cognito_oauth.strategy import SESSION_STATE_KEY, RequestContext

# pylint: disable=redefined-outer-name

CLIENT_ID = "ABCDE"
CLIENT_SECRET = "987654321"
HMAC_SECRET = "untrusted-signing-secret-0123456789abcdef"

# ─────────────────────────────────────────────────────────────────────────────
# Keys and ID tokens
# ─────────────────────────────────────────────────────────────────────────────


def _generate_rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def _private_pem(key: rsa.RSAPrivateKey) -> bytes:
    return key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )


@pytest.fixture(scope="session")
def signing_key() -> rsa.RSAPrivateKey:
    """RSA key the identity provider signs ID tokens with."""
    return _generate_rsa_key()


@pytest.fixture(scope="session")
def attacker_key() -> rsa.RSAPrivateKey:
    """Unrelated RSA key used to forge ID tokens."""
    return _generate_rsa_key()


@pytest.fixture(scope="session")
def verification_pem(signing_key: rsa.RSAPrivateKey) -> bytes:
    """PEM encoded public half of ``signing_key``."""
    return signing_key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )


@pytest.fixture
def now() -> int:
    """Current epoch seconds."""
    return int(time.time())


@pytest.fixture
def id_claims(now: int) -> dict[str, Any]:
    """Claims of a typical Cognito ID token."""
    return {
        "sub": "1234-5678-9012",
        "iat": now,
        "iss": "https://cognito-idp.eu-west-1.amazonaws.com/user_pool_id",
        "nbf": now,
        "exp": now + 3600,
        "aud": CLIENT_ID,
        "phone_number": "some phone number",
        "email": "some email address",
        "name": "Some Name",
    }


@pytest.fixture
def sign_rs256() -> Callable[[dict[str, Any], rsa.RSAPrivateKey], str]:
    """Return a helper signing claims with RS256."""

    def _sign(claims: dict[str, Any], key: rsa.RSAPrivateKey) -> str:
        return jwt.encode({"alg": "RS256", "typ": "JWT"}, claims, _private_pem(key)).decode("ascii")

    return _sign


@pytest.fixture
def sign_hs256() -> Callable[[dict[str, Any]], str]:
    """Return a helper signing claims with HS256 and a shared secret."""

    def _sign(claims: dict[str, Any]) -> str:
        return jwt.encode({"alg": "HS256", "typ": "JWT"}, claims, HMAC_SECRET).decode("ascii")

    return _sign


# ─────────────────────────────────────────────────────────────────────────────
# Strategy fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def base_options() -> StrategyOptions:
    """Options with only the Cognito pool coordinates."""
    return StrategyOptions(
        client_id=CLIENT_ID,
        client_secret=CLIENT_SECRET,
        aws_region="eu-west-1",
        user_pool_id="user_pool_id",
        site="https://myapp.auth.eu-west-1.amazoncognito.com",
    )


@pytest.fixture
def token_for() -> Callable[..., Token]:
    """Return a helper building a token response around an ID token."""

    def _build(id_token: str | None, expires_at: int | None = None) -> Token:
        data: dict[str, Any] = {
            "access_token": "access_token",
            "refresh_token": "refresh_token",
            "expires_at": expires_at if expires_at is not None else int(time.time()) + 3600,
        }
        if id_token is not None:
            data["id_token"] = id_token
        return Token.from_response(data)

    return _build


@pytest.fixture
def mock_exchanger() -> MagicMock:
    """Token exchanger double; set ``get_token.return_value`` per test."""
    return MagicMock()


@pytest.fixture
def callback_context() -> RequestContext:
    """Callback request carrying a code and the state issued in the session."""
    return RequestContext.from_url(
        "http://localhost/auth/cognito/callback?code=1234&state=some_state",
        session={SESSION_STATE_KEY: "some_state"},
    )
