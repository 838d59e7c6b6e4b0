"""Tests for ID token decoding and signature verification."""

from __future__ import annotations

import base64
import json
import logging
from typing import Any

import pytest

from cognito_oauth.config import StrategyOptions
from cognito_oauth.errors import (
    ConfigurationError,
    MalformedTokenError,
    SignatureVerificationError,
)
from cognito_oauth.verifier import (
    SignatureVerifier,
    TokenVerifier,
    UnverifiedDecoder,
    build_verifier,
)


def _segment(data: Any) -> str:
    raw = data if isinstance(data, bytes) else json.dumps(data).encode("utf-8")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


# ─────────────────────────────────────────────────────────────────────────────
# UnverifiedDecoder
# ─────────────────────────────────────────────────────────────────────────────


class TestUnverifiedDecoder:
    """Tests for UnverifiedDecoder.verify()."""

    def test_decodes_hs256_token(self, sign_hs256, id_claims: dict[str, Any]) -> None:
        """Claims are returned without knowing the signing secret."""
        assert UnverifiedDecoder().verify(sign_hs256(id_claims)) == id_claims

    def test_decodes_token_from_any_key(self, sign_rs256, attacker_key, id_claims: dict[str, Any]) -> None:
        """The signature is ignored entirely."""
        assert UnverifiedDecoder().verify(sign_rs256(id_claims, attacker_key)) == id_claims

    def test_unpadded_payload(self) -> None:
        """Payloads without base64 padding decode."""
        token = f"{_segment({'alg': 'none'})}.{_segment({'sub': 'x'})}.sig"
        assert UnverifiedDecoder().verify(token) == {"sub": "x"}

    def test_warns_on_creation(self, caplog: pytest.LogCaptureFixture) -> None:
        """Disabling verification is logged."""
        with caplog.at_level(logging.WARNING, logger="cognito_oauth.verifier"):
            UnverifiedDecoder()
        assert "verification is disabled" in caplog.text

    @pytest.mark.parametrize("token", ["", "abc", "a.b", "a.b.c.d"])
    def test_wrong_segment_count(self, token: str) -> None:
        """Tokens must have exactly three segments."""
        with pytest.raises(MalformedTokenError, match="expected 3 segments"):
            UnverifiedDecoder().verify(token)

    @pytest.mark.parametrize(
        "payload",
        [
            "a",
            _segment(b"not json"),
            _segment(b"\xc3\x28"),
        ],
    )
    def test_undecodable_payload(self, payload: str) -> None:
        """Bad base64, invalid UTF-8 or invalid JSON are malformed."""
        with pytest.raises(MalformedTokenError, match="Failed to decode"):
            UnverifiedDecoder().verify(f"{_segment({'alg': 'none'})}.{payload}.sig")

    def test_payload_not_an_object(self) -> None:
        """A JSON array payload is rejected."""
        with pytest.raises(MalformedTokenError, match="JSON object"):
            UnverifiedDecoder().verify(f"{_segment({'alg': 'none'})}.{_segment([1, 2])}.sig")

    def test_satisfies_protocol(self) -> None:
        """UnverifiedDecoder implements TokenVerifier."""
        assert isinstance(UnverifiedDecoder(), TokenVerifier)
        assert UnverifiedDecoder.verifies_signature is False


# ─────────────────────────────────────────────────────────────────────────────
# SignatureVerifier
# ─────────────────────────────────────────────────────────────────────────────


class TestSignatureVerifier:
    """Tests for SignatureVerifier.verify()."""

    def test_pem_key(self, sign_rs256, signing_key, verification_pem: bytes, id_claims: dict[str, Any]) -> None:
        """A PEM public key verifies tokens signed by its private half."""
        verifier = SignatureVerifier(verification_pem, "RS256")
        assert verifier.verify(sign_rs256(id_claims, signing_key)) == id_claims

    def test_key_object(self, sign_rs256, signing_key, id_claims: dict[str, Any]) -> None:
        """A cryptography public key object is accepted."""
        verifier = SignatureVerifier(signing_key.public_key(), "RS256")
        claims = verifier.verify(sign_rs256(id_claims, signing_key))
        assert claims["sub"] == "1234-5678-9012"
        assert isinstance(claims, dict)

    def test_attacker_key_rejected(
        self,
        sign_rs256,
        attacker_key,
        verification_pem: bytes,
        id_claims: dict[str, Any],
    ) -> None:
        """A token signed by another key fails verification."""
        verifier = SignatureVerifier(verification_pem, "RS256")
        with pytest.raises(SignatureVerificationError, match="Signature verification failed"):
            verifier.verify(sign_rs256(id_claims, attacker_key))

    def test_tampered_payload_rejected(
        self,
        sign_rs256,
        signing_key,
        verification_pem: bytes,
        id_claims: dict[str, Any],
    ) -> None:
        """Changing the payload invalidates the signature."""
        header, _, signature = sign_rs256(id_claims, signing_key).split(".")
        forged = f"{header}.{_segment({**id_claims, 'sub': 'admin'})}.{signature}"
        with pytest.raises(SignatureVerificationError):
            SignatureVerifier(verification_pem, "RS256").verify(forged)

    def test_algorithm_mismatch_rejected(self, sign_hs256, verification_pem: bytes, id_claims: dict[str, Any]) -> None:
        """Tokens using another algorithm are not accepted."""
        with pytest.raises(SignatureVerificationError):
            SignatureVerifier(verification_pem, "RS256").verify(sign_hs256(id_claims))

    def test_claims_not_validated(
        self,
        sign_rs256,
        signing_key,
        verification_pem: bytes,
        id_claims: dict[str, Any],
    ) -> None:
        """Expired tokens with a valid signature still decode."""
        expired = {**id_claims, "exp": 1}
        assert SignatureVerifier(verification_pem, "RS256").verify(sign_rs256(expired, signing_key))["exp"] == 1

    @pytest.mark.parametrize("token", ["abc", "a.b"])
    def test_malformed_token(self, verification_pem: bytes, token: str) -> None:
        """Tokens without three segments are malformed."""
        with pytest.raises(MalformedTokenError):
            SignatureVerifier(verification_pem, "RS256").verify(token)

    @pytest.mark.parametrize("key", [None, ""])
    def test_missing_key(self, key: Any) -> None:
        """A verifier cannot be built without a key."""
        with pytest.raises(ConfigurationError, match="jwt_key"):
            SignatureVerifier(key, "RS256")

    def test_missing_algorithm(self, verification_pem: bytes) -> None:
        """A verifier cannot be built without an algorithm."""
        with pytest.raises(ConfigurationError, match="algorithm"):
            SignatureVerifier(verification_pem, "")

    def test_algorithm_property(self, verification_pem: bytes) -> None:
        """The accepted algorithm is exposed."""
        verifier = SignatureVerifier(verification_pem, "RS256")
        assert verifier.algorithm == "RS256"
        assert verifier.verifies_signature is True
        assert isinstance(verifier, TokenVerifier)


# ─────────────────────────────────────────────────────────────────────────────
# build_verifier
# ─────────────────────────────────────────────────────────────────────────────


class TestBuildVerifier:
    """Tests for build_verifier()."""

    def test_default_is_unverified(self) -> None:
        """jwt_verify=False selects the unverified decoder."""
        options = StrategyOptions(client_id="a", client_secret="b")
        assert isinstance(build_verifier(options), UnverifiedDecoder)

    def test_verify_selects_signature_verifier(self, verification_pem: bytes) -> None:
        """jwt_verify=True selects the signature verifier."""
        options = StrategyOptions(
            client_id="a",
            client_secret="b",
            jwt_verify=True,
            jwt_key=verification_pem,
            algorithm="RS256",
        )
        verifier = build_verifier(options)
        assert isinstance(verifier, SignatureVerifier)
        assert verifier.algorithm == "RS256"

    def test_verify_without_algorithm(self, verification_pem: bytes) -> None:
        """Verification never falls back to the unverified decoder."""
        options = StrategyOptions(client_id="a", client_secret="b", jwt_verify=True, jwt_key=verification_pem)
        with pytest.raises(ConfigurationError):
            build_verifier(options)
