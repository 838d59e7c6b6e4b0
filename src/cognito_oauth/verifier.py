"""ID token decoding and signature verification.

Two verifiers share the ``TokenVerifier`` protocol:

- ``UnverifiedDecoder`` reads the claims without checking the signature.
  It is meant for setups where the token comes straight from the Cognito
  token endpoint over TLS and the caller accepts that trust.
- ``SignatureVerifier`` checks the signature with the configured key through
  authlib and rejects anything it cannot verify.

``build_verifier`` picks one from the strategy options, once.

Neither verifier validates claim contents (``exp``, ``aud``, ``iss``).

Example:
    >>> from cognito_oauth.config import StrategyOptions
    >>> verifier = build_verifier(StrategyOptions(client_id="a", client_secret="b"))  # doctest: +SKIP
    >>> claims = verifier.verify(id_token)  # doctest: +SKIP
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from cognito_oauth.errors import (
    ConfigurationError,
    MalformedTokenError,
    SignatureVerificationError,
)

if TYPE_CHECKING:
    from cognito_oauth.config import StrategyOptions
    from cognito_oauth.models import ClaimSet

logger = logging.getLogger(__name__)


@runtime_checkable
class TokenVerifier(Protocol):
    """Protocol for objects turning an ID token string into claims."""

    def verify(self, id_token: str) -> ClaimSet:
        """Decode ``id_token`` and return its claims.

        Raises:
            MalformedTokenError: If the token cannot be decoded.
            SignatureVerificationError: If the signature is rejected.
        """
        ...


class UnverifiedDecoder:
    """Decode the JWT payload without checking its signature."""

    verifies_signature = False

    def __init__(self) -> None:
        logger.warning(
            "ID token signature verification is disabled (jwt_verify=False); "
            "claims are trusted as received from the token endpoint"
        )

    def verify(self, id_token: str) -> ClaimSet:
        """Return the payload claims of ``id_token``, unverified.

        Args:
            id_token: Compact JWT (``header.payload.signature``).

        Returns:
            Decoded claims, in payload order.

        Raises:
            MalformedTokenError: If the token is not three segments or the
                payload is not a base64url encoded JSON object.
        """
        parts = id_token.split(".") if isinstance(id_token, str) else []
        if len(parts) != 3:
            raise MalformedTokenError(f"Invalid JWT format: expected 3 segments, got {len(parts)}")

        try:
            payload = json.loads(_b64url_decode(parts[1]))
        except (binascii.Error, UnicodeDecodeError, ValueError) as exc:
            raise MalformedTokenError(f"Failed to decode JWT payload: {exc}") from exc

        if not isinstance(payload, dict):
            raise MalformedTokenError(f"JWT payload must be a JSON object, got {type(payload).__name__}")

        return payload


class SignatureVerifier:
    """Decode the JWT and verify its signature with a fixed key.

    Args:
        key: Verification key. Anything authlib can import: PEM string or
            bytes, JWK dict, JWKS dict (``{"keys": [...]}``) or a
            ``cryptography`` public key object.
        algorithm: The only accepted ``alg`` header value (e.g. "RS256").

    Raises:
        ConfigurationError: If the key or algorithm is missing.
    """

    verifies_signature = True

    def __init__(self, key: Any, algorithm: str) -> None:
        if key is None or key == "":
            raise ConfigurationError("jwt_verify is enabled but no 'jwt_key' is configured")
        if not algorithm:
            raise ConfigurationError("jwt_verify is enabled but no 'algorithm' is configured")

        from authlib.jose import JsonWebToken

        self._key = key
        self._algorithm = algorithm
        self._jwt = JsonWebToken([algorithm])

    @property
    def algorithm(self) -> str:
        """Return the accepted signature algorithm."""
        return self._algorithm

    def verify(self, id_token: str) -> ClaimSet:
        """Verify the signature of ``id_token`` and return its claims.

        Args:
            id_token: Compact JWT (``header.payload.signature``).

        Returns:
            Decoded claims, in payload order.

        Raises:
            MalformedTokenError: If the token cannot be parsed.
            SignatureVerificationError: If the signature, algorithm or key
                does not match.
        """
        from authlib.jose.errors import (
            BadSignatureError,
            DecodeError,
            JoseError,
            UnsupportedAlgorithmError,
        )

        if not isinstance(id_token, str) or id_token.count(".") != 2:
            raise MalformedTokenError("Invalid JWT format: expected 3 segments")

        try:
            claims = self._jwt.decode(id_token, self._key)
        except BadSignatureError as exc:
            raise SignatureVerificationError("Signature verification failed") from exc
        except UnsupportedAlgorithmError as exc:
            raise SignatureVerificationError(f"Algorithm not accepted (expected {self._algorithm})") from exc
        except DecodeError as exc:
            raise MalformedTokenError(f"Failed to decode JWT: {exc}") from exc
        except JoseError as exc:
            raise SignatureVerificationError(f"JWT rejected: {exc}") from exc
        except (ValueError, TypeError) as exc:
            # authlib raises these when the key cannot be loaded or matched
            raise SignatureVerificationError(f"Cannot verify with configured key: {exc}") from exc

        logger.debug("ID token signature verified (%s)", self._algorithm)
        return dict(claims)


def build_verifier(options: StrategyOptions) -> TokenVerifier:
    """Select the verifier matching ``options.jwt_verify``.

    Args:
        options: Strategy options.

    Returns:
        A SignatureVerifier when ``jwt_verify`` is set, else an UnverifiedDecoder.

    Raises:
        ConfigurationError: If verification is enabled without key or algorithm.
    """
    if options.jwt_verify:
        return SignatureVerifier(options.jwt_key, options.algorithm or "")
    return UnverifiedDecoder()


def _b64url_decode(data: str) -> bytes:
    """Decode base64url-encoded data with padding fix."""
    padding = 4 - len(data) % 4
    if padding != 4:
        data += "=" * padding
    return base64.urlsafe_b64decode(data.encode("ascii"))


__all__ = [
    "SignatureVerifier",
    "TokenVerifier",
    "UnverifiedDecoder",
    "build_verifier",
]
