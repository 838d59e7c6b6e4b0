"""Exceptions raised by the Cognito OAuth2 strategy.

Exception hierarchy::

    AuthError (base for all strategy errors)
        ConfigurationError (invalid options, also ValueError)
        AuthorizationError (provider returned an error to the callback)
        CsrfStateMismatchError (state parameter does not match the session)
        TokenError
            TokenExchangeError (code-for-token exchange failed)
            MissingIdTokenError (token response carries no id_token)
            TokenValidationError
                MalformedTokenError (ID token cannot be decoded)
                SignatureVerificationError (ID token signature rejected)
                MissingClaimError (required claim absent)

Every error carries an ``error_type`` key. The strategy writes it next to the
error into the request environment so the host can render an
unauthenticated response.
"""

from __future__ import annotations

from typing import Any


class AuthError(Exception):
    """Base exception for all strategy errors.

    Attributes:
        message: Human-readable error message.
        details: Additional error context as key-value pairs.

    Examples:
        >>> raise AuthError("Something went wrong", details={"step": "exchange"})
        Traceback (most recent call last):
        ...
        cognito_oauth.errors.AuthError: Something went wrong
    """

    error_type = "authentication_error"

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize AuthError.

        Args:
            message: Human-readable error message.
            details: Additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(AuthError, ValueError):
    """Strategy options are missing or inconsistent."""

    error_type = "invalid_configuration"


class AuthorizationError(AuthError):
    """The identity provider reported an error on the callback.

    Attributes:
        reason: Description of the failure.
        error_code: OAuth2 ``error`` parameter (e.g. ``access_denied``).
        error_description: OAuth2 ``error_description`` parameter.
    """

    error_type = "authorization_failed"

    def __init__(
        self,
        reason: str,
        *,
        error_code: str | None = None,
        error_description: str | None = None,
    ) -> None:
        """Initialize AuthorizationError.

        Args:
            reason: Description of the failure.
            error_code: OAuth2 error code returned by the provider.
            error_description: Human readable description from the provider.
        """
        super().__init__(
            f"Authorization failed: {reason}",
            details={"error_code": error_code, "error_description": error_description},
        )
        self.reason = reason
        self.error_code = error_code
        self.error_description = error_description


class CsrfStateMismatchError(AuthError):
    """The ``state`` parameter does not match the value stored in the session."""

    error_type = "csrf_detected"

    def __init__(self, reason: str = "State parameter does not match the session") -> None:
        """Initialize CsrfStateMismatchError.

        Args:
            reason: Description of the mismatch.
        """
        super().__init__(f"CSRF detected: {reason}")
        self.reason = reason


class TokenError(AuthError):
    """Base class for token related errors."""

    error_type = "invalid_credentials"


class TokenExchangeError(TokenError):
    """Exchanging the authorization code for tokens failed.

    Attributes:
        reason: Description of the failure.
        error_code: OAuth2 ``error`` value reported by the provider, if any.
        payload: Raw error payload returned by the provider, if any.
    """

    def __init__(
        self,
        reason: str,
        *,
        error_code: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> None:
        """Initialize TokenExchangeError.

        Args:
            reason: Description of the failure.
            error_code: OAuth2 error code (e.g. ``invalid_grant``).
            payload: Provider error payload.
        """
        super().__init__(
            f"Token exchange failed: {reason}",
            details={"error_code": error_code, "payload": payload or {}},
        )
        self.reason = reason
        self.error_code = error_code
        self.payload = payload or {}


class MissingIdTokenError(TokenError):
    """The token response does not contain an ``id_token``."""

    def __init__(self, reason: str = "Token response has no id_token") -> None:
        """Initialize MissingIdTokenError.

        Args:
            reason: Description of the failure.
        """
        super().__init__(reason)
        self.reason = reason


class TokenValidationError(TokenError):
    """The ID token could not be decoded or trusted.

    Attributes:
        reason: Description of the failure.
        claim: Name of the offending claim, if the failure is claim specific.
    """

    def __init__(self, reason: str, *, claim: str | None = None) -> None:
        """Initialize TokenValidationError.

        Args:
            reason: Description of the failure.
            claim: Offending claim name.
        """
        super().__init__(f"ID token rejected: {reason}", details={"claim": claim})
        self.reason = reason
        self.claim = claim


class MalformedTokenError(TokenValidationError):
    """The ID token is not a well-formed compact JWT."""


class SignatureVerificationError(TokenValidationError):
    """The ID token signature does not match the configured key."""


class MissingClaimError(TokenValidationError):
    """A required claim is absent from the ID token."""

    def __init__(self, claim: str) -> None:
        """Initialize MissingClaimError.

        Args:
            claim: Name of the missing claim.
        """
        super().__init__(f"missing required claim '{claim}'", claim=claim)


__all__ = [
    "AuthError",
    "AuthorizationError",
    "ConfigurationError",
    "CsrfStateMismatchError",
    "MalformedTokenError",
    "MissingClaimError",
    "MissingIdTokenError",
    "SignatureVerificationError",
    "TokenError",
    "TokenExchangeError",
    "TokenValidationError",
]
