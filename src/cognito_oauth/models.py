"""Data models for the Cognito OAuth2 strategy.

This module defines the structures that flow through a callback:

- Token: Frozen token response returned by the token exchanger
- Credentials: Token material copied into the authentication record
- AuthRecord: Final normalized authentication result
- CallbackState: Enum for the callback phase state machine
- CallbackOutcome: Result handed back to the host after a callback
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from cognito_oauth.errors import AuthError

#: Decoded ID token claims, keyed by claim name.
ClaimSet = dict[str, Any]

_TOKEN_FIELDS = frozenset({"access_token", "refresh_token", "expires_at", "expires_in", "token_type"})


class CallbackState(str, Enum):
    """States of a callback phase.

    Attributes:
        AWAITING_CALLBACK: Request received, state not yet checked.
        EXCHANGING_TOKEN: Authorization code is being exchanged.
        VERIFYING_TOKEN: ID token is being decoded or verified.
        EXTRACTING_CLAIMS: Claims are being mapped to the record.
        COMPLETE: Authentication record produced.
        FAILED: Callback aborted with an error.
    """

    AWAITING_CALLBACK = "awaiting_callback"
    EXCHANGING_TOKEN = "exchanging_token"
    VERIFYING_TOKEN = "verifying_token"
    EXTRACTING_CLAIMS = "extracting_claims"
    COMPLETE = "complete"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Return True for COMPLETE and FAILED."""
        return self in (CallbackState.COMPLETE, CallbackState.FAILED)


@dataclass(frozen=True, slots=True)
class Token:
    """Token response from the code exchange.

    Attributes:
        access_token: The access token string.
        refresh_token: Refresh token, if the provider issued one.
        expires_at: Expiry as epoch seconds, if known.
        token_type: Token type, usually "Bearer".
        params: Every other response parameter (``id_token`` lives here).

    Examples:
        >>> token = Token.from_response({"access_token": "abc", "id_token": "x.y.z", "expires_at": 10})
        >>> token.params["id_token"]
        'x.y.z'
        >>> token.expires
        True
    """

    access_token: str
    refresh_token: str | None = None
    expires_at: int | None = None
    token_type: str = "Bearer"
    params: Mapping[str, Any] = field(default_factory=dict)

    @property
    def expires(self) -> bool:
        """Return True when the token carries an expiry timestamp."""
        return self.expires_at is not None

    @property
    def id_token(self) -> str | None:
        """Return the raw ID token string from the extra parameters."""
        return self.params.get("id_token")

    @classmethod
    def from_response(cls, data: Mapping[str, Any], *, now: float | None = None) -> Token:
        """Build a Token from a token endpoint response body.

        ``expires_in`` is converted to an absolute ``expires_at`` when the
        response does not already carry one.

        Args:
            data: Decoded token endpoint response.
            now: Reference time for ``expires_in`` conversion (defaults to now).

        Returns:
            A frozen Token.

        Raises:
            ValueError: If the response has no access_token.
        """
        access_token = data.get("access_token")
        if not access_token:
            raise ValueError("Token response has no access_token")

        expires_at = _as_epoch(data.get("expires_at"))
        if expires_at is None:
            expires_in = _as_epoch(data.get("expires_in"))
            if expires_in is not None:
                reference = time.time() if now is None else now
                expires_at = int(reference) + expires_in

        return cls(
            access_token=str(access_token),
            refresh_token=data.get("refresh_token") or None,
            expires_at=expires_at,
            token_type=str(data.get("token_type") or "Bearer"),
            params={k: v for k, v in data.items() if k not in _TOKEN_FIELDS},
        )


@dataclass(frozen=True, slots=True)
class Credentials:
    """Token material exposed in the authentication record.

    Attributes:
        token: The access token.
        refresh_token: Refresh token, if any.
        id_token: Raw ID token string, unparsed.
        expires_at: Expiry as epoch seconds, if any.
        expires: Whether an expiry timestamp is present.
    """

    token: str
    refresh_token: str | None = None
    id_token: str | None = None
    expires_at: int | None = None
    expires: bool = False

    @classmethod
    def from_token(cls, token: Token, id_token: str | None) -> Credentials:
        """Copy credentials verbatim from a token response."""
        return cls(
            token=token.access_token,
            refresh_token=token.refresh_token,
            id_token=id_token,
            expires_at=token.expires_at,
            expires=token.expires,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict, omitting absent optional values."""
        data: dict[str, Any] = {"token": self.token}
        if self.refresh_token is not None:
            data["refresh_token"] = self.refresh_token
        if self.expires:
            data["expires_at"] = self.expires_at
        data["expires"] = self.expires
        if self.id_token is not None:
            data["id_token"] = self.id_token
        return data


@dataclass(frozen=True, slots=True)
class AuthRecord:
    """Normalized authentication result for one successful callback.

    Attributes:
        provider: Strategy name (e.g. "cognito").
        uid: Subject identifier (``sub`` claim).
        info: Selected claim fields, in the configured order.
        credentials: Token material from the exchange.
        extra: Additional data; ``raw_info`` holds the full claim set.
    """

    provider: str
    uid: str
    info: dict[str, Any]
    credentials: Credentials
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def raw_info(self) -> ClaimSet:
        """Return the full decoded claim set."""
        return self.extra.get("raw_info", {})

    def to_dict(self) -> dict[str, Any]:
        """Serialize the record to the mapping written into the request environment."""
        return {
            "provider": self.provider,
            "uid": self.uid,
            "info": dict(self.info),
            "credentials": self.credentials.to_dict(),
            "extra": dict(self.extra),
        }


@dataclass(slots=True)
class CallbackOutcome:
    """Result of running the callback phase.

    Attributes:
        state: Terminal state reached (COMPLETE or FAILED).
        auth: Authentication record when successful.
        error: Error that aborted the callback, if any.
    """

    state: CallbackState
    auth: AuthRecord | None = None
    error: AuthError | None = None

    @property
    def success(self) -> bool:
        """Return True when an authentication record was produced."""
        return self.state is CallbackState.COMPLETE and self.auth is not None


def _as_epoch(value: Any) -> int | None:
    """Coerce a numeric timestamp (or numeric string) to int seconds."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value))
        except ValueError:
            return None
    return None


__all__ = [
    "AuthRecord",
    "CallbackOutcome",
    "CallbackState",
    "ClaimSet",
    "Credentials",
    "Token",
]
