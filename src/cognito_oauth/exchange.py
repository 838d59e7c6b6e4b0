"""Authorization code exchange.

``exchange_code`` is the single entry point used by the callback phase. It
merges the request parameters, normalizes every mapping key once with
``normalize_keys`` and delegates the network call to a ``TokenExchanger``.

``HttpTokenExchanger`` is the default exchanger: a form POST to the Cognito
``/oauth2/token`` endpoint through ``httpx``.

Exchanges are never retried. Authorization codes are single use, so a
second attempt with the same code always fails.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import httpx

from cognito_oauth.errors import TokenExchangeError
from cognito_oauth.models import Token

if TYPE_CHECKING:
    from types import TracebackType

    from cognito_oauth.config import StrategyOptions

logger = logging.getLogger(__name__)


@runtime_checkable
class TokenExchanger(Protocol):
    """Protocol for the collaborator performing the code-for-token call."""

    def get_token(
        self,
        code: str,
        params: dict[str, Any],
        options: dict[str, Any],
    ) -> Token:
        """Exchange ``code`` for tokens.

        Args:
            code: Authorization code from the callback.
            params: Token request parameters (includes ``redirect_uri``).
            options: Auxiliary options (e.g. ``headers``).

        Returns:
            The token response.

        Raises:
            TokenExchangeError: If the provider or the network fails.
        """
        ...


def normalize_keys(data: Any) -> Any:
    """Recursively convert every mapping key to ``str``.

    Nested mappings inside mappings, lists and tuples are normalized too.
    Enum keys become their value, bytes keys are decoded as UTF-8.

    Args:
        data: Mapping, sequence or scalar.

    Returns:
        A new structure with normalized keys; scalars are returned as-is.

    Examples:
        >>> normalize_keys({b"headers": {1: "a"}, "list": [{b"k": "v"}]})
        {'headers': {'1': 'a'}, 'list': [{'k': 'v'}]}
    """
    if isinstance(data, Mapping):
        return {_normalize_key(key): normalize_keys(value) for key, value in data.items()}
    if isinstance(data, list):
        return [normalize_keys(item) for item in data]
    if isinstance(data, tuple):
        return tuple(normalize_keys(item) for item in data)
    return data


def exchange_code(
    exchanger: TokenExchanger,
    code: str,
    callback_url: str,
    token_params: Mapping[str, Any] | None = None,
    auth_token_params: Mapping[str, Any] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Token:
    """Exchange an authorization code through ``exchanger``.

    Request parameters are ``token_params`` updated with ``overrides``
    (overrides win). ``redirect_uri`` is always ``callback_url`` so it matches
    the authorize redirect byte for byte.

    Args:
        exchanger: Token exchanger collaborator.
        code: Authorization code.
        callback_url: Redirect URI built by ``build_callback_url``.
        token_params: Configured token request parameters.
        auth_token_params: Auxiliary exchanger options.
        overrides: Per-request token parameters.

    Returns:
        The token response.

    Raises:
        TokenExchangeError: If the exchange fails. Transport errors raised by
            the exchanger are wrapped with the original as ``__cause__``.
    """
    params: dict[str, Any] = {}
    params.update(normalize_keys(dict(token_params or {})))
    params.update(normalize_keys(dict(overrides or {})))
    params["redirect_uri"] = callback_url
    options = normalize_keys(dict(auth_token_params or {}))

    logger.debug("Exchanging authorization code (redirect_uri=%s, params=%s)", callback_url, sorted(params))

    try:
        result = exchanger.get_token(code, params, options)
    except TokenExchangeError:
        raise
    except (httpx.HTTPError, OSError) as exc:
        raise TokenExchangeError(f"Network error: {exc}") from exc

    if isinstance(result, Mapping):
        try:
            result = Token.from_response(result)
        except ValueError as exc:
            raise TokenExchangeError(str(exc)) from exc
    if not isinstance(result, Token):
        raise TokenExchangeError(f"Token exchanger returned {type(result).__name__}, expected Token")
    return result


class HttpTokenExchanger:
    """Exchange authorization codes against the Cognito token endpoint.

    The client authenticates with HTTP Basic (``client_id:client_secret``)
    unless ``auth_scheme="request_body"`` is passed in the exchange options,
    in which case ``client_secret`` is sent as a form field.

    Args:
        options: Strategy options (token endpoint, credentials, timeout).
        http_client: Optional preconfigured ``httpx.Client``. When omitted,
            a client with ``options.timeout`` is created and owned.

    Example:
        >>> with HttpTokenExchanger(options) as exchanger:  # doctest: +SKIP
        ...     token = exchanger.get_token("code", {"redirect_uri": url}, {})
    """

    def __init__(
        self,
        options: StrategyOptions,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._options = options
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.Client(timeout=httpx.Timeout(options.timeout))

    def get_token(
        self,
        code: str,
        params: dict[str, Any],
        options: dict[str, Any],
    ) -> Token:
        """POST the authorization code grant and parse the response.

        Raises:
            TokenExchangeError: On HTTP error status, network error or an
                unusable response body.
        """
        token_url = self._options.token_endpoint
        data: dict[str, Any] = {
            "grant_type": "authorization_code",
            "code": code,
            "client_id": self._options.client_id,
        }
        data.update(params)

        headers = {"Accept": "application/json"}
        headers.update({k: str(v) for k, v in (options.get("headers") or {}).items()})

        auth: httpx.Auth | None = None
        if options.get("auth_scheme", "basic_auth") == "request_body":
            data["client_secret"] = self._options.client_secret
        else:
            auth = httpx.BasicAuth(self._options.client_id, self._options.client_secret)

        try:
            response = self.http_client.post(
                token_url,
                data=data,
                headers=headers,
                auth=auth,
                timeout=self._options.timeout,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            payload = _error_payload(exc.response)
            reason = payload.get("error_description") or payload.get("error") or (
                f"HTTP {exc.response.status_code} from token endpoint"
            )
            logger.warning("Token endpoint rejected the code: %s", reason)
            raise TokenExchangeError(reason, error_code=payload.get("error"), payload=payload) from exc
        except httpx.RequestError as exc:
            logger.warning("Token endpoint unreachable: %s", exc)
            raise TokenExchangeError(f"Network error: {exc}") from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise TokenExchangeError("Token endpoint returned invalid JSON") from exc
        if not isinstance(body, Mapping):
            raise TokenExchangeError("Token endpoint returned a non-object JSON body")

        try:
            token = Token.from_response(body)
        except ValueError as exc:
            raise TokenExchangeError(str(exc), payload=dict(body)) from exc

        logger.debug(
            "Token exchange succeeded (refresh_token=%s, id_token=%s, expires_at=%s)",
            token.refresh_token is not None,
            token.id_token is not None,
            token.expires_at,
        )
        return token

    def close(self) -> None:
        """Close the HTTP client if this exchanger created it."""
        if self._owns_client:
            self.http_client.close()

    def __enter__(self) -> HttpTokenExchanger:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


def _normalize_key(key: Any) -> str:
    if isinstance(key, Enum):
        return str(key.value)
    if isinstance(key, bytes):
        return key.decode("utf-8")
    return str(key)


def _error_payload(response: httpx.Response) -> dict[str, Any]:
    """Extract the OAuth2 error payload from an error response."""
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        return payload
    text = getattr(response, "text", "") or ""
    return {"error_description": text} if text else {}


__all__ = [
    "HttpTokenExchanger",
    "TokenExchanger",
    "exchange_code",
    "normalize_keys",
]
