"""Callback and authorize URL construction.

The callback URL is sent twice: as ``redirect_uri`` on the authorize
redirect and again on the token exchange. Cognito rejects the exchange
unless both strings are identical, so both are produced by
``build_callback_url`` and never carry a query string or fragment.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode, urlsplit, urlunsplit

if TYPE_CHECKING:
    from collections.abc import Mapping

    from cognito_oauth.config import StrategyOptions

DEFAULT_CALLBACK_PATH = "/auth/cognito/callback"

_DEFAULT_PORTS = {"http": 80, "https": 443}
_SLASHES = re.compile(r"/{2,}")


def build_full_host(scheme: str, host: str, port: int | None = None) -> str:
    """Return ``scheme://host[:port]``, omitting the scheme's default port.

    Examples:
        >>> build_full_host("http", "localhost", 3000)
        'http://localhost:3000'
        >>> build_full_host("https", "example.com", 443)
        'https://example.com'
        >>> build_full_host("http", "::1", 8080)
        'http://[::1]:8080'
    """
    scheme = (scheme or "http").lower()
    # IPv6 literals need brackets in a URL authority
    if ":" in host and not host.startswith("["):
        host = f"[{host}]"
    if port is None or _DEFAULT_PORTS.get(scheme) == int(port):
        return f"{scheme}://{host}"
    return f"{scheme}://{host}:{port}"


def build_callback_url(
    full_host: str,
    script_name: str = "",
    configured_path: str | None = None,
    *,
    default_path: str = DEFAULT_CALLBACK_PATH,
) -> str:
    """Build the redirect URI used for authorize and token exchange.

    Args:
        full_host: Externally visible ``scheme://host[:port]``.
        script_name: Mount path of the application (may be empty).
        configured_path: Replaces ``default_path`` entirely when set.
        default_path: Strategy callback path.

    Returns:
        ``full_host + script_name + path`` without query string or fragment.

    Examples:
        >>> build_callback_url("http://localhost:3000", "")
        'http://localhost:3000/auth/cognito/callback'
        >>> build_callback_url("http://localhost:3000/", "/app/", "/some/callback/path?x=1")
        'http://localhost:3000/app/some/callback/path'
    """
    parts = urlsplit(full_host)
    if parts.scheme and parts.netloc:
        host = urlunsplit((parts.scheme, parts.netloc, parts.path, "", "")).rstrip("/")
    else:
        host = _strip_query(full_host).rstrip("/")

    mount = _strip_query(script_name or "").strip("/")
    path = _strip_query(configured_path or default_path)

    tail = f"/{mount}/{path.lstrip('/')}" if mount else f"/{path.lstrip('/')}"
    return host + _SLASHES.sub("/", tail)


def build_authorize_url(
    options: StrategyOptions,
    redirect_uri: str,
    state: str,
    extra_params: Mapping[str, Any] | None = None,
) -> str:
    """Build the Cognito authorize redirect URL.

    ``authorize_params`` and ``extra_params`` are added first so they cannot
    override ``client_id``, ``redirect_uri`` or ``state``.

    Args:
        options: Strategy options.
        redirect_uri: Callback URL from ``build_callback_url``.
        state: Anti-CSRF state stored in the session.
        extra_params: Per-request authorize parameters.

    Returns:
        Absolute authorize URL with encoded query string.
    """
    params: dict[str, Any] = {}
    params.update({str(k): v for k, v in options.authorize_params.items()})
    params.update({str(k): v for k, v in (extra_params or {}).items()})
    params.update(
        {
            "response_type": "code",
            "client_id": options.client_id,
            "redirect_uri": redirect_uri,
            "scope": options.scope,
            "state": state,
        }
    )
    params = {k: v for k, v in params.items() if v is not None}
    return f"{options.authorize_endpoint}?{urlencode(params)}"


def _strip_query(value: str) -> str:
    """Drop anything from the first ``?`` or ``#`` onwards."""
    return re.split(r"[?#]", value, maxsplit=1)[0]


__all__ = [
    "DEFAULT_CALLBACK_PATH",
    "build_authorize_url",
    "build_callback_url",
    "build_full_host",
]
