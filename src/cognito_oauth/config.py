"""Strategy options for the Cognito OAuth2 strategy.

Options can be built programmatically, from a plain mapping, or from a YAML
file section:

.. code-block:: yaml

    cognito:
      client_id: "${COGNITO_CLIENT_ID}"
      client_secret: "${COGNITO_CLIENT_SECRET}"
      site: "https://myapp.auth.eu-west-1.amazoncognito.com"
      aws_region: eu-west-1
      user_pool_id: eu-west-1_AbCdEf
      info_fields: [name, email, phone_number]
      jwt_verify: true
      jwt_key: "${COGNITO_JWT_KEY}"
      algorithm: RS256

Values given as keyword overrides win over mapping values, which win over
``DEFAULT_OPTIONS``.
"""

from __future__ import annotations

import logging
import math
import os
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, fields
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any

from cognito_oauth.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Pattern for environment variable substitution: ${VAR} or ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([a-zA-Z_][a-zA-Z0-9_]*)(?::-([^}]*))?\}")

DEFAULT_OPTIONS: dict[str, Any] = {
    "name": "cognito",
    "path_prefix": "/auth",
    "callback_path": None,
    "full_host": None,
    "site": None,
    "authorize_url": "/oauth2/authorize",
    "token_url": "/oauth2/token",
    "scope": "openid email",
    "aws_region": None,
    "user_pool_id": None,
    "info_fields": ("email",),
    "jwt_verify": False,
    "jwt_key": None,
    "algorithm": None,
    "token_params": {},
    "auth_token_params": {},
    "authorize_params": {},
    "timeout": 10.0,
}


@dataclass(frozen=True, slots=True)
class StrategyOptions:
    """Immutable configuration of a Cognito strategy.

    Attributes:
        client_id: App client ID of the user pool.
        client_secret: App client secret.
        aws_region: AWS region of the user pool (e.g. "eu-west-1").
        user_pool_id: User pool ID.
        callback_path: Replaces the default callback path when set.
        info_fields: Claim names copied into ``info``, in order.
        jwt_verify: Verify the ID token signature with ``jwt_key``.
        jwt_key: Verification key (PEM, JWK/JWKS dict or public key object).
        algorithm: Signature algorithm expected when verifying (e.g. "RS256").
        token_params: Extra parameters sent with the token request.
        auth_token_params: Options handed to the token exchanger.
        name: Strategy name, used in the default callback path.
        path_prefix: Mount prefix of the strategy routes.
        full_host: Externally visible scheme and host, overriding the request.
        site: Cognito hosted UI domain.
        authorize_url: Authorize endpoint, absolute or relative to ``site``.
        token_url: Token endpoint, absolute or relative to ``site``.
        scope: Space separated scopes requested on authorize.
        authorize_params: Extra parameters added to the authorize redirect.
        timeout: Token exchange timeout in seconds.

    Examples:
        >>> options = StrategyOptions(client_id="abc", client_secret="s3cr3t")
        >>> options.default_callback_path
        '/auth/cognito/callback'
        >>> options.info_fields
        ('email',)
    """

    client_id: str
    client_secret: str
    aws_region: str | None = None
    user_pool_id: str | None = None
    callback_path: str | None = None
    info_fields: tuple[str, ...] = ("email",)
    jwt_verify: bool = False
    jwt_key: Any = None
    algorithm: str | None = None
    token_params: Mapping[str, Any] = field(default_factory=dict)
    auth_token_params: Mapping[str, Any] = field(default_factory=dict)
    name: str = "cognito"
    path_prefix: str = "/auth"
    full_host: str | None = None
    site: str | None = None
    authorize_url: str = "/oauth2/authorize"
    token_url: str = "/oauth2/token"
    scope: str = "openid email"
    authorize_params: Mapping[str, Any] = field(default_factory=dict)
    timeout: float = 10.0

    def __post_init__(self) -> None:
        """Validate and normalize option values.

        Raises:
            ConfigurationError: If a required value is missing or invalid.
        """
        if not self.client_id:
            raise ConfigurationError("Strategy options missing required 'client_id'")
        if not self.client_secret:
            raise ConfigurationError("Strategy options missing required 'client_secret'")
        if not self.name:
            raise ConfigurationError("Strategy 'name' must not be empty")

        if isinstance(self.info_fields, (str, bytes)):
            raise ConfigurationError("'info_fields' must be a sequence of claim names, not a string")
        if not isinstance(self.info_fields, Iterable):
            raise ConfigurationError(
                f"'info_fields' must be a sequence of claim names, got {type(self.info_fields).__name__}"
            )
        object.__setattr__(self, "info_fields", tuple(_field_name(f) for f in self.info_fields))
        object.__setattr__(self, "jwt_verify", _as_bool(self.jwt_verify, "jwt_verify"))

        try:
            timeout = float(self.timeout)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"'timeout' must be a number, got {self.timeout!r}") from exc
        if not math.isfinite(timeout) or timeout <= 0:
            raise ConfigurationError(f"'timeout' must be a finite positive number, got {self.timeout!r}")
        object.__setattr__(self, "timeout", timeout)

        # Mapping options are shared by concurrent callbacks: freeze a copy.
        for name in ("token_params", "auth_token_params", "authorize_params"):
            value = getattr(self, name)
            if value is None:
                value = {}
            elif not isinstance(value, Mapping):
                raise ConfigurationError(f"'{name}' must be a mapping, got {type(value).__name__}")
            object.__setattr__(self, name, MappingProxyType(dict(value)))

    @property
    def issuer(self) -> str | None:
        """Return the user pool issuer URL, when region and pool are known."""
        if self.aws_region and self.user_pool_id:
            return f"https://cognito-idp.{self.aws_region}.amazonaws.com/{self.user_pool_id}"
        return None

    @property
    def default_callback_path(self) -> str:
        """Return ``<path_prefix>/<name>/callback``."""
        prefix = self.path_prefix.rstrip("/")
        return f"{prefix}/{self.name}/callback"

    @property
    def resolved_callback_path(self) -> str:
        """Return the configured callback path, or the default one."""
        return self.callback_path or self.default_callback_path

    @property
    def authorize_endpoint(self) -> str:
        """Return the absolute authorize endpoint URL."""
        return self._endpoint(self.authorize_url, "authorize_url")

    @property
    def token_endpoint(self) -> str:
        """Return the absolute token endpoint URL."""
        return self._endpoint(self.token_url, "token_url")

    def _endpoint(self, url: str, option: str) -> str:
        if url.startswith(("http://", "https://")):
            return url
        if not self.site:
            raise ConfigurationError(f"'{option}' is relative ({url!r}) but no 'site' is configured")
        return f"{self.site.rstrip('/')}/{url.lstrip('/')}"


def build_options(
    config: Mapping[str, Any] | None = None,
    **overrides: Any,
) -> StrategyOptions:
    """Build StrategyOptions from a mapping with keyword overrides.

    Args:
        config: Option mapping (e.g. a YAML section). Unknown keys are rejected.
        **overrides: Values that win over ``config``.

    Returns:
        Validated StrategyOptions.

    Raises:
        ConfigurationError: If keys are unknown or values are invalid.

    Examples:
        >>> opts = build_options({"client_id": "a", "client_secret": "b"}, aws_region="eu-west-1")
        >>> opts.aws_region
        'eu-west-1'
    """
    merged: dict[str, Any] = {k: dict(v) if isinstance(v, dict) else v for k, v in DEFAULT_OPTIONS.items()}
    merged.update(config or {})
    merged.update(overrides)

    known = {f.name for f in fields(StrategyOptions)}
    unknown = sorted(set(merged) - known)
    if unknown:
        raise ConfigurationError(f"Unknown strategy option(s): {', '.join(unknown)}")

    for required in ("client_id", "client_secret"):
        if not merged.get(required):
            raise ConfigurationError(f"Strategy options missing required '{required}'")

    return StrategyOptions(**merged)


def load_config_file(path: str | Path, section: str | None = "cognito") -> dict[str, Any]:
    """Load strategy options from a YAML file.

    String values may reference environment variables with ``${VAR}`` or
    ``${VAR:-default}``.

    Args:
        path: YAML file to read.
        section: Top level key holding the options, or None for the whole file.

    Returns:
        Option mapping suitable for ``build_options``.

    Raises:
        ConfigurationError: If the file is unreadable, malformed, or a
            referenced environment variable is not set.
    """
    import yaml

    file_path = Path(path).expanduser()
    try:
        content = file_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Cannot read config file {file_path}: {exc}") from exc

    try:
        data = yaml.safe_load(content) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {file_path}: {exc}") from exc

    if section is not None:
        data = data.get(section) if isinstance(data, dict) else None
        if data is None:
            raise ConfigurationError(f"Section '{section}' not found in {file_path}")

    if not isinstance(data, dict):
        raise ConfigurationError(f"Invalid config format in {file_path}: expected a mapping")

    logger.debug("Loaded strategy options from %s (keys: %s)", file_path, sorted(data))
    return _expand_env_vars_recursive(data, source=str(file_path))


def _expand_env_vars(value: str, source: str | None = None) -> str:
    """Expand ``${VAR}`` and ``${VAR:-default}`` in a string.

    Examples:
        >>> import os
        >>> os.environ["COGNITO_TEST_REGION"] = "eu-west-1"
        >>> _expand_env_vars("${COGNITO_TEST_REGION}")
        'eu-west-1'
        >>> _expand_env_vars("${COGNITO_MISSING:-us-east-1}")
        'us-east-1'
    """

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        default_value = match.group(2)

        env_value = os.environ.get(var_name)
        if env_value is not None:
            return env_value
        if default_value is not None:
            return default_value

        where = f" (referenced in {source})" if source else ""
        raise ConfigurationError(f"Environment variable '{var_name}' is not set{where}")

    return _ENV_VAR_PATTERN.sub(replacer, value)


def _expand_env_vars_recursive(data: Any, source: str | None = None) -> Any:
    """Recursively expand environment variables in dicts, lists and strings."""
    if isinstance(data, dict):
        return {k: _expand_env_vars_recursive(v, source) for k, v in data.items()}
    if isinstance(data, list):
        return [_expand_env_vars_recursive(item, source) for item in data]
    if isinstance(data, str):
        return _expand_env_vars(data, source)
    return data


_TRUE_STRINGS = frozenset({"true", "yes", "on", "1"})
_FALSE_STRINGS = frozenset({"false", "no", "off", "0", ""})


def _as_bool(value: Any, option: str) -> bool:
    """Coerce a flag given as bool or as an environment-expanded string.

    Examples:
        >>> _as_bool("False", "jwt_verify"), _as_bool(" yes ", "jwt_verify")
        (False, True)
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    raise ConfigurationError(f"'{option}' must be a boolean, got {value!r}")


def _field_name(value: Any) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


__all__ = [
    "DEFAULT_OPTIONS",
    "StrategyOptions",
    "build_options",
    "load_config_file",
]
