"""OAuth2 callback strategy for Amazon Cognito user pools.

The strategy exchanges the authorization code returned by Cognito for
tokens, decodes (and optionally verifies) the ID token and normalizes the
result into an authentication record.

Examples:
    Build a strategy and handle a callback:

    >>> from cognito_oauth import CognitoStrategy, RequestContext
    >>> strategy = CognitoStrategy.from_config(
    ...     {"client_id": "abc", "client_secret": "s3cr3t", "site": "https://app.auth.eu-west-1.amazoncognito.com"},
    ...     aws_region="eu-west-1",
    ...     user_pool_id="eu-west-1_AbCdEf",
    ... )  # doctest: +SKIP
    >>> context = RequestContext.from_url(request_url, session=session)  # doctest: +SKIP
    >>> outcome = strategy.callback_phase(context)  # doctest: +SKIP
    >>> outcome.auth.uid  # doctest: +SKIP
    '1234-5678-9012'
"""

from cognito_oauth.claims import Identity, extract_identity
from cognito_oauth.config import DEFAULT_OPTIONS, StrategyOptions, build_options, load_config_file
from cognito_oauth.errors import (
    AuthError,
    AuthorizationError,
    ConfigurationError,
    CsrfStateMismatchError,
    MalformedTokenError,
    MissingClaimError,
    MissingIdTokenError,
    SignatureVerificationError,
    TokenError,
    TokenExchangeError,
    TokenValidationError,
)
from cognito_oauth.exchange import HttpTokenExchanger, TokenExchanger, exchange_code, normalize_keys
from cognito_oauth.meta import __version__
from cognito_oauth.models import AuthRecord, CallbackOutcome, CallbackState, ClaimSet, Credentials, Token
from cognito_oauth.strategy import (
    AUTH_ENV_KEY,
    ERROR_ENV_KEY,
    ERROR_TYPE_ENV_KEY,
    SESSION_STATE_KEY,
    CallbackPhase,
    CognitoStrategy,
    RequestContext,
)
from cognito_oauth.urls import build_authorize_url, build_callback_url, build_full_host
from cognito_oauth.verifier import SignatureVerifier, TokenVerifier, UnverifiedDecoder, build_verifier

__all__ = [
    "AUTH_ENV_KEY",
    "DEFAULT_OPTIONS",
    "ERROR_ENV_KEY",
    "ERROR_TYPE_ENV_KEY",
    "SESSION_STATE_KEY",
    "AuthError",
    "AuthRecord",
    "AuthorizationError",
    "CallbackOutcome",
    "CallbackPhase",
    "CallbackState",
    "ClaimSet",
    "CognitoStrategy",
    "ConfigurationError",
    "Credentials",
    "CsrfStateMismatchError",
    "HttpTokenExchanger",
    "Identity",
    "MalformedTokenError",
    "MissingClaimError",
    "MissingIdTokenError",
    "RequestContext",
    "SignatureVerificationError",
    "SignatureVerifier",
    "StrategyOptions",
    "Token",
    "TokenError",
    "TokenExchangeError",
    "TokenExchanger",
    "TokenValidationError",
    "TokenVerifier",
    "UnverifiedDecoder",
    "__version__",
    "build_authorize_url",
    "build_callback_url",
    "build_full_host",
    "build_options",
    "build_verifier",
    "exchange_code",
    "extract_identity",
    "load_config_file",
    "normalize_keys",
]
