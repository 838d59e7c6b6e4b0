"""Cognito OAuth2 strategy: authorize redirect and callback phase.

A callback runs through the states::

    AWAITING_CALLBACK -> EXCHANGING_TOKEN -> VERIFYING_TOKEN
        -> EXTRACTING_CLAIMS -> COMPLETE

and drops to FAILED from any of them. ``CallbackPhase`` runs the machine
once and raises the error that stopped it. ``CognitoStrategy`` is the host
facing surface: it builds a fresh phase per request, writes the resulting
record (or error) into the request environment and never lets an
authentication failure escape as a crash.

Example:
    >>> strategy = CognitoStrategy.from_config(path="cognito.yml")  # doctest: +SKIP
    >>> redirect = strategy.request_phase(context)  # doctest: +SKIP
    >>> outcome = strategy.callback_phase(context)  # doctest: +SKIP
    >>> context.env["cognito.auth"]["uid"]  # doctest: +SKIP
    '1234-5678-9012'
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any
from urllib.parse import parse_qsl, urlsplit

from cognito_oauth.claims import extract_identity
from cognito_oauth.config import StrategyOptions, build_options, load_config_file
from cognito_oauth.errors import (
    AuthError,
    AuthorizationError,
    CsrfStateMismatchError,
    MissingIdTokenError,
)
from cognito_oauth.exchange import HttpTokenExchanger, exchange_code
from cognito_oauth.models import AuthRecord, CallbackOutcome, CallbackState, Credentials
from cognito_oauth.urls import build_authorize_url, build_callback_url, build_full_host
from cognito_oauth.verifier import build_verifier

if TYPE_CHECKING:
    from cognito_oauth.exchange import TokenExchanger
    from cognito_oauth.verifier import TokenVerifier

logger = logging.getLogger(__name__)

SESSION_STATE_KEY = "cognito.state"
AUTH_ENV_KEY = "cognito.auth"
ERROR_ENV_KEY = "cognito.error"
ERROR_TYPE_ENV_KEY = "cognito.error.type"


@dataclass(slots=True)
class RequestContext:
    """The slice of an HTTP request the strategy needs.

    Hosts adapt their framework request to this view for the duration of
    one request.

    Attributes:
        params: Query and body parameters (``code``, ``state``, ``error``...).
        session: Session mapping; holds the issued state between phases.
        env: Request environment receiving the result.
        scheme: Externally visible scheme.
        host: Externally visible host name.
        port: Externally visible port, if not the scheme default.
        script_name: Mount path of the application.
    """

    params: Mapping[str, Any] = field(default_factory=dict)
    session: MutableMapping[str, Any] = field(default_factory=dict)
    env: MutableMapping[str, Any] = field(default_factory=dict)
    scheme: str = "http"
    host: str = "localhost"
    port: int | None = None
    script_name: str = ""

    @property
    def full_host(self) -> str:
        """Return ``scheme://host[:port]`` as seen by the browser."""
        return build_full_host(self.scheme, self.host, self.port)

    @classmethod
    def from_url(
        cls,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        session: MutableMapping[str, Any] | None = None,
        env: MutableMapping[str, Any] | None = None,
        script_name: str = "",
    ) -> RequestContext:
        """Build a context from the full request URL.

        Query string parameters become ``params``; explicit ``params`` win.

        Examples:
            >>> ctx = RequestContext.from_url("https://example.com:8443/auth/cognito/callback?code=1")
            >>> ctx.full_host, ctx.params["code"]
            ('https://example.com:8443', '1')
        """
        parts = urlsplit(url)
        merged: dict[str, Any] = dict(parse_qsl(parts.query, keep_blank_values=True))
        merged.update(params or {})
        return cls(
            params=merged,
            session=session if session is not None else {},
            env=env if env is not None else {},
            scheme=parts.scheme or "http",
            host=parts.hostname or "localhost",
            port=parts.port,
            script_name=script_name,
        )


class CallbackPhase:
    """One run of the callback state machine.

    A phase is single use: create one per callback request.

    Args:
        options: Strategy options.
        verifier: ID token verifier.
        exchanger: Token exchanger collaborator.
        context: Request context of this callback.
        callback_url: Redirect URI sent with the exchange.
        token_overrides: Per-request token parameters (win over options).
    """

    def __init__(
        self,
        options: StrategyOptions,
        verifier: TokenVerifier,
        exchanger: TokenExchanger,
        context: RequestContext,
        callback_url: str,
        token_overrides: Mapping[str, Any] | None = None,
    ) -> None:
        self._options = options
        self._verifier = verifier
        self._exchanger = exchanger
        self._context = context
        self._callback_url = callback_url
        self._token_overrides = token_overrides
        self._started = False
        self.state = CallbackState.AWAITING_CALLBACK

    def run(self) -> AuthRecord:
        """Run the callback to completion.

        Returns:
            The authentication record.

        Raises:
            AuthorizationError: If the provider returned an error or no code.
            CsrfStateMismatchError: If the state does not match the session.
            TokenExchangeError: If the exchange fails.
            MissingIdTokenError: If the response has no ID token.
            MalformedTokenError: If the ID token cannot be decoded.
            SignatureVerificationError: If the signature is rejected.
            MissingClaimError: If the ``sub`` claim is missing.
            RuntimeError: If this phase already ran.
        """
        if self._started:
            raise RuntimeError("CallbackPhase already ran; create a new phase per callback")
        self._started = True

        try:
            code = self._check_request()

            self._transition(CallbackState.EXCHANGING_TOKEN)
            token = exchange_code(
                self._exchanger,
                code,
                self._callback_url,
                self._options.token_params,
                self._options.auth_token_params,
                self._token_overrides,
            )

            self._transition(CallbackState.VERIFYING_TOKEN)
            id_token = token.id_token
            if not id_token:
                raise MissingIdTokenError()
            claims = self._verifier.verify(id_token)

            self._transition(CallbackState.EXTRACTING_CLAIMS)
            identity = extract_identity(claims, self._options.info_fields)

            record = AuthRecord(
                provider=self._options.name,
                uid=identity.uid,
                info=identity.info,
                credentials=Credentials.from_token(token, id_token),
                extra={"raw_info": identity.raw_info},
            )
        except Exception:
            self._transition(CallbackState.FAILED)
            raise

        self._transition(CallbackState.COMPLETE)
        return record

    def _check_request(self) -> str:
        """Validate provider error, state and code; return the code."""
        params = self._context.params

        error = params.get("error")
        if error:
            description = params.get("error_description")
            raise AuthorizationError(
                str(description or error),
                error_code=str(error),
                error_description=description,
            )

        # Pop first: a state value is usable once, whatever the outcome.
        expected = self._context.session.pop(SESSION_STATE_KEY, None)
        received = params.get("state")
        if not expected or not received:
            raise CsrfStateMismatchError("state missing from session or request")
        if not secrets.compare_digest(str(expected).encode("utf-8"), str(received).encode("utf-8")):
            raise CsrfStateMismatchError()

        code = params.get("code")
        if not code:
            raise AuthorizationError("no authorization code in callback", error_code="missing_code")
        return str(code)

    def _transition(self, state: CallbackState) -> None:
        logger.debug("Callback phase: %s -> %s", self.state.value, state.value)
        self.state = state


class CognitoStrategy:
    """OAuth2 strategy for Amazon Cognito user pools.

    The verifier is selected once here from ``options.jwt_verify``.

    Args:
        options: Strategy options.
        exchanger: Token exchanger; defaults to an ``HttpTokenExchanger``
            owned by the strategy and released by ``close()``.
        verifier: ID token verifier; defaults to ``build_verifier(options)``.

    Raises:
        ConfigurationError: If ``jwt_verify`` is set without key or algorithm.
    """

    def __init__(
        self,
        options: StrategyOptions,
        *,
        exchanger: TokenExchanger | None = None,
        verifier: TokenVerifier | None = None,
    ) -> None:
        self._options = options
        self._verifier = verifier if verifier is not None else build_verifier(options)
        self._owns_exchanger = exchanger is None
        self._exchanger: TokenExchanger = exchanger if exchanger is not None else HttpTokenExchanger(options)

    @classmethod
    def from_config(
        cls,
        config: Mapping[str, Any] | None = None,
        *,
        path: str | Path | None = None,
        section: str | None = "cognito",
        exchanger: TokenExchanger | None = None,
        verifier: TokenVerifier | None = None,
        **overrides: Any,
    ) -> CognitoStrategy:
        """Create a strategy from an option mapping and/or a YAML file.

        Precedence: ``overrides`` > ``config`` > file section > defaults.

        Args:
            config: Option mapping.
            path: YAML file holding the options.
            section: Top level key of the options in the file.
            exchanger: Token exchanger to inject.
            verifier: Verifier to inject.
            **overrides: Individual option overrides.

        Returns:
            Configured strategy.

        Raises:
            ConfigurationError: If options are missing or invalid.
        """
        data: dict[str, Any] = {}
        if path is not None:
            data.update(load_config_file(path, section=section))
        data.update(config or {})
        options = build_options(data, **overrides)
        return cls(options, exchanger=exchanger, verifier=verifier)

    @property
    def options(self) -> StrategyOptions:
        """Return the strategy options."""
        return self._options

    @property
    def name(self) -> str:
        """Return the strategy name."""
        return self._options.name

    @property
    def verifier(self) -> TokenVerifier:
        """Return the ID token verifier."""
        return self._verifier

    @property
    def exchanger(self) -> TokenExchanger:
        """Return the token exchanger."""
        return self._exchanger

    def callback_url(self, context: RequestContext) -> str:
        """Return the redirect URI for ``context``, without query string."""
        full_host = self._options.full_host or context.full_host
        return build_callback_url(
            full_host,
            context.script_name,
            self._options.callback_path,
            default_path=self._options.default_callback_path,
        )

    def request_phase(self, context: RequestContext, **authorize_params: Any) -> str:
        """Start the flow: store a fresh state and return the authorize URL.

        Args:
            context: Request context (its session receives the state).
            **authorize_params: Per-request authorize parameters.

        Returns:
            URL to redirect the browser to.
        """
        state = secrets.token_urlsafe(24)
        context.session[SESSION_STATE_KEY] = state
        url = build_authorize_url(self._options, self.callback_url(context), state, authorize_params)
        logger.debug("Redirecting to Cognito authorize endpoint %s", self._options.authorize_endpoint)
        return url

    def callback_phase(
        self,
        context: RequestContext,
        token_params: Mapping[str, Any] | None = None,
    ) -> CallbackOutcome:
        """Handle the provider callback.

        On success the record is written to ``context.env["cognito.auth"]``.
        On an authentication error the error and its type are written to
        ``context.env["cognito.error"]`` and ``context.env["cognito.error.type"]``
        and a failed outcome is returned.

        Args:
            context: Request context of the callback.
            token_params: Per-request token parameters.

        Returns:
            The callback outcome.
        """
        phase = CallbackPhase(
            self._options,
            self._verifier,
            self.exchanger,
            context,
            self.callback_url(context),
            token_params,
        )
        try:
            record = phase.run()
        except AuthError as exc:
            logger.warning(
                "Cognito authentication failed in %s (%s): %s",
                phase.state.value,
                exc.error_type,
                exc.message,
            )
            context.env[ERROR_ENV_KEY] = exc
            context.env[ERROR_TYPE_ENV_KEY] = exc.error_type
            return CallbackOutcome(state=CallbackState.FAILED, error=exc)

        context.env[AUTH_ENV_KEY] = record.to_dict()
        logger.info("Cognito authentication succeeded for uid=%s", record.uid)
        return CallbackOutcome(state=CallbackState.COMPLETE, auth=record)

    def close(self) -> None:
        """Release the default exchanger's HTTP client."""
        if self._owns_exchanger and isinstance(self._exchanger, HttpTokenExchanger):
            self._exchanger.close()


__all__ = [
    "AUTH_ENV_KEY",
    "ERROR_ENV_KEY",
    "ERROR_TYPE_ENV_KEY",
    "SESSION_STATE_KEY",
    "CallbackPhase",
    "CognitoStrategy",
    "RequestContext",
]
