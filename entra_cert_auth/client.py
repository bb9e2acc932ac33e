"""
Exchange a certificate-signed client assertion for an access token.

Background for newcomers:
    This is the OAuth2 client-credentials grant (app-only, no user) where the
    app authenticates with ``client_assertion`` instead of ``client_secret``.
    The request is a single form POST to the tenant's v2.0 token endpoint::

        client_id=<app id>
        scope=<resource>/.default
        client_assertion_type=urn:ietf:params:oauth:client-assertion-type:jwt-bearer
        client_assertion=<signed JWT>
        grant_type=client_credentials

    Failures fall into three groups and map to distinct exceptions so callers
    can tell them apart:

    * ``OAuthError`` - Entra said no (bad thumbprint, key/cert mismatch,
      expired window, wrong ``aud``, missing permissions). Fix credentials or
      app registration.
    * ``MalformedResponse`` - a success status with a body we cannot use.
    * ``TransportError`` - network, TLS or timeout. Retry policy is up to the
      caller.

    Local credential problems (``CertificateParseError``,
    ``AssertionBuildError``) propagate unchanged and happen before any
    network call.
"""

from __future__ import annotations

import logging
from typing import Any

import requests
from pydantic import ValidationError

from .assertion import DEFAULT_LIFETIME_SECONDS, SignedAssertion, build_assertion
from .certificate import load_certificate
from .config import DEFAULT_AUTHORITY_HOST, DEFAULT_HTTP_TIMEOUT_SECONDS, ClientCertConfig, token_endpoint
from .models import ErrorBody, TokenBody, TokenResponse

logger = logging.getLogger(__name__)

CLIENT_ASSERTION_TYPE = "urn:ietf:params:oauth:client-assertion-type:jwt-bearer"
GRANT_TYPE = "client_credentials"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

_BODY_EXCERPT_CHARS = 200


class TokenError(Exception):
    """Base class for token exchange failures. Never carries the assertion or token."""

    pass


class OAuthError(TokenError):
    """The token endpoint rejected the request."""

    def __init__(
        self,
        code: str,
        description: str = "",
        *,
        status_code: int | None = None,
        error_codes: tuple[int, ...] = (),
        correlation_id: str | None = None,
        trace_id: str | None = None,
    ) -> None:
        super().__init__(f"{code}: {description}" if description else code)
        self.code = code
        self.description = description
        self.status_code = status_code
        self.error_codes = error_codes
        self.correlation_id = correlation_id
        self.trace_id = trace_id


class MalformedResponse(TokenError):
    """Token endpoint answered with a body that is not a usable token response."""

    def __init__(self, message: str, *, status_code: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class TransportError(TokenError):
    """The request never produced an HTTP response (connection, TLS, timeout)."""

    pass


def build_token_request(client_id: str, scope: str, assertion: SignedAssertion | str) -> dict[str, str]:
    """Form fields for the token request."""
    return {
        "client_id": client_id,
        "scope": scope,
        "client_assertion_type": CLIENT_ASSERTION_TYPE,
        "client_assertion": str(assertion),
        "grant_type": GRANT_TYPE,
    }


def _excerpt(text: str) -> str:
    text = text.strip()
    if len(text) <= _BODY_EXCERPT_CHARS:
        return text
    return text[:_BODY_EXCERPT_CHARS] + "..."


def _json_or_none(resp: requests.Response) -> Any:
    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError:
        return None


def parse_token_response(resp: requests.Response) -> TokenResponse:
    """
    Map an HTTP response from the token endpoint to a TokenResponse.

    Raises OAuthError for 4xx/5xx or an OAuth error body, MalformedResponse
    for a success status whose body is not JSON or lacks required fields.
    """
    status = resp.status_code
    body = _json_or_none(resp)

    if isinstance(body, dict) and "error" in body:
        try:
            err = ErrorBody.model_validate(body)
        except ValidationError:
            err = None
        if err is not None:
            raise OAuthError(
                err.error,
                err.error_description,
                status_code=status,
                error_codes=tuple(err.error_codes),
                correlation_id=err.correlation_id,
                trace_id=err.trace_id,
            )

    if status >= 400:
        raise OAuthError(f"http_{status}", _excerpt(resp.text), status_code=status)

    if not 200 <= status < 300:
        raise MalformedResponse(f"Unexpected HTTP status {status}", status_code=status, body=_excerpt(resp.text))
    if body is None:
        raise MalformedResponse("Token response is not JSON", status_code=status, body=_excerpt(resp.text))
    if not isinstance(body, dict):
        raise MalformedResponse("Token response is not a JSON object", status_code=status)

    try:
        parsed = TokenBody.model_validate(body)
    except ValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
        raise MalformedResponse(
            f"Token response missing or invalid fields: {', '.join(fields)}",
            status_code=status,
        ) from e
    return TokenResponse.from_body(parsed)


def acquire_token(
    tenant_id: str,
    client_id: str,
    scope: str,
    private_key_pem: bytes | str,
    public_key_pem: bytes | str,
    *,
    session: requests.Session | None = None,
    timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
    authority_host: str = DEFAULT_AUTHORITY_HOST,
    send_x5c: bool = False,
    lifetime_seconds: int = DEFAULT_LIFETIME_SECONDS,
) -> TokenResponse:
    """
    Acquire an app-only access token using certificate credentials.

    Builds a fresh assertion (new ``jti``, new validity window) and sends
    exactly one POST. No retry and no caching. ``session`` may be any object
    with a ``requests``-style ``post``; the module-level ``requests.post`` is
    used when omitted.

    Raises CertificateParseError, AssertionBuildError, OAuthError,
    MalformedResponse or TransportError.
    """
    if timeout is None or timeout <= 0:
        raise ValueError("timeout must be a positive number of seconds")

    url = token_endpoint(tenant_id, authority_host)
    cert = load_certificate(public_key_pem)
    assertion = build_assertion(
        tenant_id,
        client_id,
        url,
        private_key_pem,
        cert.thumbprint,
        lifetime_seconds=lifetime_seconds,
        x5c=cert.x5c if send_x5c else None,
    )
    form = build_token_request(client_id, scope, assertion)

    http: Any = session if session is not None else requests
    try:
        resp = http.post(
            url,
            data=form,
            headers={"Content-Type": FORM_CONTENT_TYPE, "Accept": "application/json"},
            timeout=timeout,
        )
    except requests.RequestException as e:
        logger.warning("Token request failed: %s", type(e).__name__, exc_info=False)
        raise TransportError(f"Token request to {url} failed: {type(e).__name__}") from e

    try:
        token = parse_token_response(resp)
    except OAuthError as e:
        logger.warning(
            "Token endpoint rejected request code=%s status=%s correlation_id=%s",
            e.code,
            e.status_code,
            e.correlation_id,
        )
        raise
    except MalformedResponse as e:
        logger.warning("Malformed token response status=%s: %s", e.status_code, e)
        raise

    logger.info("Access token acquired client_id=%s expires_in=%s", client_id, token.expires_in)
    return token


class TokenClient:
    """
    Acquires tokens for one app registration described by a ClientCertConfig.

    Holds no per-call state, so one instance can serve concurrent threads.
    Pass a ``requests.Session`` to reuse connections.
    """

    def __init__(self, config: ClientCertConfig | None = None, session: requests.Session | None = None) -> None:
        self._config = config or ClientCertConfig.from_environ()
        self._session = session

    @property
    def config(self) -> ClientCertConfig:
        return self._config

    def acquire_token(
        self,
        private_key_pem: bytes | str,
        public_key_pem: bytes | str,
        scope: str | None = None,
    ) -> TokenResponse:
        """Acquire a token for the configured app; ``scope`` overrides the configured one."""
        cfg = self._config
        return acquire_token(
            cfg.tenant_id,
            cfg.client_id,
            scope or cfg.scope,
            private_key_pem,
            public_key_pem,
            session=self._session,
            timeout=cfg.http_timeout_seconds,
            authority_host=cfg.authority_host,
            send_x5c=cfg.send_x5c,
            lifetime_seconds=cfg.assertion_lifetime_seconds,
        )
