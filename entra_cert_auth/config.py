"""Configuration from environment variables. Key material is never read from here."""

from __future__ import annotations

import os
from dataclasses import dataclass

from .assertion import DEFAULT_LIFETIME_SECONDS

DEFAULT_AUTHORITY_HOST = "https://login.microsoftonline.com"
DEFAULT_SCOPE = "https://graph.microsoft.com/.default"
DEFAULT_HTTP_TIMEOUT_SECONDS = 10
TOKEN_URL_TEMPLATE = "{authority_host}/{tenant_id}/oauth2/v2.0/token"


def token_endpoint(tenant_id: str, authority_host: str = DEFAULT_AUTHORITY_HOST) -> str:
    """v2.0 token endpoint for a tenant. Also the ``aud`` of the client assertion."""
    return TOKEN_URL_TEMPLATE.format(authority_host=authority_host.rstrip("/"), tenant_id=tenant_id)


def _getenv(key: str, default: str | None = None) -> str | None:
    return os.environ.get(key, default)


def _getenv_int(key: str, default: int) -> int:
    raw = os.environ.get(key)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


@dataclass(frozen=True)
class ClientCertConfig:
    """
    Identity and protocol settings for certificate-based client credentials.

    Required:
        AZURE_TENANT_ID: Tenant (directory) ID.
        AZURE_CLIENT_ID: Application (client) ID of the calling app.

    Optional:
        AZURE_SCOPE: Requested scope (default Microsoft Graph ``.default``).
        AZURE_AUTHORITY_HOST: Login host (default https://login.microsoftonline.com).
        ASSERTION_LIFETIME_SECONDS: ``exp - nbf`` of each assertion (default 300).
        TOKEN_HTTP_TIMEOUT_SECONDS: Token request timeout (default 10).
        AZURE_SEND_X5C: 1/true/yes to include the certificate in the ``x5c`` header.
    """

    tenant_id: str
    client_id: str
    scope: str = DEFAULT_SCOPE
    authority_host: str = DEFAULT_AUTHORITY_HOST
    assertion_lifetime_seconds: int = DEFAULT_LIFETIME_SECONDS
    http_timeout_seconds: int = DEFAULT_HTTP_TIMEOUT_SECONDS
    send_x5c: bool = False

    @property
    def token_endpoint(self) -> str:
        return token_endpoint(self.tenant_id, self.authority_host)

    @classmethod
    def from_environ(cls) -> ClientCertConfig:
        tenant = _getenv("AZURE_TENANT_ID")
        client = _getenv("AZURE_CLIENT_ID")
        if not tenant or not tenant.strip() or not client or not client.strip():
            raise ValueError("AZURE_TENANT_ID and AZURE_CLIENT_ID must be set")
        return cls(
            tenant_id=tenant.strip(),
            client_id=client.strip(),
            scope=_strip_or_none(_getenv("AZURE_SCOPE")) or DEFAULT_SCOPE,
            authority_host=_strip_or_none(_getenv("AZURE_AUTHORITY_HOST")) or DEFAULT_AUTHORITY_HOST,
            assertion_lifetime_seconds=_getenv_int(
                "ASSERTION_LIFETIME_SECONDS", DEFAULT_LIFETIME_SECONDS
            ),
            http_timeout_seconds=_getenv_int("TOKEN_HTTP_TIMEOUT_SECONDS", DEFAULT_HTTP_TIMEOUT_SECONDS),
            send_x5c=(_getenv("AZURE_SEND_X5C") or "").strip().lower() in ("1", "true", "yes"),
        )


def _strip_or_none(s: str | None) -> str | None:
    if s is None:
        return None
    t = s.strip()
    return t if t else None
