"""
Build and sign the JWT client assertion.

Background for newcomers:
    With certificate credentials the client proves its identity by sending a
    short-lived JWT signed with its private key (``client_assertion``) instead
    of a ``client_secret``. Entra verifies it with the certificate registered
    on the app, located via the ``x5t`` thumbprint in the header.

    The signature covers the exact ASCII bytes
    ``base64url(header_json) + "." + base64url(payload_json)``. We therefore
    serialize the JSON ourselves (compact separators, fixed key order) and
    sign those bytes directly; re-encoding after signing would break it.

    Each assertion gets a fresh ``jti`` and a short ``nbf``..``exp`` window so
    a captured assertion cannot be replayed for long.
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from jwt.algorithms import RSAAlgorithm
from jwt.utils import base64url_decode, base64url_encode

from .certificate import CertificateThumbprint

logger = logging.getLogger(__name__)

ALGORITHM = "RS256"
TOKEN_TYPE = "JWT"
DEFAULT_LIFETIME_SECONDS = 300

_RS256 = RSAAlgorithm(RSAAlgorithm.SHA256)


class AssertionBuildError(Exception):
    """Raised when a client assertion cannot be built. Never carries key material."""

    pass


class KeyParseError(AssertionBuildError):
    """Private key PEM is malformed, encrypted, or not an RSA key."""

    pass


class SigningError(AssertionBuildError):
    """The crypto backend refused to sign (e.g. key too small for RS256)."""

    pass


@dataclass(frozen=True)
class SignedAssertion:
    """
    A compact, signed JWT ready to send as ``client_assertion``.

    Single use: tied to one ``jti`` and one validity window.
    """

    token: str
    jti: str
    not_before: int
    expires_at: int

    @property
    def signing_input(self) -> bytes:
        """The bytes the signature was computed over (first two segments)."""
        header_segment, payload_segment, _ = self.token.split(".")
        return f"{header_segment}.{payload_segment}".encode("ascii")

    @property
    def header(self) -> dict[str, Any]:
        return decode_segment(self.token.split(".")[0])

    @property
    def payload(self) -> dict[str, Any]:
        return decode_segment(self.token.split(".")[1])

    def __str__(self) -> str:
        return self.token


def _encode_segment(obj: dict[str, Any]) -> str:
    raw = json.dumps(obj, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    return base64url_encode(raw).decode("ascii")


def decode_segment(segment: str) -> dict[str, Any]:
    """Decode one base64url JWT segment back into its JSON object."""
    return json.loads(base64url_decode(segment.encode("ascii")))


def _load_private_key(private_key_pem: bytes | str) -> RSAPrivateKey:
    if isinstance(private_key_pem, str):
        private_key_pem = private_key_pem.encode("ascii", errors="replace")
    try:
        key = serialization.load_pem_private_key(private_key_pem, password=None)
    except TypeError as e:
        # Encrypted PEM without a password.
        raise KeyParseError("Invalid private key: encrypted keys are not supported") from e
    except (ValueError, UnsupportedAlgorithm) as e:
        raise KeyParseError("Invalid private key: malformed PEM") from e
    if not isinstance(key, RSAPrivateKey):
        raise KeyParseError(f"Invalid private key: expected RSA, got {type(key).__name__}")
    return key


def build_header(thumbprint: CertificateThumbprint, x5c: str | None = None) -> dict[str, Any]:
    header: dict[str, Any] = {
        "alg": ALGORITHM,
        "typ": TOKEN_TYPE,
        "x5t": thumbprint.x5t,
    }
    if x5c:
        header["x5c"] = [x5c]
    return header


def build_payload(
    client_id: str,
    token_endpoint: str,
    *,
    lifetime_seconds: int = DEFAULT_LIFETIME_SECONDS,
    now: float | None = None,
) -> dict[str, Any]:
    """Claims for one assertion. ``jti`` is a fresh random UUID on every call."""
    issued_at = int(time.time() if now is None else now)
    return {
        "aud": token_endpoint,
        "iss": client_id,
        "sub": client_id,
        "jti": str(uuid.uuid4()),
        "nbf": issued_at,
        "exp": issued_at + lifetime_seconds,
        "iat": issued_at,
    }


def build_assertion(
    tenant_id: str,
    client_id: str,
    token_endpoint: str,
    private_key_pem: bytes | str,
    thumbprint: CertificateThumbprint,
    *,
    lifetime_seconds: int = DEFAULT_LIFETIME_SECONDS,
    x5c: str | None = None,
    now: float | None = None,
) -> SignedAssertion:
    """
    Build and RS256-sign a client assertion for ``client_id``.

    ``token_endpoint`` becomes the ``aud`` claim and must be the exact URL the
    token request is sent to. The key is not checked against the certificate;
    a mismatch only shows up as a rejection from the token endpoint.

    Raises KeyParseError or SigningError. Empty identifiers or a non-positive
    lifetime raise ValueError.
    """
    if not tenant_id or not client_id:
        raise ValueError("tenant_id and client_id must be non-empty")
    if not token_endpoint:
        raise ValueError("token_endpoint must be non-empty")
    if lifetime_seconds <= 0:
        raise ValueError("lifetime_seconds must be positive")

    key = _load_private_key(private_key_pem)

    header = build_header(thumbprint, x5c)
    payload = build_payload(client_id, token_endpoint, lifetime_seconds=lifetime_seconds, now=now)
    signing_input = f"{_encode_segment(header)}.{_encode_segment(payload)}"

    try:
        signature = _RS256.sign(signing_input.encode("ascii"), key)
    except ValueError as e:
        raise SigningError(f"Signing failed: {e}") from e

    logger.debug(
        "Client assertion built jti=%s aud=%s exp=%s",
        payload["jti"],
        token_endpoint,
        payload["exp"],
    )
    return SignedAssertion(
        token=f"{signing_input}.{base64url_encode(signature).decode('ascii')}",
        jti=payload["jti"],
        not_before=payload["nbf"],
        expires_at=payload["exp"],
    )
