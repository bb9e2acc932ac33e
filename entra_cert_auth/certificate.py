"""
Certificate thumbprint (``x5t``) derivation.

Background for newcomers:
    When a client authenticates with a certificate instead of a secret, Entra
    ID needs to know *which* of the app registration's uploaded certificates
    should verify the assertion signature. The JWT header carries an ``x5t``
    value for that: the SHA-1 digest of the certificate's DER encoding,
    base64url-encoded without padding.

    Entra recomputes the same digest from its own copy of the certificate. The
    digest must cover the complete outer DER encoding (not just the public key
    or the TBS part), otherwise the lookup fails server-side with nothing to
    see locally.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from jwt.utils import base64url_encode

SHA1_DIGEST_SIZE = 20


class CertificateParseError(ValueError):
    """Raised when the certificate PEM cannot be turned into exactly one X.509 certificate."""

    pass


@dataclass(frozen=True)
class CertificateThumbprint:
    """SHA-1 digest of a certificate's DER encoding."""

    digest: bytes

    def __post_init__(self) -> None:
        if len(self.digest) != SHA1_DIGEST_SIZE:
            raise ValueError(f"SHA-1 thumbprint must be {SHA1_DIGEST_SIZE} bytes, got {len(self.digest)}")

    @property
    def x5t(self) -> str:
        """The digest as a JOSE ``x5t`` header value (base64url, unpadded)."""
        return base64url_encode(self.digest).decode("ascii")

    def __str__(self) -> str:
        return self.x5t


@dataclass(frozen=True)
class CertificateMaterial:
    """Parsed public certificate: raw DER plus the values derived from it."""

    der: bytes
    thumbprint: CertificateThumbprint

    @property
    def x5c(self) -> str:
        """Standard (not url-safe) base64 of the DER, as used in an ``x5c`` header entry."""
        return base64.b64encode(self.der).decode("ascii")


def load_certificate(public_cert_pem: bytes | str) -> CertificateMaterial:
    """
    Parse a PEM block holding exactly one X.509 certificate.

    Raises CertificateParseError for empty input, missing or garbled PEM
    framing, invalid DER, or a bundle with more than one certificate.
    """
    if isinstance(public_cert_pem, str):
        public_cert_pem = public_cert_pem.encode("ascii", errors="replace")
    if not public_cert_pem or not public_cert_pem.strip():
        raise CertificateParseError("Invalid certificate: empty input")

    try:
        certs = x509.load_pem_x509_certificates(public_cert_pem)
    except ValueError as e:
        raise CertificateParseError(f"Invalid certificate: malformed PEM or DER ({e})") from e

    if len(certs) != 1:
        raise CertificateParseError(
            f"Invalid certificate: expected exactly one certificate, found {len(certs)}"
        )

    cert = certs[0]
    der = cert.public_bytes(serialization.Encoding.DER)
    return CertificateMaterial(
        der=der,
        thumbprint=CertificateThumbprint(digest=cert.fingerprint(hashes.SHA1())),
    )


def thumbprint(public_cert_pem: bytes | str) -> CertificateThumbprint:
    """Return the ``x5t`` thumbprint of a PEM certificate. Pure function of the input bytes."""
    return load_certificate(public_cert_pem).thumbprint
