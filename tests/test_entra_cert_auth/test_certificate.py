"""Tests for certificate thumbprint derivation."""

import base64
import hashlib
import textwrap

import pytest
from cryptography.hazmat.primitives import serialization
from jwt.utils import base64url_decode

from entra_cert_auth.certificate import (
    CertificateParseError,
    CertificateThumbprint,
    load_certificate,
    thumbprint,
)


def _pem_from_der(der: bytes) -> bytes:
    body = "\n".join(textwrap.wrap(base64.b64encode(der).decode("ascii"), 64))
    return f"-----BEGIN CERTIFICATE-----\n{body}\n-----END CERTIFICATE-----\n".encode("ascii")


def test_thumbprint_is_sha1_of_full_der(certificate, cert_pem):
    der = certificate.public_bytes(serialization.Encoding.DER)
    tp = thumbprint(cert_pem)
    assert tp.digest == hashlib.sha1(der).digest()
    assert len(tp.digest) == 20


def test_thumbprint_x5t_is_unpadded_base64url(cert_pem):
    tp = thumbprint(cert_pem)
    assert "=" not in tp.x5t
    assert "+" not in tp.x5t and "/" not in tp.x5t
    assert base64url_decode(tp.x5t.encode("ascii")) == tp.digest
    assert str(tp) == tp.x5t


def test_thumbprint_deterministic(cert_pem):
    assert thumbprint(cert_pem) == thumbprint(cert_pem)
    assert thumbprint(cert_pem).x5t == thumbprint(bytes(cert_pem)).x5t


def test_thumbprint_accepts_str(cert_pem):
    assert thumbprint(cert_pem.decode("ascii")) == thumbprint(cert_pem)


def test_thumbprint_differs_between_certificates(cert_pem, other_cert_pem):
    assert thumbprint(cert_pem) != thumbprint(other_cert_pem)


@pytest.mark.parametrize("offset", [1, 2, 3, 10, 50])
def test_single_byte_change_changes_thumbprint(certificate, cert_pem, offset):
    # Flip a byte inside the signature value; the DER stays structurally valid.
    der = bytearray(certificate.public_bytes(serialization.Encoding.DER))
    der[-offset] ^= 0x01
    assert thumbprint(_pem_from_der(bytes(der))) != thumbprint(cert_pem)


def test_load_certificate_exposes_der_and_x5c(certificate, cert_pem):
    material = load_certificate(cert_pem)
    der = certificate.public_bytes(serialization.Encoding.DER)
    assert material.der == der
    assert base64.b64decode(material.x5c) == der
    assert "\n" not in material.x5c


def test_truncated_pem_raises(cert_pem):
    with pytest.raises(CertificateParseError):
        thumbprint(cert_pem[: len(cert_pem) // 2])


def test_truncated_base64_body_raises(cert_pem):
    lines = cert_pem.decode("ascii").strip().splitlines()
    broken = "\n".join([lines[0], *lines[1:4], lines[-1]]) + "\n"
    with pytest.raises(CertificateParseError):
        thumbprint(broken.encode("ascii"))


def test_wrong_pem_label_raises(cert_pem):
    relabelled = cert_pem.replace(b"CERTIFICATE", b"PUBLIC KEY")
    with pytest.raises(CertificateParseError):
        thumbprint(relabelled)


def test_private_key_pem_is_not_a_certificate(private_key_pem):
    with pytest.raises(CertificateParseError):
        thumbprint(private_key_pem)


@pytest.mark.parametrize("value", [b"", b"   \n", "not a pem"])
def test_empty_or_garbage_input_raises(value):
    with pytest.raises(CertificateParseError):
        thumbprint(value)


def test_bundle_with_two_certificates_raises(cert_pem, other_cert_pem):
    with pytest.raises(CertificateParseError, match="exactly one certificate, found 2"):
        thumbprint(cert_pem + other_cert_pem)


def test_certificate_parse_error_is_value_error():
    assert issubclass(CertificateParseError, ValueError)


def test_thumbprint_rejects_wrong_digest_length():
    with pytest.raises(ValueError):
        CertificateThumbprint(digest=b"\x00" * 32)
