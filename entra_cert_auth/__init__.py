"""
Certificate-based client credentials for Azure Entra ID.

Call acquire_token() with tenant id, client id, scope, and the PEM bytes of
the app's RSA private key and certificate to get a TokenResponse. Loading the
PEM files or secrets is left to the caller.
"""

from .assertion import AssertionBuildError, KeyParseError, SignedAssertion, SigningError, build_assertion
from .certificate import CertificateMaterial, CertificateParseError, CertificateThumbprint, load_certificate, thumbprint
from .client import MalformedResponse, OAuthError, TokenClient, TokenError, TransportError, acquire_token
from .config import ClientCertConfig, token_endpoint
from .logging_config import configure_logging
from .models import TokenResponse

__all__ = [
    "AssertionBuildError",
    "CertificateMaterial",
    "CertificateParseError",
    "CertificateThumbprint",
    "ClientCertConfig",
    "KeyParseError",
    "MalformedResponse",
    "OAuthError",
    "SignedAssertion",
    "SigningError",
    "TokenClient",
    "TokenError",
    "TokenResponse",
    "TransportError",
    "acquire_token",
    "build_assertion",
    "configure_logging",
    "load_certificate",
    "thumbprint",
    "token_endpoint",
]
