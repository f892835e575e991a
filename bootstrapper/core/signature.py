"""Detached signature verification for the signed manifest.

The manifest bytes are signed with RSA (PKCS#1 v1.5) over a SHA-256
digest. The verifying certificate is installed alongside the launcher
configuration.
"""

from __future__ import annotations

from pathlib import Path

import structlog
from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from bootstrapper.core.errors import VerificationError

logger = structlog.get_logger()


def load_certificate(data: bytes) -> x509.Certificate:
    """Load a PEM or DER encoded X.509 certificate.

    Args:
        data: Certificate bytes

    Returns:
        Parsed certificate

    Raises:
        VerificationError: If the data is not a certificate
    """
    try:
        if data.lstrip().startswith(b"-----BEGIN"):
            return x509.load_pem_x509_certificate(data)
        return x509.load_der_x509_certificate(data)
    except ValueError as e:
        raise VerificationError(f"Unable to load certificate: {e}") from e


def load_certificate_file(path: Path) -> x509.Certificate:
    """Load the trusted certificate from disk."""
    try:
        data = path.read_bytes()
    except OSError as e:
        raise VerificationError(f"Unable to read certificate {path}: {e}") from e
    return load_certificate(data)


def verify_signature(content: bytes, signature: bytes, certificate: x509.Certificate) -> None:
    """Verify an RSA/SHA-256 signature over raw content bytes.

    Args:
        content: Raw signed bytes, exactly as downloaded
        signature: Detached signature bytes
        certificate: Trusted certificate holding the RSA public key

    Raises:
        VerificationError: If the key is not RSA or the signature does not match
    """
    public_key = certificate.public_key()
    if not isinstance(public_key, rsa.RSAPublicKey):
        raise VerificationError("Certificate does not hold an RSA public key")

    try:
        public_key.verify(signature, content, padding.PKCS1v15(), hashes.SHA256())
    except InvalidSignature as e:
        logger.warning("signature_mismatch", content_size=len(content), signature_size=len(signature))
        raise VerificationError("Unable to verify manifest signature") from e

    logger.debug("signature_verified", content_size=len(content))
