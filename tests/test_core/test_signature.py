"""Tests for bootstrapper.core.signature module."""

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from bootstrapper.core.errors import VerificationError
from bootstrapper.core.signature import load_certificate, load_certificate_file, verify_signature


class TestCertificates:
    """Test certificate loading."""

    def test_load_pem(self, certificate):
        pem = certificate.public_bytes(serialization.Encoding.PEM)
        assert load_certificate(pem) == certificate

    def test_load_der(self, certificate):
        der = certificate.public_bytes(serialization.Encoding.DER)
        assert load_certificate(der) == certificate

    def test_load_garbage(self):
        with pytest.raises(VerificationError):
            load_certificate(b"not a certificate")

    def test_load_file(self, certificate_file, certificate):
        assert load_certificate_file(certificate_file) == certificate

    def test_missing_file(self, temp_dir):
        with pytest.raises(VerificationError):
            load_certificate_file(temp_dir / "missing.crt")


class TestVerifySignature:
    """Test RSA/SHA-256 signature checks."""

    def test_valid(self, certificate, sign):
        verify_signature(b"content", sign(b"content"), certificate)

    def test_wrong_content(self, certificate, sign):
        with pytest.raises(VerificationError):
            verify_signature(b"content!", sign(b"content"), certificate)

    def test_truncated_signature(self, certificate, sign):
        with pytest.raises(VerificationError):
            verify_signature(b"content", sign(b"content")[:-1], certificate)

    def test_non_rsa_certificate(self, certificate, sign):
        import datetime

        from cryptography import x509
        from cryptography.hazmat.primitives import hashes
        from cryptography.x509.oid import NameOID

        key = ec.generate_private_key(ec.SECP256R1())
        name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "ec")])
        now = datetime.datetime.now(datetime.timezone.utc)
        ec_cert = (
            x509.CertificateBuilder()
            .subject_name(name)
            .issuer_name(name)
            .public_key(key.public_key())
            .serial_number(1)
            .not_valid_before(now)
            .not_valid_after(now + datetime.timedelta(days=1))
            .sign(key, hashes.SHA256())
        )

        with pytest.raises(VerificationError, match="RSA"):
            verify_signature(b"content", sign(b"content"), ec_cert)
