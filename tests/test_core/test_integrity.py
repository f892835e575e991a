"""Tests for bootstrapper.core.integrity module."""

import pytest

from bootstrapper.core.errors import VerificationError
from bootstrapper.core.integrity import current_hash, verify_all, verify_content_hash
from bootstrapper.core.types import Artifact
from bootstrapper.core.utils import compute_sha256


def _artifact(name: str, content: bytes) -> Artifact:
    return Artifact(name=name, path=f"https://example.net/{name}", hash=compute_sha256(content), size=len(content))


class TestVerifyContentHash:
    """Test in-memory hash checks."""

    def test_match(self):
        assert verify_content_hash(b"data", compute_sha256(b"data"), "a.jar") is True

    def test_uppercase_expected(self):
        assert verify_content_hash(b"data", compute_sha256(b"data").upper())

    def test_mismatch(self):
        with pytest.raises(VerificationError) as exc_info:
            verify_content_hash(b"data", "0" * 64, "a.jar")

        assert exc_info.value.name == "a.jar"
        assert exc_info.value.expected == "0" * 64
        assert exc_info.value.actual == compute_sha256(b"data")


class TestVerifyAll:
    """Test final repository verification."""

    def test_all_valid(self, repository):
        repository.write("a.jar", b"alpha")
        repository.write("b.jar", b"beta")

        verify_all([_artifact("a.jar", b"alpha"), _artifact("b.jar", b"beta")], repository)

    def test_missing_file(self, repository):
        with pytest.raises(VerificationError) as exc_info:
            verify_all([_artifact("a.jar", b"alpha")], repository)

        assert exc_info.value.name == "a.jar"
        assert exc_info.value.actual is None

    def test_first_mismatch_reported(self, repository):
        repository.write("a.jar", b"alpha")
        repository.write("b.jar", b"tampered")
        repository.write("c.jar", b"tampered")

        with pytest.raises(VerificationError) as exc_info:
            verify_all(
                [_artifact("a.jar", b"alpha"), _artifact("b.jar", b"beta"), _artifact("c.jar", b"gamma")],
                repository,
            )

        assert exc_info.value.name == "b.jar"
        assert exc_info.value.actual == compute_sha256(b"tampered")

    def test_primary_uses_declared_marker(self, repository):
        primary = _artifact("client-1.10.jar", b"published")
        repository.write("client-1.10.jar", b"filtered")
        repository.write_markers(primary.hash, compute_sha256(b"filtered"))

        assert current_hash(primary, repository) == primary.hash
        verify_all([primary], repository)

    def test_primary_tampering_detected(self, repository):
        primary = _artifact("client-1.10.jar", b"published")
        repository.write("client-1.10.jar", b"filtered")
        repository.write_markers(primary.hash, compute_sha256(b"filtered"))
        repository.write("client-1.10.jar", b"tampered after repackaging")

        with pytest.raises(VerificationError) as exc_info:
            verify_all([primary], repository)

        assert exc_info.value.actual == compute_sha256(b"tampered after repackaging")

    def test_primary_without_markers(self, repository):
        primary = _artifact("client-1.10.jar", b"published")
        repository.write("client-1.10.jar", b"filtered")

        assert current_hash(primary, repository) is None
        with pytest.raises(VerificationError):
            verify_all([primary], repository)
