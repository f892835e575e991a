"""Tests for bootstrapper.core.utils module."""

from io import BytesIO

import pytest

from bootstrapper.core.utils import (
    chunked_read,
    compute_sha256,
    format_size,
    sha256_file,
    validate_hash_string,
)


class TestUtils:
    """Test utility helpers."""

    def test_compute_sha256(self):
        assert compute_sha256(b"") == "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"

    def test_sha256_file(self, temp_dir):
        path = temp_dir / "file.bin"
        path.write_bytes(b"hello" * 1000)
        assert sha256_file(path) == compute_sha256(b"hello" * 1000)

    def test_sha256_file_missing(self, temp_dir):
        with pytest.raises(FileNotFoundError):
            sha256_file(temp_dir / "missing")

    def test_chunked_read(self):
        chunks = list(chunked_read(BytesIO(b"abcdefg"), 3))
        assert chunks == [b"abc", b"def", b"g"]

    def test_chunked_read_invalid_size(self):
        with pytest.raises(ValueError):
            list(chunked_read(BytesIO(b"abc"), 0))

    @pytest.mark.parametrize(
        ("size", "expected"),
        [(0, "0 B"), (512, "512 B"), (1536, "1.5 KB"), (5 * 1024 * 1024, "5.0 MB"), (-1, "0 B")],
    )
    def test_format_size(self, size: int, expected: str):
        assert format_size(size) == expected

    def test_validate_hash_string(self):
        assert validate_hash_string("ab" * 32)
        assert validate_hash_string("AB" * 32)
        assert not validate_hash_string("ab" * 16)
        assert not validate_hash_string("zz" * 32)

    def test_validate_hash_string_rejects_whitespace(self):
        spaced = "ab" * 30 + " a b"
        assert len(spaced) == 64
        assert not validate_hash_string(spaced)
        assert not validate_hash_string("ab" * 31 + "a\n")
