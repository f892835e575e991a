"""Shared utilities for bootstrapper."""

from __future__ import annotations

import hashlib
import re
from collections.abc import Iterator
from pathlib import Path
from typing import BinaryIO

CHUNK_SIZE = 1024 * 1024
SHA256_HEX_PATTERN = re.compile(r"[0-9a-fA-F]{64}")


def compute_sha256(data: bytes) -> str:
    """Compute SHA-256 hash.

    Args:
        data: Input data to hash

    Returns:
        Lowercase hex digest

    Example:
        >>> compute_sha256(b"hello")
        '2cf24dba5fb0a30e26e83b2ac5b9e29e1b161e5c1fa7425e73043362938b9824'
    """
    return hashlib.sha256(data).hexdigest()


def chunked_read(
    stream: BinaryIO,
    chunk_size: int = CHUNK_SIZE
) -> Iterator[bytes]:
    """Read stream in chunks.

    Args:
        stream: Binary stream to read from
        chunk_size: Size of each chunk in bytes

    Yields:
        Data chunks as bytes

    Raises:
        ValueError: If chunk_size is not positive
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")

    while True:
        chunk = stream.read(chunk_size)
        if not chunk:
            break
        yield chunk


def sha256_file(path: Path) -> str:
    """Stream a file through SHA-256.

    Args:
        path: File to hash

    Returns:
        Lowercase hex digest

    Raises:
        OSError: If the file cannot be read
    """
    hasher = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in chunked_read(f):
            hasher.update(chunk)
    return hasher.hexdigest()


def format_size(size: int) -> str:
    """Format byte size as human-readable string.

    Example:
        >>> format_size(1536)
        '1.5 KB'
    """
    if size < 0:
        return "0 B"

    size_float = float(size)
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size_float < 1024.0:
            if unit == "B":
                return f"{int(size_float)} {unit}"
            return f"{size_float:.1f} {unit}"
        size_float /= 1024.0
    return f"{size_float:.1f} PB"


def validate_hash_string(hash_str: str) -> bool:
    """Validate a hex SHA-256 string.

    Example:
        >>> validate_hash_string("deadbeef")
        False
        >>> validate_hash_string("00" * 32)
        True
    """
    return SHA256_HEX_PATTERN.fullmatch(hash_str) is not None
