"""Local artifact repository and primary-artifact marker files.

The repository is a flat directory of files named exactly as published.
Two marker files in the cache directory record the manifest hash of the
primary artifact and the hash of its filtered on-disk copy, because the
filtered file can never hash-equal the published one. Markers are written
with a temp file + ``os.replace`` so a crash leaves either the old value
or no marker, both of which read as stale.
"""

from __future__ import annotations

import os
from pathlib import Path

import structlog

from bootstrapper.core.config import AppConfig
from bootstrapper.core.utils import sha256_file

logger = structlog.get_logger()


class Repository:
    """On-disk artifact store.

    Args:
        config: Application configuration providing the directory layout
    """

    def __init__(self, config: AppConfig):
        self.config = config
        self.root = config.repository_dir
        self.declared_hash_file = config.declared_hash_file
        self.actual_hash_file = config.actual_hash_file

    def ensure_directories(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        self.declared_hash_file.parent.mkdir(parents=True, exist_ok=True)

    def path_for(self, name: str) -> Path:
        """Path of a repository file by name."""
        return self.root / name

    def exists(self, name: str) -> bool:
        return self.path_for(name).is_file()

    def hash_of(self, name: str) -> str | None:
        """Hash a repository file.

        Returns:
            Lowercase hex SHA-256, or None if the file does not exist
        """
        path = self.path_for(name)
        try:
            return sha256_file(path)
        except FileNotFoundError:
            return None

    def list_files(self) -> list[Path]:
        """Regular files currently in the repository."""
        if not self.root.is_dir():
            return []
        return sorted(p for p in self.root.iterdir() if p.is_file())

    def write(self, name: str, data: bytes) -> Path:
        """Write a file in place.

        The write is direct and not atomic: a crash mid-write leaves a
        truncated file that the next run detects by hash.
        """
        path = self.path_for(name)
        path.write_bytes(data)
        return path

    def read_declared_hash(self) -> str | None:
        return self._read_marker(self.declared_hash_file)

    def read_actual_hash(self) -> str | None:
        return self._read_marker(self.actual_hash_file)

    def invalidate_markers(self) -> None:
        """Remove both markers so the primary artifact reads as stale."""
        for marker in (self.declared_hash_file, self.actual_hash_file):
            marker.unlink(missing_ok=True)

    def write_markers(self, declared_hash: str, actual_hash: str) -> None:
        """Persist both primary-artifact markers.

        Args:
            declared_hash: Manifest hash of the published primary artifact
            actual_hash: Hash of the filtered file on disk
        """
        self.declared_hash_file.parent.mkdir(parents=True, exist_ok=True)
        self._write_marker(self.declared_hash_file, declared_hash)
        self._write_marker(self.actual_hash_file, actual_hash)
        logger.debug("markers_written", declared=declared_hash, actual=actual_hash)

    def _read_marker(self, path: Path) -> str | None:
        try:
            return path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None

    def _write_marker(self, path: Path, value: str) -> None:
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        tmp_path.write_text(value, encoding="utf-8")
        os.replace(tmp_path, path)
