"""Content-filtered repackaging of the primary artifact.

The primary artifact is a jar (zip) archive. Entries whose name starts
with any removal prefix from the manifest are dropped; every other entry
is copied unchanged. Because the result can never hash-equal the
published file, two marker files record the published hash and the hash
of the filtered file for later staleness checks.
"""

from __future__ import annotations

import os
import zipfile
from io import BytesIO
from pathlib import Path

import structlog

from bootstrapper.core.errors import VerificationError
from bootstrapper.core.repository import Repository
from bootstrapper.core.types import Artifact
from bootstrapper.core.utils import sha256_file

logger = structlog.get_logger()


def filter_archive(raw: bytes, removes: list[str], destination: Path) -> tuple[int, int]:
    """Copy archive entries not matching any removal prefix.

    Args:
        raw: Published archive bytes
        removes: Entry name prefixes to drop
        destination: Output archive path

    Returns:
        Tuple of (kept entries, dropped entries)

    Raises:
        zipfile.BadZipFile: If ``raw`` is not a zip archive
    """
    prefixes = tuple(removes)
    kept = dropped = 0

    with zipfile.ZipFile(BytesIO(raw)) as source, zipfile.ZipFile(destination, "w") as target:
        for info in source.infolist():
            if prefixes and info.filename.startswith(prefixes):
                dropped += 1
                continue
            # Reusing the ZipInfo keeps compression type, timestamp and attributes
            target.writestr(info, source.read(info))
            kept += 1

    return kept, dropped


class Repackager:
    """Writes the filtered primary artifact into the repository."""

    def __init__(self, repository: Repository):
        self.repository = repository

    def repackage(self, raw: bytes, removes: list[str], artifact: Artifact) -> str:
        """Filter ``raw`` into the repository and persist both markers.

        The archive is written to a temporary file and atomically renamed
        over the destination. Markers are removed before the write and
        rewritten afterwards, so an interruption leaves the artifact stale.

        Args:
            raw: Verified published bytes of the primary artifact
            removes: Removal prefixes from the manifest
            artifact: The primary artifact

        Returns:
            Hash of the filtered file on disk

        Raises:
            VerificationError: If ``raw`` is not a valid archive
        """
        destination = self.repository.path_for(artifact.name)
        tmp_path = destination.with_name(destination.name + ".tmp")

        self.repository.invalidate_markers()

        try:
            kept, dropped = filter_archive(raw, removes, tmp_path)
            os.replace(tmp_path, destination)
        except (zipfile.BadZipFile, zipfile.LargeZipFile, EOFError) as e:
            tmp_path.unlink(missing_ok=True)
            raise VerificationError(
                f"Unable to repackage {artifact.name}: {e}",
                name=artifact.name,
            ) from e
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise

        actual_hash = sha256_file(destination)
        self.repository.write_markers(artifact.hash, actual_hash)

        logger.info(
            "primary_repackaged",
            name=artifact.name,
            kept=kept,
            dropped=dropped,
            actual_hash=actual_hash,
        )
        return actual_hash
