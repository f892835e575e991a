"""Final integrity verification of the repository.

Runs after every download has finished and before anything is launched.
For ordinary artifacts the file on disk is hashed and compared with the
manifest. The primary artifact is stored filtered, so its current hash is
the declared-hash marker, accepted only while the actual-hash marker still
matches the filtered file on disk.
"""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from bootstrapper.core.errors import VerificationError
from bootstrapper.core.repository import Repository
from bootstrapper.core.types import Artifact
from bootstrapper.core.utils import compute_sha256

logger = structlog.get_logger()


def verify_content_hash(data: bytes, expected_hash: str, name: str | None = None) -> bool:
    """Verify in-memory content against a SHA-256.

    Args:
        data: Content to check
        expected_hash: Expected lowercase hex SHA-256
        name: Name used in the error

    Returns:
        True if the hash matches

    Raises:
        VerificationError: If the hash does not match
    """
    actual = compute_sha256(data)
    if actual != expected_hash.lower():
        raise VerificationError(
            f"Expected {expected_hash} for {name} but got {actual}",
            expected=expected_hash,
            actual=actual,
            name=name,
        )
    return True


def current_hash(artifact: Artifact, repository: Repository) -> str | None:
    """Hash an artifact is currently considered to have.

    Returns:
        Hex hash, or None when the file (or primary marker) is missing
    """
    if not artifact.is_primary:
        return repository.hash_of(artifact.name)

    declared = repository.read_declared_hash()
    actual = repository.read_actual_hash()
    on_disk = repository.hash_of(artifact.name)
    if declared is None or on_disk is None:
        return None
    if actual != on_disk:
        # Filtered file changed since it was written; report what is on disk
        logger.warning("primary_marker_mismatch", name=artifact.name, marker=actual, on_disk=on_disk)
        return on_disk
    return declared


def verify_all(artifacts: Iterable[Artifact], repository: Repository) -> None:
    """Check every artifact against its manifest hash.

    Args:
        artifacts: Artifacts of the effective manifest
        repository: Repository holding them

    Raises:
        VerificationError: On the first artifact that is missing or does not match
    """
    for artifact in artifacts:
        try:
            file_hash = current_hash(artifact, repository)
        except OSError as e:
            raise VerificationError(
                f"Unable to hash {artifact.name}: {e}",
                expected=artifact.hash,
                name=artifact.name,
            ) from e

        if file_hash != artifact.hash:
            logger.warning(
                "artifact_hash_mismatch",
                name=artifact.name,
                expected=artifact.hash,
                actual=file_hash,
            )
            raise VerificationError(
                f"Expected {artifact.hash} for {artifact.name} but got {file_hash or 'nothing'}",
                expected=artifact.hash,
                actual=file_hash,
                name=artifact.name,
            )

        logger.info("artifact_verified", name=artifact.name)
