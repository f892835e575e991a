"""Repository garbage collection.

Removes repository files that the effective manifest no longer
references. Base files of published diffs are kept even when they are not
current artifacts, so they remain available as delta bases.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from bootstrapper.core.errors import FilesystemError
from bootstrapper.core.repository import Repository
from bootstrapper.core.types import Artifact

logger = structlog.get_logger()


@dataclass
class GarbageReport:
    """Result of a garbage collection pass."""

    retained: set[str] = field(default_factory=set)
    deleted: list[Path] = field(default_factory=list)
    failures: list[FilesystemError] = field(default_factory=list)


def retained_names(artifacts: Iterable[Artifact]) -> set[str]:
    """Names that must survive collection: artifacts and every diff base."""
    names: set[str] = set()
    for artifact in artifacts:
        names.add(artifact.name)
        for diff in artifact.diffs:
            names.add(diff.from_name)
    return names


def collect_garbage(repository: Repository, artifacts: Iterable[Artifact]) -> GarbageReport:
    """Delete unreferenced repository files.

    Never raises: deletion failures are logged and reported per file.

    Args:
        repository: Repository to prune
        artifacts: Artifacts of the effective manifest

    Returns:
        GarbageReport listing deleted files and failures
    """
    report = GarbageReport(retained=retained_names(artifacts))

    for path in repository.list_files():
        if path.name in report.retained:
            continue
        try:
            path.unlink()
        except OSError as e:
            error = FilesystemError(f"Unable to delete old artifact {path}: {e}", path=str(path))
            report.failures.append(error)
            logger.warning("artifact_delete_failed", path=str(path), error=str(e))
            continue
        report.deleted.append(path)
        logger.debug("artifact_deleted", path=str(path))

    logger.info(
        "garbage_collected",
        retained=len(report.retained),
        deleted=len(report.deleted),
        failed=len(report.failures),
    )
    return report
