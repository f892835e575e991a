"""Update planning against the local repository.

Compares every artifact of the effective manifest with the repository and
classifies it as:
- skip: on-disk file already matches (marker-based for the primary artifact)
- full_download: missing or stale, no usable diff
- delta_download: a diff whose base file is present with the expected hash
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

import structlog

from bootstrapper.core.repository import Repository
from bootstrapper.core.types import Artifact, Diff, Manifest

logger = structlog.get_logger()


class UpdateAction(enum.Enum):
    """Planned action for one artifact."""

    skip = 0
    full_download = 1
    delta_download = 2


@dataclass
class PlannedUpdate:
    """Planned action for a single artifact."""

    artifact: Artifact
    action: UpdateAction
    diff: Diff | None = None

    @property
    def estimated_size(self) -> int:
        """Bytes this update is expected to transfer."""
        if self.action is UpdateAction.skip:
            return 0
        if self.action is UpdateAction.delta_download and self.diff is not None:
            return self.diff.size
        return self.artifact.size


def _planned_update_list() -> list[PlannedUpdate]:
    """Factory for typed empty list of PlannedUpdate."""
    return []


@dataclass
class UpdatePlan:
    """Result of planning a repository update."""

    updates: list[PlannedUpdate] = field(default_factory=_planned_update_list)
    total_bytes: int = 0
    skip_count: int = 0
    download_count: int = 0
    delta_count: int = 0

    @property
    def pending(self) -> list[PlannedUpdate]:
        """Updates that require a transfer, in manifest order."""
        return [u for u in self.updates if u.action is not UpdateAction.skip]


class _HashMemo:
    """Hashes each repository file at most once per planning pass."""

    def __init__(self, repository: Repository):
        self.repository = repository
        self._hashes: dict[str, str | None] = {}

    def get(self, name: str) -> str | None:
        if name not in self._hashes:
            self._hashes[name] = self.repository.hash_of(name)
        return self._hashes[name]


def _primary_up_to_date(artifact: Artifact, repository: Repository, hashes: _HashMemo) -> bool:
    declared = repository.read_declared_hash()
    actual = repository.read_actual_hash()
    if declared is None or actual is None:
        return False
    if declared != artifact.hash:
        return False
    return actual == hashes.get(artifact.name)


def select_diff(artifact: Artifact, hashes: _HashMemo) -> Diff | None:
    """First diff whose base file exists locally with the expected hash."""
    for diff in artifact.diffs:
        if hashes.get(diff.from_name) == diff.from_hash:
            return diff
    return None


def plan_updates(
    manifest: Manifest,
    repository: Repository,
    use_diffs: bool = True,
) -> UpdatePlan:
    """Classify each artifact as skip, full download or delta download.

    Args:
        manifest: Effective manifest
        repository: Local repository
        use_diffs: Consider delta downloads at all

    Returns:
        UpdatePlan with one entry per artifact, in manifest order, and an
        advisory total byte estimate
    """
    plan = UpdatePlan()
    hashes = _HashMemo(repository)

    for artifact in manifest.artifacts:
        if artifact.is_primary:
            up_to_date = _primary_up_to_date(artifact, repository, hashes)
        else:
            up_to_date = hashes.get(artifact.name) == artifact.hash

        if up_to_date:
            logger.debug("artifact_up_to_date", name=artifact.name)
            plan.updates.append(PlannedUpdate(artifact, UpdateAction.skip))
            plan.skip_count += 1
            continue

        diff = select_diff(artifact, hashes) if use_diffs else None
        if diff is not None:
            update = PlannedUpdate(artifact, UpdateAction.delta_download, diff)
            plan.delta_count += 1
        else:
            update = PlannedUpdate(artifact, UpdateAction.full_download)
            plan.download_count += 1

        plan.updates.append(update)
        plan.total_bytes += update.estimated_size

    logger.info(
        "update_planned",
        skip=plan.skip_count,
        download=plan.download_count,
        delta=plan.delta_count,
        total_bytes=plan.total_bytes,
    )
    return plan
