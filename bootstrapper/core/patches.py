"""Patch-family resolution for the launch set.

Two optional, mutually exclusive patch families can reach the launch set:
the versioned client patch (``client-patch-<version>.jar``) and the
overlay patch. The overlay patch only wins when the client patch version
equals the manifest's ``patch_minor`` and an overlay patch is present.
"""

from __future__ import annotations

import structlog

from bootstrapper.core.types import ArtifactRole, LaunchEntry

logger = structlog.get_logger()


def resolve_patch_family(entries: list[LaunchEntry], patch_minor: str | None) -> list[LaunchEntry]:
    """Keep at most one patch family in the launch set.

    Args:
        entries: Candidate launch entries, in launch order
        patch_minor: Patch version declared by the effective manifest

    Returns:
        Entries with the losing patch family removed, order preserved
    """
    patch_version: str | None = None
    for entry in entries:
        if entry.role is ArtifactRole.PATCH:
            patch_version = entry.patch_version

    has_overlay_patch = any(e.role is ArtifactRole.OVERLAY_PATCH for e in entries)

    if patch_version is not None and patch_version == patch_minor and has_overlay_patch:
        dropped = ArtifactRole.PATCH
    else:
        dropped = ArtifactRole.OVERLAY_PATCH

    logger.debug(
        "patch_family_resolved",
        patch_version=patch_version,
        patch_minor=patch_minor,
        dropped=dropped.value,
    )
    return [e for e in entries if e.role is not dropped]
