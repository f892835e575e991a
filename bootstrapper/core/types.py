"""Core type definitions for bootstrapper."""

from __future__ import annotations

import re
from enum import StrEnum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

PRIMARY_PATTERN = re.compile(r"^client-((?:[0-9]*\.)*[0-9]*)\.jar$")
PATCH_PATTERN = re.compile(r"^client-patch-((?:[0-9]*\.)*[0-9]*)\.jar$")
OVERLAY_PATCH_PATTERN = re.compile(r"^overlay-patch-?((?:[0-9]*\.)*[0-9]*)\.jar$")


class ArtifactRole(StrEnum):
    """Role of a file in the launch set, resolved from its name."""
    PRIMARY = "primary"
    PATCH = "patch"
    OVERLAY_PATCH = "overlay_patch"
    PLAIN = "plain"


class TrustLevel(StrEnum):
    """Trust level of manifest content."""
    VERIFIED = "verified"
    UNVERIFIED = "unverified"


class Platform(StrEnum):
    """Platforms with their own launcher argument overrides."""
    WINDOWS = "windows"
    MACOS = "macos"
    LINUX = "linux"


def classify_name(name: str) -> tuple[ArtifactRole, str | None]:
    """Resolve the role of a file from its name.

    Args:
        name: File name as published in the manifest

    Returns:
        Tuple of (role, embedded patch version). The version is only
        set for client patches.

    Example:
        >>> classify_name("client-patch-7.jar")
        (<ArtifactRole.PATCH: 'patch'>, '7')
    """
    match = PATCH_PATTERN.match(name)
    if match:
        return ArtifactRole.PATCH, match.group(1)
    if OVERLAY_PATCH_PATTERN.match(name):
        return ArtifactRole.OVERLAY_PATCH, None
    if PRIMARY_PATTERN.match(name):
        return ArtifactRole.PRIMARY, None
    return ArtifactRole.PLAIN, None


class Diff(BaseModel):
    """Binary delta turning one prior artifact version into the current one."""
    name: str = Field(..., description="Download identity of the diff")
    from_name: str = Field(..., alias="from", description="File name of the base version")
    from_hash: str = Field(..., alias="fromHash", description="SHA-256 the base file must have")
    path: str = Field(..., description="Download URL of the diff payload")
    hash: str = Field(..., description="SHA-256 of the diff payload")
    size: int = Field(..., ge=0, description="Diff payload size in bytes")

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    @field_validator("from_hash", "hash")
    @classmethod
    def normalize_hash(cls, v: str) -> str:
        """Hashes are compared as lowercase hex."""
        return v.strip().lower()


class Artifact(BaseModel):
    """One named file the repository must contain."""
    name: str = Field(..., description="On-disk file name")
    path: str = Field(..., description="Download URL")
    hash: str = Field(..., description="SHA-256 of the published file")
    size: int = Field(..., ge=0, description="Published size in bytes")
    diffs: list[Diff] = Field(default_factory=list, description="Available deltas")
    role: ArtifactRole = Field(default=ArtifactRole.PLAIN, description="Resolved role")
    patch_version: str | None = Field(default=None, description="Version embedded in a client patch name")

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    @model_validator(mode="before")
    @classmethod
    def resolve_role(cls, data: Any) -> Any:
        """Resolve role and patch version from the name once, at parse time.

        Supplied ``role`` and ``patch_version`` values are discarded; the
        name is the only source of either.
        """
        if isinstance(data, dict) and "name" in data:
            role, version = classify_name(str(data["name"]))
            data = {**data, "role": role, "patch_version": version}
        return data

    @field_validator("diffs", mode="before")
    @classmethod
    def default_diffs(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("hash")
    @classmethod
    def normalize_hash(cls, v: str) -> str:
        return v.strip().lower()

    @property
    def is_primary(self) -> bool:
        return self.role is ArtifactRole.PRIMARY


class Manifest(BaseModel):
    """Effective description of required artifacts and runtime arguments."""
    patch_minor: str | None = Field(None, alias="patchMinor")
    required_launcher_version: str | None = Field(None, alias="requiredLauncherVersion")
    required_runtime_version: str | None = Field(None, alias="requiredJVMVersion")
    artifacts: list[Artifact] = Field(default_factory=list)
    client_arguments: list[str] | None = Field(None, alias="clientJvmArguments")
    launcher_arguments: list[str] | None = Field(None, alias="launcherJvmArguments")
    launcher_windows_arguments: list[str] | None = Field(None, alias="launcherJvmWindowsArguments")
    launcher_mac_arguments: list[str] | None = Field(None, alias="launcherJvmMacArguments")
    removes: list[str] = Field(default_factory=list, description="Entry prefixes dropped from the primary artifact")
    trust: TrustLevel = Field(default=TrustLevel.VERIFIED, description="Trust level of the content")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @field_validator("artifacts", "removes", mode="before")
    @classmethod
    def default_lists(cls, v: Any) -> Any:
        return [] if v is None else v

    def launcher_arguments_for(self, platform: Platform) -> list[str]:
        """Resolve launcher runtime arguments for a platform.

        Platform-specific lists override the generic one when present.
        """
        if platform is Platform.WINDOWS and self.launcher_windows_arguments is not None:
            return list(self.launcher_windows_arguments)
        if platform is Platform.MACOS and self.launcher_mac_arguments is not None:
            return list(self.launcher_mac_arguments)
        return list(self.launcher_arguments or [])

    @property
    def primary(self) -> Artifact | None:
        """First artifact with the primary role, if any."""
        for artifact in self.artifacts:
            if artifact.is_primary:
                return artifact
        return None


class TrustedManifest(Manifest):
    """Manifest whose raw bytes passed signature verification."""
    trust: TrustLevel = TrustLevel.VERIFIED


class OverlayManifest(Manifest):
    """Unsigned overlay manifest, trusted without any cryptographic check."""
    trust: TrustLevel = TrustLevel.UNVERIFIED


class LaunchEntry(BaseModel):
    """One file of the resolved launch set."""
    path: Path = Field(..., description="Absolute file path")
    role: ArtifactRole = Field(default=ArtifactRole.PLAIN)
    patch_version: str | None = Field(default=None)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_path(cls, path: Path) -> LaunchEntry:
        """Build an entry for a file that is not described by the manifest."""
        role, version = classify_name(path.name)
        return cls(path=path, role=role, patch_version=version)

    @classmethod
    def from_artifact(cls, artifact: Artifact, path: Path) -> LaunchEntry:
        return cls(path=path, role=artifact.role, patch_version=artifact.patch_version)


class LaunchSpec(BaseModel):
    """Resolved output handed to the launch dispatcher."""
    files: list[Path] = Field(default_factory=list, description="Files to load, in order")
    arguments: list[str] = Field(default_factory=list, description="Application arguments")
    runtime_arguments: list[str] = Field(default_factory=list, description="Platform-resolved runtime arguments")
    client_runtime_arguments: list[str] = Field(
        default_factory=list, description="Runtime arguments for the application process"
    )
