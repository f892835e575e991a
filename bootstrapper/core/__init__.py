"""Core functionality for bootstrapper.

This module provides the pipeline components:
- Configuration management
- Type definitions and error taxonomy
- Manifest fetching, verification and merging
- Update planning, downloading and delta application
- Repository maintenance and integrity verification
"""

from bootstrapper.core.errors import (
    BootstrapError,
    DeltaError,
    DownloadCancelled,
    FilesystemError,
    ManifestParseError,
    NetworkError,
    VerificationError,
    VersionGateError,
)
from bootstrapper.core.types import (
    Artifact,
    ArtifactRole,
    Diff,
    LaunchSpec,
    Manifest,
    TrustLevel,
)
from bootstrapper.core.utils import (
    chunked_read,
    compute_sha256,
    format_size,
    sha256_file,
    validate_hash_string,
)

__all__ = [
    # Errors
    "BootstrapError",
    "DeltaError",
    "DownloadCancelled",
    "FilesystemError",
    "ManifestParseError",
    "NetworkError",
    "VerificationError",
    "VersionGateError",
    # Types
    "Artifact",
    "ArtifactRole",
    "Diff",
    "LaunchSpec",
    "Manifest",
    "TrustLevel",
    # Utils
    "chunked_read",
    "compute_sha256",
    "format_size",
    "sha256_file",
    "validate_hash_string",
]
