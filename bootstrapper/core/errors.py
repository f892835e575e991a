"""Error taxonomy for the bootstrap pipeline.

Fatal errors (manifest fetch/verify, version gate, final verification)
propagate to the caller and stop the launch. ``FilesystemError`` is
fatal when an artifact cannot be written; the garbage collector only
logs and reports it.
"""

from __future__ import annotations

from enum import StrEnum


class BootstrapError(Exception):
    """Base class for all bootstrap pipeline errors."""


class NetworkError(BootstrapError):
    """Raised when a connection or transfer fails.

    Attributes:
        url: URL being fetched, if known
        status_code: HTTP status code for non-2xx responses
    """

    def __init__(
        self,
        message: str,
        *,
        url: str | None = None,
        status_code: int | None = None,
    ):
        self.url = url
        self.status_code = status_code
        super().__init__(message)


class VerificationError(BootstrapError):
    """Raised when a signature or content hash does not match.

    Attributes:
        expected: Expected hash as hex string
        actual: Actual hash as hex string
        name: Artifact, diff or URL being verified
    """

    def __init__(
        self,
        message: str,
        *,
        expected: str | None = None,
        actual: str | None = None,
        name: str | None = None,
    ):
        self.expected = expected
        self.actual = actual
        self.name = name
        super().__init__(message)


class ManifestParseError(BootstrapError):
    """Raised when a manifest document is malformed."""


class FilesystemError(BootstrapError):
    """Repository filesystem failure.

    Logged and reported when a garbage collection delete fails; fatal when
    an artifact cannot be written.

    Attributes:
        path: Path that could not be processed
    """

    def __init__(self, message: str, *, path: str | None = None):
        self.path = path
        super().__init__(message)


class GateReason(StrEnum):
    """Why the version gate halted the pipeline."""

    LAUNCHER_OUTDATED = "launcher_outdated"
    RUNTIME_OUTDATED = "runtime_outdated"


class VersionGateError(BootstrapError):
    """Raised when the manifest requires a newer launcher or runtime.

    Attributes:
        reason: Which requirement failed
        required: The version the manifest requires
        running: The version currently running
    """

    def __init__(
        self,
        message: str,
        *,
        reason: GateReason,
        required: str | None = None,
        running: str | None = None,
    ):
        self.reason = reason
        self.required = required
        self.running = running
        super().__init__(message)


class DownloadCancelled(BootstrapError):
    """Raised when a cancellation event is set during a transfer."""


class DeltaError(BootstrapError):
    """Raised when a diff payload cannot be decoded or applied.

    Never fatal: the engine falls back to a full download.
    """
