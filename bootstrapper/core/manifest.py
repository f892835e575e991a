"""Manifest acquisition, parsing and merging.

Two sources feed the pipeline: a trusted manifest whose raw bytes are
checked against a detached RSA/SHA-256 signature, and an overlay manifest
that is parsed and trusted without any cryptographic check. Once merged,
overlay content runs with the same privileges as signed content; the
merged manifest records this as ``TrustLevel.UNVERIFIED``.
"""

from __future__ import annotations

import json
from typing import TypeVar, overload

import structlog
from cryptography import x509
from pydantic import ValidationError

from bootstrapper.core.errors import ManifestParseError
from bootstrapper.core.signature import verify_signature
from bootstrapper.core.transport import HttpTransport
from bootstrapper.core.types import Manifest, OverlayManifest, TrustedManifest, TrustLevel
from bootstrapper.core.utils import validate_hash_string

logger = structlog.get_logger()

M = TypeVar("M", bound=Manifest)


def parse_manifest(data: bytes, model: type[M]) -> M:
    """Parse manifest JSON into a manifest model.

    Args:
        data: Raw JSON bytes
        model: Manifest class to build

    Returns:
        Parsed manifest

    Raises:
        ManifestParseError: If the document is not a valid manifest
    """
    try:
        raw = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ManifestParseError(f"Manifest is not valid JSON: {e}") from e

    if not isinstance(raw, dict):
        raise ManifestParseError(f"Manifest must be a JSON object, got {type(raw).__name__}")

    # Trust is decided by how the manifest was obtained, never by its content
    raw.pop("trust", None)

    try:
        manifest = model.model_validate(raw)
    except ValidationError as e:
        raise ManifestParseError(f"Malformed manifest: {e}") from e

    for artifact in manifest.artifacts:
        if not validate_hash_string(artifact.hash):
            raise ManifestParseError(f"Artifact {artifact.name} has an invalid hash: {artifact.hash!r}")
        for diff in artifact.diffs:
            if not validate_hash_string(diff.hash) or not validate_hash_string(diff.from_hash):
                raise ManifestParseError(f"Diff {diff.name} has an invalid hash")

    return manifest


class ManifestFetcher:
    """Fetches and verifies manifests over HTTP.

    Failures propagate unchanged; retry policy belongs to the caller.
    """

    def __init__(self, transport: HttpTransport):
        self.transport = transport

    @overload
    def fetch(
        self, content_url: str, signature_url: str, certificate: x509.Certificate
    ) -> TrustedManifest: ...

    @overload
    def fetch(
        self, content_url: str, signature_url: None = None, certificate: None = None
    ) -> OverlayManifest: ...

    def fetch(
        self,
        content_url: str,
        signature_url: str | None = None,
        certificate: x509.Certificate | None = None,
    ) -> Manifest:
        """Download a manifest, verifying it when a certificate is given.

        Args:
            content_url: Manifest URL
            signature_url: Detached signature URL (signed source only)
            certificate: Trusted certificate (signed source only)

        Returns:
            ``TrustedManifest`` for a verified source, ``OverlayManifest``
            for an unsigned one

        Raises:
            NetworkError: If either download fails
            VerificationError: If the signature does not match
            ManifestParseError: If the document is malformed
        """
        if (signature_url is None) != (certificate is None):
            raise ValueError("signature_url and certificate must be supplied together")

        content = self.transport.fetch(content_url)

        if certificate is None:
            manifest: Manifest = parse_manifest(content, OverlayManifest)
            logger.warning("overlay_manifest_unverified", url=content_url)
        else:
            assert signature_url is not None
            signature = self.transport.fetch(signature_url)
            verify_signature(content, signature, certificate)
            manifest = parse_manifest(content, TrustedManifest)

        logger.info(
            "manifest_fetched",
            url=content_url,
            trust=manifest.trust.value,
            artifacts=len(manifest.artifacts),
        )
        return manifest


def _concat_scalar(first: str | None, second: str | None) -> str | None:
    if first is None:
        return second
    if second is None:
        return first
    # Both present: joined with no separator
    return first + second


def _concat_list(first: list[str] | None, second: list[str] | None) -> list[str] | None:
    if first is None:
        return None if second is None else list(second)
    if second is None:
        return list(first)
    return [*first, *second]


def merge_manifests(trusted: TrustedManifest, overlay: OverlayManifest | None) -> Manifest:
    """Overlay an unsigned manifest on top of the trusted one.

    Scalars: the present side wins, or both are concatenated directly.
    Lists: trusted elements first, then overlay elements, with no
    deduplication and no conflict detection.

    Args:
        trusted: Verified manifest
        overlay: Unsigned overlay, or None when no overlay source is configured

    Returns:
        Effective manifest. Its trust level is the overlay's once an
        overlay has been merged in.
    """
    if overlay is None:
        return Manifest.model_validate(trusted.model_dump(exclude={"trust"}))

    merged = Manifest(
        patch_minor=_concat_scalar(trusted.patch_minor, overlay.patch_minor),
        required_launcher_version=_concat_scalar(
            trusted.required_launcher_version, overlay.required_launcher_version
        ),
        required_runtime_version=_concat_scalar(
            trusted.required_runtime_version, overlay.required_runtime_version
        ),
        artifacts=[*trusted.artifacts, *overlay.artifacts],
        client_arguments=_concat_list(trusted.client_arguments, overlay.client_arguments),
        launcher_arguments=_concat_list(trusted.launcher_arguments, overlay.launcher_arguments),
        launcher_windows_arguments=_concat_list(
            trusted.launcher_windows_arguments, overlay.launcher_windows_arguments
        ),
        launcher_mac_arguments=_concat_list(
            trusted.launcher_mac_arguments, overlay.launcher_mac_arguments
        ),
        removes=[*trusted.removes, *overlay.removes],
        trust=TrustLevel.UNVERIFIED,
    )

    logger.info(
        "manifests_merged",
        trusted_artifacts=len(trusted.artifacts),
        overlay_artifacts=len(overlay.artifacts),
        trust=merged.trust.value,
    )
    return merged
