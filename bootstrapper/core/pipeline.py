"""Bootstrap pipeline orchestration.

Fetch (trusted) -> fetch (overlay) -> merge -> version gate -> garbage
collection -> plan -> download/delta -> patch-family resolution -> final
verification -> launch set. Every stage runs sequentially; garbage
collection and final verification only run once the previous stage has
fully completed.
"""

from __future__ import annotations

import os
import threading
from pathlib import Path

import structlog
from cryptography import x509

from bootstrapper.core.config import AppConfig
from bootstrapper.core.engine import DownloadEngine, EngineResult
from bootstrapper.core.garbage import collect_garbage
from bootstrapper.core.integrity import verify_all
from bootstrapper.core.manifest import ManifestFetcher, merge_manifests
from bootstrapper.core.patches import resolve_patch_family
from bootstrapper.core.planner import plan_updates
from bootstrapper.core.progress import (
    STAGE_MANIFEST,
    STAGE_PREPARING,
    STAGE_STARTING,
    STAGE_TIDYING,
    STAGE_VERIFYING,
    LogReporter,
    ProgressReporter,
)
from bootstrapper.core.repository import Repository
from bootstrapper.core.signature import load_certificate_file
from bootstrapper.core.transport import HttpTransport
from bootstrapper.core.types import LaunchEntry, LaunchSpec, Manifest
from bootstrapper.core.version import check_versions

logger = structlog.get_logger()

CLIENT_ARGS_ENV = "BOOTSTRAPPER_ARGS"


class Bootstrapper:
    """Brings the repository in sync with the manifest and resolves the launch set.

    Args:
        config: Application configuration
        transport: HTTP transport, created from ``config`` if None
        reporter: Progress destination
        certificate: Trusted certificate, loaded from ``config.certificate_file`` if None
        cancel: Aborts downloads when set
    """

    def __init__(
        self,
        config: AppConfig,
        transport: HttpTransport | None = None,
        reporter: ProgressReporter | None = None,
        certificate: x509.Certificate | None = None,
        cancel: threading.Event | None = None,
    ):
        self.config = config
        self._owns_transport = transport is None
        self.transport = transport or HttpTransport(config)
        self.reporter = reporter or LogReporter()
        self._certificate = certificate
        self.cancel = cancel
        self.repository = Repository(config)
        self.fetcher = ManifestFetcher(self.transport)
        self.last_result: EngineResult | None = None

    @property
    def certificate(self) -> x509.Certificate:
        if self._certificate is None:
            self._certificate = load_certificate_file(self.config.certificate_file)
        return self._certificate

    def fetch_manifest(self) -> Manifest:
        """Fetch the trusted and overlay manifests and merge them.

        Raises:
            NetworkError, VerificationError, ManifestParseError: Fatal fetch failures
        """
        trusted = self.fetcher.fetch(
            self.config.bootstrap_url,
            self.config.bootstrap_signature_url,
            self.certificate,
        )
        overlay = None
        if self.config.overlay_url:
            overlay = self.fetcher.fetch(self.config.overlay_url)
        return merge_manifests(trusted, overlay)

    def launch_entries(self, manifest: Manifest) -> list[LaunchEntry]:
        """Externals first, then every manifest artifact."""
        entries: list[LaunchEntry] = []
        externals_dir = self.config.externals_dir
        if externals_dir.is_dir():
            entries.extend(
                LaunchEntry.from_path(path)
                for path in sorted(externals_dir.iterdir())
                if path.is_file()
            )
        entries.extend(
            LaunchEntry.from_artifact(artifact, self.repository.path_for(artifact.name))
            for artifact in manifest.artifacts
        )
        return entries

    def run(self, client_args: list[str] | None = None) -> LaunchSpec:
        """Run the whole pipeline.

        Args:
            client_args: Arguments passed through to the application

        Returns:
            Resolved launch set

        Raises:
            BootstrapError: Any fatal failure; nothing may be launched
        """
        self.reporter.stage(STAGE_PREPARING, "Preparing", "Setting up environment")
        logger.info("bootstrap_started", user_agent=self.config.user_agent)
        self.config.ensure_directories()

        self.reporter.stage(STAGE_MANIFEST, None, "Downloading bootstrap")
        manifest = self.fetch_manifest()

        self.reporter.stage(STAGE_TIDYING, None, "Tidying the cache")
        check_versions(
            manifest,
            self.config.launcher_version,
            self.config.runtime_version,
            self.config.external_runtime,
        )

        self.repository.ensure_directories()
        collect_garbage(self.repository, manifest.artifacts)

        plan = plan_updates(manifest, self.repository, use_diffs=self.config.use_diffs)
        engine = DownloadEngine(
            self.transport,
            self.repository,
            self.reporter,
            max_workers=self.config.max_workers,
            cancel=self.cancel,
        )
        self.last_result = engine.execute(plan, manifest.removes)

        entries = resolve_patch_family(self.launch_entries(manifest), manifest.patch_minor)

        self.reporter.stage(STAGE_VERIFYING, None, "Verifying")
        verify_all(manifest.artifacts, self.repository)

        self.reporter.stage(STAGE_STARTING, "Starting the client", "")
        files: list[Path] = [entry.path for entry in entries]
        spec = LaunchSpec(
            files=files,
            arguments=list(client_args or []),
            runtime_arguments=manifest.launcher_arguments_for(self.config.platform),
            client_runtime_arguments=list(manifest.client_arguments or []),
        )
        logger.info("bootstrap_complete", files=len(spec.files), trust=manifest.trust.value)
        return spec

    def close(self) -> None:
        if self._owns_transport:
            self.transport.close()

    def __enter__(self) -> Bootstrapper:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


def resolve_client_args(value: str | None = None, debug: bool = False) -> list[str]:
    """Build application arguments from a whitespace separated string.

    Falls back to the ``BOOTSTRAPPER_ARGS`` environment variable when no
    value is given. ``--debug`` is appended when debug logging is active.
    """
    if value is None:
        value = os.environ.get(CLIENT_ARGS_ENV, "")
    args = value.split()
    if debug:
        args.append("--debug")
    return args
