"""Download and delta engine.

Executes an ``UpdatePlan``: transfers diffs or whole artifacts, verifies
every transfer against its published hash and writes the repository.

Failure handling per artifact:
- any failure on the delta path (transfer, hash, decode, apply) falls
  back to a full download of the same artifact in the same run, after
  correcting the byte estimate
- a hash mismatch on a full download is logged and the engine moves on;
  the final integrity pass is what rejects the run
- network errors on a full download propagate and abort the batch, as
  do repository write failures (raised as ``FilesystemError``)
"""

from __future__ import annotations

import enum
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

import structlog

from bootstrapper.core.delta import apply_delta
from bootstrapper.core.errors import (
    DeltaError,
    DownloadCancelled,
    FilesystemError,
    NetworkError,
    VerificationError,
)
from bootstrapper.core.integrity import verify_content_hash
from bootstrapper.core.planner import PlannedUpdate, UpdateAction, UpdatePlan
from bootstrapper.core.progress import (
    STAGE_DOWNLOAD_START,
    LogReporter,
    ProgressReporter,
    ProgressTracker,
)
from bootstrapper.core.repackage import Repackager
from bootstrapper.core.repository import Repository
from bootstrapper.core.transport import HttpTransport
from bootstrapper.core.types import Artifact

logger = structlog.get_logger()


class ArtifactOutcome(enum.Enum):
    """What happened to one artifact during execution."""

    skipped = "skipped"
    delta_applied = "delta_applied"
    downloaded = "downloaded"
    fallback_downloaded = "fallback_downloaded"
    failed = "failed"


@dataclass
class ArtifactResult:
    """Outcome of processing a single artifact."""

    artifact: Artifact
    outcome: ArtifactOutcome
    error: str | None = None


def _artifact_result_list() -> list[ArtifactResult]:
    """Factory for typed empty list of ArtifactResult."""
    return []


@dataclass
class EngineResult:
    """Outcome of executing a whole plan, in plan order."""

    results: list[ArtifactResult] = field(default_factory=_artifact_result_list)
    total_bytes: int = 0

    def count(self, outcome: ArtifactOutcome) -> int:
        return sum(1 for r in self.results if r.outcome is outcome)

    @property
    def failed(self) -> list[ArtifactResult]:
        return [r for r in self.results if r.outcome is ArtifactOutcome.failed]


class DownloadEngine:
    """Performs planned transfers against the repository.

    With ``max_workers`` of 1 artifacts are processed strictly one at a
    time in plan order. Larger values run a thread pool; all workers share
    one ``ProgressTracker`` and ``execute`` only returns once every worker
    has finished.

    Args:
        transport: HTTP transport
        repository: Target repository
        reporter: Progress destination
        max_workers: Concurrent artifact downloads
        cancel: Aborts the run with ``DownloadCancelled`` when set
    """

    def __init__(
        self,
        transport: HttpTransport,
        repository: Repository,
        reporter: ProgressReporter | None = None,
        max_workers: int = 1,
        cancel: threading.Event | None = None,
    ):
        self.transport = transport
        self.repository = repository
        self.reporter = reporter or LogReporter()
        self.max_workers = max_workers
        self.cancel = cancel
        self.repackager = Repackager(repository)

    def execute(self, plan: UpdatePlan, removes: list[str]) -> EngineResult:
        """Execute every pending update of the plan.

        Args:
            plan: Update plan
            removes: Removal prefixes for the primary artifact

        Returns:
            EngineResult with one entry per planned artifact

        Raises:
            NetworkError: If a full download cannot be transferred
            DownloadCancelled: If the cancel event is set
            FilesystemError: If an artifact cannot be written to the repository
        """
        tracker = ProgressTracker(self.reporter, plan.total_bytes)
        self.reporter.stage(STAGE_DOWNLOAD_START, "Downloading", "")

        indexed = list(enumerate(plan.updates))
        pending = [(i, u) for i, u in indexed if u.action is not UpdateAction.skip]

        def work(item: tuple[int, PlannedUpdate]) -> ArtifactResult:
            index, update = item
            return self._process(f"{index}:{update.artifact.name}", update, removes, tracker)

        if self.max_workers <= 1 or len(pending) <= 1:
            processed = [work(item) for item in pending]
        else:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                processed = list(executor.map(work, pending))

        by_index = {i: r for (i, _), r in zip(pending, processed)}
        result = EngineResult(total_bytes=tracker.total_bytes)
        for i, update in indexed:
            result.results.append(
                by_index.get(i) or ArtifactResult(update.artifact, ArtifactOutcome.skipped)
            )

        logger.info(
            "downloads_complete",
            delta=result.count(ArtifactOutcome.delta_applied),
            downloaded=result.count(ArtifactOutcome.downloaded),
            fallback=result.count(ArtifactOutcome.fallback_downloaded),
            failed=result.count(ArtifactOutcome.failed),
            total_bytes=result.total_bytes,
        )
        return result

    def _check_cancel(self) -> None:
        if self.cancel is not None and self.cancel.is_set():
            raise DownloadCancelled("Update cancelled")

    def _process(
        self,
        key: str,
        update: PlannedUpdate,
        removes: list[str],
        tracker: ProgressTracker,
    ) -> ArtifactResult:
        self._check_cancel()
        artifact = update.artifact
        diff = update.diff

        if update.action is UpdateAction.delta_download and diff is not None:
            logger.debug("downloading_diff", name=diff.name, artifact=artifact.name)
            try:
                self._apply_diff(key, update, removes, tracker)
            except (NetworkError, VerificationError, DeltaError, OSError) as e:
                tracker.abandon(key)
                logger.warning("delta_failed", name=diff.name, artifact=artifact.name, error=str(e))
                tracker.adjust_total(artifact.size - diff.size)
            else:
                tracker.finish(key, diff.size)
                return ArtifactResult(artifact, ArtifactOutcome.delta_applied)

            return self._download_full(key, artifact, removes, tracker, fallback=True)

        return self._download_full(key, artifact, removes, tracker, fallback=False)

    def _apply_diff(
        self,
        key: str,
        update: PlannedUpdate,
        removes: list[str],
        tracker: ProgressTracker,
    ) -> None:
        artifact = update.artifact
        diff = update.diff
        assert diff is not None

        payload = self.transport.transfer(
            diff.path,
            diff.hash,
            lambda n: tracker.update(key, diff.name, n),
            self.cancel,
        )
        base = self.repository.path_for(diff.from_name).read_bytes()
        patched = apply_delta(base, payload)
        verify_content_hash(patched, artifact.hash, artifact.name)

        self._store(artifact, patched, removes)
        logger.info("diff_applied", name=diff.name, artifact=artifact.name)

    def _download_full(
        self,
        key: str,
        artifact: Artifact,
        removes: list[str],
        tracker: ProgressTracker,
        fallback: bool,
    ) -> ArtifactResult:
        self._check_cancel()
        logger.debug("downloading_artifact", name=artifact.name, fallback=fallback)

        try:
            data = self.transport.transfer(
                artifact.path,
                artifact.hash,
                lambda n: tracker.update(key, artifact.name, n),
                self.cancel,
            )
            self._store(artifact, data, removes)
        except VerificationError as e:
            tracker.abandon(key)
            logger.warning("artifact_verification_failed", name=artifact.name, error=str(e))
            return ArtifactResult(artifact, ArtifactOutcome.failed, str(e))

        tracker.finish(key, artifact.size)
        logger.info("artifact_downloaded", name=artifact.name, size=len(data))
        outcome = ArtifactOutcome.fallback_downloaded if fallback else ArtifactOutcome.downloaded
        return ArtifactResult(artifact, outcome)

    def _store(self, artifact: Artifact, data: bytes, removes: list[str]) -> None:
        try:
            if artifact.is_primary:
                self.repackager.repackage(data, removes, artifact)
            else:
                self.repository.write(artifact.name, data)
        except OSError as e:
            path = self.repository.path_for(artifact.name)
            logger.error("artifact_write_failed", name=artifact.name, path=str(path), error=str(e))
            raise FilesystemError(f"Unable to write {path}: {e}", path=str(path)) from e
