"""Progress reporting for the bootstrap pipeline."""

from __future__ import annotations

import threading
from typing import Protocol

import structlog

logger = structlog.get_logger()

# Fractions of overall progress assigned to pipeline stages
STAGE_PREPARING = 0.0
STAGE_MANIFEST = 0.05
STAGE_TIDYING = 0.10
STAGE_DOWNLOAD_START = 0.15
STAGE_DOWNLOAD_END = 0.80
STAGE_VERIFYING = 0.80
STAGE_STARTING = 0.90


class ProgressReporter(Protocol):
    """Receives completion fractions in [0, 1] with optional labels."""

    def stage(self, fraction: float, primary: str | None = None, secondary: str | None = None) -> None:
        ...


class LogReporter:
    """Reporter that only logs stage changes."""

    def stage(self, fraction: float, primary: str | None = None, secondary: str | None = None) -> None:
        logger.debug("progress", fraction=round(fraction, 3), primary=primary, secondary=secondary)


class ProgressTracker:
    """Thread-safe aggregate of download progress.

    Holds the single byte total shared by all download workers. Reported
    fractions never decrease, even when the estimate grows after a delta
    falls back to a full download.

    Args:
        reporter: Destination for progress updates
        total_bytes: Initial advisory byte estimate
        start: Overall fraction at which the download phase begins
        end: Overall fraction at which the download phase ends
    """

    def __init__(
        self,
        reporter: ProgressReporter,
        total_bytes: int,
        start: float = STAGE_DOWNLOAD_START,
        end: float = STAGE_DOWNLOAD_END,
    ):
        self.reporter = reporter
        self.start = start
        self.end = end
        self._lock = threading.Lock()
        self._total_bytes = total_bytes
        self._completed_bytes = 0
        self._in_flight: dict[str, int] = {}
        self._last_fraction = start

    @property
    def total_bytes(self) -> int:
        with self._lock:
            return self._total_bytes

    @property
    def completed_bytes(self) -> int:
        with self._lock:
            return self._completed_bytes

    @property
    def fraction(self) -> float:
        with self._lock:
            return self._last_fraction

    def adjust_total(self, delta: int) -> None:
        """Correct the byte estimate, e.g. after a delta fallback."""
        with self._lock:
            self._total_bytes = max(self._total_bytes + delta, 0)

    def update(self, key: str, label: str, transferred: int) -> None:
        """Record cumulative bytes of an in-flight transfer."""
        with self._lock:
            self._in_flight[key] = transferred
            fraction = self._advance()
            done = self._completed_bytes + sum(self._in_flight.values())
            # Reported under the lock so updates reach the reporter in order
            self.reporter.stage(fraction, None, f"{label} ({done}/{self._total_bytes} bytes)")

    def finish(self, key: str, size: int) -> None:
        """Mark a transfer as complete, crediting its planned size."""
        with self._lock:
            self._in_flight.pop(key, None)
            self._completed_bytes += size
            self._advance()

    def abandon(self, key: str) -> None:
        """Drop an in-flight transfer that will not complete."""
        with self._lock:
            self._in_flight.pop(key, None)

    def _advance(self) -> float:
        done = self._completed_bytes + sum(self._in_flight.values())
        if self._total_bytes > 0:
            ratio = min(done / self._total_bytes, 1.0)
        else:
            ratio = 1.0
        fraction = self.start + (self.end - self.start) * ratio
        self._last_fraction = max(self._last_fraction, fraction)
        return self._last_fraction
