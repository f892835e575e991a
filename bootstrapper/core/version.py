"""Version comparison and the launcher/runtime version gate."""

from __future__ import annotations

import re

import structlog

from bootstrapper.core.errors import GateReason, VersionGateError
from bootstrapper.core.types import Manifest

logger = structlog.get_logger()

_SEPARATOR = re.compile(r"[^0-9A-Za-z]+")


def _tokenize(version: str) -> list[str]:
    return [token for token in _SEPARATOR.split(version) if token]


def _as_int(token: str) -> int | None:
    if token.isascii() and token.isdigit():
        return int(token)
    return None


def _compare_tokens(x: str, y: str) -> int:
    ix = _as_int(x)
    iy = _as_int(y)

    if ix is None and iy is None:
        lx, ly = x.lower(), y.lower()
        return (lx > ly) - (lx < ly)
    # Numeric tokens sort before non-numeric ones
    if ix is None:
        return 1
    if iy is None:
        return -1
    return (ix > iy) - (ix < iy)


def compare_version(a: str, b: str) -> int:
    """Compare two version strings.

    Both strings are split on runs of non-alphanumeric characters and the
    tokens compared pairwise: numerically when both are integers,
    case-insensitively otherwise. When the shared prefix is equal the
    longer version is greater. Never raises.

    Args:
        a: First version
        b: Second version

    Returns:
        -1, 0 or 1

    Example:
        >>> compare_version("1.2.3", "1.2.4")
        -1
        >>> compare_version("1.2.3", "1.2")
        1
    """
    ta = _tokenize(a)
    tb = _tokenize(b)

    for x, y in zip(ta, tb):
        result = _compare_tokens(x, y)
        if result:
            return result

    return (len(ta) > len(tb)) - (len(ta) < len(tb))


def _requirement(value: str | None, field: str) -> str | None:
    """Return a usable requirement, or None when absent or malformed."""
    if value is None:
        return None
    if not value.strip()[:1].isdigit():
        logger.warning("version_requirement_malformed", field=field, value=value)
        return None
    return value


def check_versions(
    manifest: Manifest,
    launcher_version: str,
    runtime_version: str | None,
    external_runtime: bool = False,
) -> None:
    """Halt the pipeline when the manifest requires newer software.

    Evaluated in order:

    1. Required launcher version above the running launcher
    2. Externally supplied runtime below the required runtime version
       (reported as an outdated launcher, since such a runtime cannot be
       upgraded by the launcher)
    3. Bundled runtime below the required runtime version

    Args:
        manifest: Effective manifest
        launcher_version: Running launcher version
        runtime_version: Running runtime version, None if unknown
        external_runtime: Whether the runtime is supplied externally

    Raises:
        VersionGateError: If a requirement is not met
    """
    required_launcher = _requirement(manifest.required_launcher_version, "required_launcher_version")
    required_runtime = _requirement(manifest.required_runtime_version, "required_runtime_version")

    if required_runtime is not None and runtime_version is None:
        logger.warning("runtime_version_unknown", required=required_runtime)
        required_runtime = None

    launcher_too_old = (
        required_launcher is not None
        and compare_version(required_launcher, launcher_version) > 0
    )
    runtime_too_old = (
        required_runtime is not None
        and runtime_version is not None
        and compare_version(required_runtime, runtime_version) > 0
    )

    if launcher_too_old:
        logger.error("launcher_outdated", required=required_launcher, running=launcher_version)
        raise VersionGateError(
            "Your launcher is too old to start the application. "
            "Please download and install a more recent one.",
            reason=GateReason.LAUNCHER_OUTDATED,
            required=required_launcher,
            running=launcher_version,
        )

    if external_runtime and runtime_too_old:
        logger.error("launcher_outdated", required_runtime=required_runtime, running=runtime_version)
        raise VersionGateError(
            "Your launcher is too old to start the application. "
            "Please download and install a more recent one.",
            reason=GateReason.LAUNCHER_OUTDATED,
            required=required_runtime,
            running=runtime_version,
        )

    if runtime_too_old:
        logger.error("runtime_outdated", required=required_runtime, running=runtime_version)
        raise VersionGateError(
            f"Your runtime installation is too old. The application now requires "
            f"runtime {required_runtime} to run.",
            reason=GateReason.RUNTIME_OUTDATED,
            required=required_runtime,
            running=runtime_version,
        )

    logger.debug(
        "version_gate_passed",
        launcher=launcher_version,
        runtime=runtime_version,
        external_runtime=external_runtime,
    )
