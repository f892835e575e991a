"""Delta payload decoding and application.

A published diff payload is a gzip stream wrapping a ZBSDIFF1 patch that
turns the base file (``diff.from``) into the new artifact.
"""

from __future__ import annotations

import gzip
import zlib

import structlog

from bootstrapper.core.errors import DeltaError
from bootstrapper.formats.zbsdiff import ZbsdiffFile, ZbsdiffParser

logger = structlog.get_logger()


def decode_delta(payload: bytes) -> ZbsdiffFile:
    """Decompress and parse a diff payload.

    Raises:
        DeltaError: If the payload is not a gzip-wrapped ZBSDIFF1 patch
    """
    try:
        raw = gzip.decompress(payload)
    except (OSError, EOFError, zlib.error) as e:
        raise DeltaError(f"Unable to decompress diff payload: {e}") from e

    try:
        return ZbsdiffParser().parse(raw)
    except ValueError as e:
        raise DeltaError(f"Invalid diff payload: {e}") from e


def apply_delta(base: bytes, payload: bytes) -> bytes:
    """Apply a diff payload to the base file contents.

    Args:
        base: Contents of the base file
        payload: Verified diff payload as downloaded

    Returns:
        Contents of the new artifact

    Raises:
        DeltaError: If decoding or application fails
    """
    patch = decode_delta(payload)
    try:
        result = ZbsdiffParser().apply_patch(base, patch)
    except ValueError as e:
        raise DeltaError(f"Unable to apply diff: {e}") from e

    logger.debug("delta_applied", base_size=len(base), new_size=len(result))
    return result
