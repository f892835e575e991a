"""Format parsers and builders.

- ZBSDIFF1: Zlib-compressed binary differential patches, the payload
  format of artifact diffs
"""

from bootstrapper.formats.base import FormatParser
from bootstrapper.formats.zbsdiff import (
    ZbsdiffControlEntry,
    ZbsdiffFile,
    ZbsdiffHeader,
    ZbsdiffParser,
)

__all__ = [
    "FormatParser",
    "ZbsdiffControlEntry",
    "ZbsdiffFile",
    "ZbsdiffHeader",
    "ZbsdiffParser",
]
