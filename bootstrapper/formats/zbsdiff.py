"""ZBSDIFF1 binary delta format.

Published diffs are ZBSDIFF1 patches: bsdiff-style control, diff and
extra blocks, each zlib-compressed, behind a 32-byte big-endian header.

Layout:
- magic ``ZBSDIFF1`` (8 bytes)
- compressed control block length (8 bytes)
- compressed diff block length (8 bytes)
- size of the patched output (8 bytes)
- control block: (add, copy, seek) triples of little-endian int64
- diff block: bytes added to the old file
- extra block: bytes inserted verbatim
"""

from __future__ import annotations

import struct
import zlib
from io import BytesIO
from typing import BinaryIO

import structlog
from pydantic import BaseModel, Field, field_validator

from bootstrapper.formats.base import FormatParser

logger = structlog.get_logger()

# Safety limits
MAX_FILE_SIZE = 1024 * 1024 * 1024  # 1GB
MAX_CONTROL_ENTRIES = 100000

MAGIC = b"ZBSDIFF1"
_HEADER = struct.Struct(">8sQQQ")
_CONTROL = struct.Struct("<qqq")


class ZbsdiffHeader(BaseModel):
    """ZBSDIFF1 header (32 bytes, big-endian)."""

    magic: bytes = Field(default=MAGIC, description="Magic bytes")
    control_length: int = Field(ge=0, description="Compressed control block size")
    diff_length: int = Field(ge=0, description="Compressed diff block size")
    new_size: int = Field(ge=0, description="Size of the patched output")

    @field_validator("magic")
    @classmethod
    def validate_magic(cls, v: bytes) -> bytes:
        if v != MAGIC:
            raise ValueError(f"Invalid ZBSDIFF1 magic: {v!r}")
        return v

    @field_validator("control_length", "diff_length", "new_size")
    @classmethod
    def validate_sizes(cls, v: int) -> int:
        if v > MAX_FILE_SIZE:
            raise ValueError(f"Size too large: {v} > {MAX_FILE_SIZE}")
        return v


class ZbsdiffControlEntry(BaseModel):
    """One control triple."""

    add_length: int = Field(ge=0, description="Bytes combined from old file and diff block")
    copy_length: int = Field(ge=0, description="Bytes copied from extra block")
    offset: int = Field(description="Relative seek in old file (can be negative)")


class ZbsdiffFile(BaseModel):
    """Decoded ZBSDIFF1 patch."""

    header: ZbsdiffHeader
    control_entries: list[ZbsdiffControlEntry] = Field(max_length=MAX_CONTROL_ENTRIES)
    diff_data: bytes = b""
    extra_data: bytes = b""


def _inflate(block: bytes, name: str) -> bytes:
    if not block:
        return b""
    try:
        return zlib.decompress(block)
    except zlib.error as e:
        raise ValueError(f"Failed to decompress {name} block: {e}") from e


class ZbsdiffParser(FormatParser[ZbsdiffFile]):
    """Parser and applier for ZBSDIFF1 patches."""

    def parse(self, data: bytes | BinaryIO) -> ZbsdiffFile:
        """Parse a ZBSDIFF1 patch.

        Raises:
            ValueError: If the patch is truncated or corrupt
        """
        stream = BytesIO(data) if isinstance(data, (bytes, bytearray)) else data

        raw_header = stream.read(_HEADER.size)
        if len(raw_header) != _HEADER.size:
            raise ValueError(f"Header too short: {len(raw_header)} < {_HEADER.size}")
        magic, control_length, diff_length, new_size = _HEADER.unpack(raw_header)
        header = ZbsdiffHeader(
            magic=magic,
            control_length=control_length,
            diff_length=diff_length,
            new_size=new_size,
        )

        control_block = stream.read(header.control_length)
        if len(control_block) != header.control_length:
            raise ValueError(f"Control block too short: {len(control_block)} < {header.control_length}")
        diff_block = stream.read(header.diff_length)
        if len(diff_block) != header.diff_length:
            raise ValueError(f"Diff block too short: {len(diff_block)} < {header.diff_length}")
        extra_block = stream.read()

        control_data = _inflate(control_block, "control")
        if len(control_data) % _CONTROL.size:
            raise ValueError(f"Control block length {len(control_data)} is not a multiple of {_CONTROL.size}")
        if len(control_data) // _CONTROL.size > MAX_CONTROL_ENTRIES:
            raise ValueError(f"Too many control entries: {len(control_data) // _CONTROL.size}")

        entries = []
        for i, (add, copy, seek) in enumerate(_CONTROL.iter_unpack(control_data)):
            if add < 0 or copy < 0:
                raise ValueError(f"Negative length in control entry {i}: add={add}, copy={copy}")
            entries.append(ZbsdiffControlEntry(add_length=add, copy_length=copy, offset=seek))

        patch = ZbsdiffFile(
            header=header,
            control_entries=entries,
            diff_data=_inflate(diff_block, "diff"),
            extra_data=_inflate(extra_block, "extra"),
        )
        logger.debug(
            "zbsdiff_parsed",
            control_entries=len(entries),
            diff_size=len(patch.diff_data),
            extra_size=len(patch.extra_data),
            new_size=header.new_size,
        )
        return patch

    def build(self, obj: ZbsdiffFile) -> bytes:
        """Serialize a patch, recomputing the compressed block lengths."""
        control_data = b"".join(
            _CONTROL.pack(e.add_length, e.copy_length, e.offset) for e in obj.control_entries
        )
        control_block = zlib.compress(control_data)
        diff_block = zlib.compress(obj.diff_data)
        extra_block = zlib.compress(obj.extra_data) if obj.extra_data else b""

        header = _HEADER.pack(MAGIC, len(control_block), len(diff_block), obj.header.new_size)
        return header + control_block + diff_block + extra_block

    def apply_patch(self, old_data: bytes, patch: ZbsdiffFile) -> bytes:
        """Apply a patch to the old file contents.

        Raises:
            ValueError: If the patch does not fit the old data or does not
                produce exactly ``header.new_size`` bytes
        """
        if len(old_data) > MAX_FILE_SIZE:
            raise ValueError(f"Old file too large: {len(old_data)} > {MAX_FILE_SIZE}")

        new_size = patch.header.new_size
        new_data = bytearray(new_size)
        old_pos = new_pos = diff_pos = extra_pos = 0

        for i, entry in enumerate(patch.control_entries):
            if entry.add_length:
                end = new_pos + entry.add_length
                if diff_pos + entry.add_length > len(patch.diff_data):
                    raise ValueError(f"Diff block overflow at entry {i}")
                if end > new_size:
                    raise ValueError(f"New data overflow at entry {i}")

                diff_chunk = patch.diff_data[diff_pos:diff_pos + entry.add_length]
                old_chunk = old_data[old_pos:old_pos + entry.add_length]
                # Past the end of the old file the diff bytes are taken as-is
                new_data[new_pos:end] = bytes(
                    (o + d) & 0xFF for o, d in zip(old_chunk, diff_chunk)
                ) + diff_chunk[len(old_chunk):]

                old_pos += entry.add_length
                new_pos = end
                diff_pos += entry.add_length

            if entry.copy_length:
                end = new_pos + entry.copy_length
                if extra_pos + entry.copy_length > len(patch.extra_data):
                    raise ValueError(f"Extra block overflow at entry {i}")
                if end > new_size:
                    raise ValueError(f"New data overflow at entry {i}")

                new_data[new_pos:end] = patch.extra_data[extra_pos:extra_pos + entry.copy_length]
                new_pos = end
                extra_pos += entry.copy_length

            old_pos += entry.offset
            if old_pos < 0:
                raise ValueError(f"Negative old position at entry {i}")

        if new_pos != new_size:
            raise ValueError(f"Patch produced {new_pos} bytes, expected {new_size}")

        return bytes(new_data)
