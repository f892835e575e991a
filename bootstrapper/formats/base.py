"""Base classes for format parsers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import BinaryIO, Generic, TypeVar

import structlog
from pydantic import BaseModel

logger = structlog.get_logger()

T = TypeVar("T", bound=BaseModel)


class FormatParser(ABC, Generic[T]):
    """Base class for format parsers."""

    @abstractmethod
    def parse(self, data: bytes | BinaryIO) -> T:
        """Parse binary data.

        Args:
            data: Binary data or stream

        Returns:
            Parsed format object
        """
        ...

    @abstractmethod
    def build(self, obj: T) -> bytes:
        """Build binary data from object."""
        ...

    def parse_file(self, path: Path) -> T:
        """Parse format from file.

        Raises:
            ValueError: If the file cannot be read or parsed
        """
        try:
            with open(path, "rb") as f:
                return self.parse(f)
        except OSError as e:
            logger.error("format_read_failed", path=str(path), error=str(e))
            raise ValueError(f"Cannot read file {path}: {e}") from e
