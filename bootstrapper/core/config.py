"""Configuration management for bootstrapper."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import structlog
from pydantic import BaseModel, Field, field_validator

from bootstrapper.core.types import Platform

logger = structlog.get_logger()

DEFAULT_BASE_DIR = Path.home() / ".bootstrapper"
DEFAULT_CONFIG_FILE = DEFAULT_BASE_DIR / "config.json"


class AppConfig(BaseModel):
    """Application configuration.

    Constructed once at startup and passed explicitly into every
    component. All repository paths derive from ``base_dir`` so tests
    can point the whole pipeline at a temporary directory.
    """

    # Directory settings
    base_dir: Path = Field(
        default=DEFAULT_BASE_DIR,
        description="Root data directory"
    )

    # Manifest sources
    bootstrap_url: str = Field(
        default="https://static.example.net/bootstrap.json",
        description="Signed manifest URL"
    )
    bootstrap_signature_url: str = Field(
        default="https://static.example.net/bootstrap.json.sha256",
        description="Detached signature URL for the signed manifest"
    )
    overlay_url: str | None = Field(
        default=None,
        description="Unsigned overlay manifest URL (disabled when unset)"
    )
    certificate_path: Path | None = Field(
        default=None,
        description="X.509 certificate the manifest signature is checked against (defaults to <base_dir>/bootstrap.crt)"
    )

    # Identity
    product: str = Field(default="Bootstrapper", description="Product name sent in User-Agent")
    launcher_version: str = Field(default="0.1.0", description="Running launcher version")
    runtime_version: str | None = Field(
        default=None,
        description="Running runtime version (runtime check disabled when unknown)"
    )
    external_runtime: bool = Field(
        default=False,
        description="Runtime is supplied externally and cannot be upgraded by the launcher"
    )

    # Network settings
    timeout: float = Field(default=30.0, description="Request timeout in seconds")
    insecure_skip_tls_verification: bool = Field(
        default=False,
        description="Disable certificate and hostname checks (debug only)"
    )

    # Update settings
    use_diffs: bool = Field(default=True, description="Allow delta downloads")
    max_workers: int = Field(default=1, description="Concurrent artifact downloads")

    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    @property
    def logs_dir(self) -> Path:
        return self.base_dir / "logs"

    @property
    def repository_dir(self) -> Path:
        return self.base_dir / "repository"

    @property
    def cache_dir(self) -> Path:
        return self.base_dir / "cache"

    @property
    def externals_dir(self) -> Path:
        return self.base_dir / "externals"

    @property
    def declared_hash_file(self) -> Path:
        """Marker holding the manifest hash of the primary artifact."""
        return self.cache_dir / "primary.declared"

    @property
    def actual_hash_file(self) -> Path:
        """Marker holding the on-disk hash of the filtered primary artifact."""
        return self.cache_dir / "primary.actual"

    @property
    def certificate_file(self) -> Path:
        return self.certificate_path or self.base_dir / "bootstrap.crt"

    @property
    def user_agent(self) -> str:
        return f"{self.product}/{self.launcher_version}"

    @property
    def platform(self) -> Platform:
        """Platform used to resolve launcher argument overrides."""
        if sys.platform.startswith("win"):
            return Platform.WINDOWS
        if sys.platform == "darwin":
            return Platform.MACOS
        return Platform.LINUX

    def ensure_directories(self) -> None:
        """Create the data directory layout."""
        for directory in (self.logs_dir, self.repository_dir, self.cache_dir, self.externals_dir):
            directory.mkdir(parents=True, exist_ok=True)

    @classmethod
    def load(cls, config_file: Path | None = None) -> AppConfig:
        """Load configuration from file.

        Args:
            config_file: Path to config file, uses default if None

        Returns:
            Application configuration
        """
        if config_file is None:
            config_file = DEFAULT_CONFIG_FILE

        if config_file.exists():
            with open(config_file) as f:
                data = json.load(f)
                return cls(**data)

        # Return defaults
        return cls()

    def save(self, config_file: Path | None = None) -> None:
        """Save configuration to file.

        Args:
            config_file: Path to config file, uses default if None
        """
        if config_file is None:
            config_file = DEFAULT_CONFIG_FILE

        config_file.parent.mkdir(parents=True, exist_ok=True)

        with open(config_file, "w") as f:
            json.dump(self.model_dump(mode="json"), f, indent=2, default=str)

        logger.info("config_saved", path=str(config_file))

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Valid levels: {valid_levels}")
        return v

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Validate timeout value."""
        if v <= 0:
            raise ValueError("Timeout must be positive")
        return v

    @field_validator("max_workers")
    @classmethod
    def validate_max_workers(cls, v: int) -> int:
        """Validate worker count."""
        if v < 1:
            raise ValueError("Max workers must be at least 1")
        return v
