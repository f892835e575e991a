"""Bootstrapper - update engine for a self-updating application launcher.

Fetches a signed manifest (plus an optional unsigned overlay), brings a
local artifact repository in sync using whole-file or delta downloads,
verifies everything end-to-end and resolves the set of files to launch.

Key modules:
- core: Pipeline components (manifest, planner, engine, integrity)
- formats: Binary delta format parser and applier
- commands: CLI command implementations
"""

__version__ = "0.1.0"

# Re-export commonly used types and functions
from bootstrapper.core.config import AppConfig
from bootstrapper.core.errors import BootstrapError
from bootstrapper.core.pipeline import Bootstrapper
from bootstrapper.core.types import Artifact, LaunchSpec, Manifest

__all__ = [
    "__version__",
    "AppConfig",
    "Artifact",
    "BootstrapError",
    "Bootstrapper",
    "LaunchSpec",
    "Manifest",
]
