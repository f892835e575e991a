"""CLI command implementations for bootstrapper.

- run: Synchronise the repository and resolve the launch set
- plan: Preview the update plan
- repo: Verify, clean and inspect the local repository
"""

from bootstrapper.commands.repository import repo_group
from bootstrapper.commands.update import plan, run

__all__ = ["plan", "repo_group", "run"]
