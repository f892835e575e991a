"""Repository maintenance commands."""

from __future__ import annotations

import json
import sys
from typing import Any

import click
import structlog
from rich.console import Console
from rich.table import Table

from bootstrapper.core.config import AppConfig
from bootstrapper.core.errors import BootstrapError
from bootstrapper.core.garbage import collect_garbage
from bootstrapper.core.integrity import current_hash
from bootstrapper.core.pipeline import Bootstrapper
from bootstrapper.core.repository import Repository
from bootstrapper.core.types import classify_name
from bootstrapper.core.utils import format_size

logger = structlog.get_logger()


def _get_context_objects(ctx: click.Context) -> tuple[AppConfig, Console, bool]:
    """Extract common context objects."""
    config: AppConfig = ctx.obj["config"]
    console: Console = ctx.obj["console"]
    verbose: bool = ctx.obj["verbose"]
    return config, console, verbose


def _output_json(data: Any) -> None:
    """Output data as JSON."""
    print(json.dumps(data, indent=2, default=str))


@click.group(name="repo")
def repo_group() -> None:
    """Inspect and maintain the local artifact repository."""


@repo_group.command()
@click.pass_context
def verify(ctx: click.Context) -> None:
    """Check every repository file against the current manifest."""
    config, console, verbose = _get_context_objects(ctx)
    output = ctx.obj.get("output", "rich")

    try:
        with Bootstrapper(config) as bootstrapper:
            manifest = bootstrapper.fetch_manifest()
            repository = bootstrapper.repository
            rows = []
            for artifact in manifest.artifacts:
                try:
                    found = current_hash(artifact, repository)
                except OSError as e:
                    logger.warning("artifact_hash_failed", name=artifact.name, error=str(e))
                    found = None
                rows.append((artifact.name, artifact.hash, found))
    except BootstrapError as e:
        logger.error("repository_verify_failed", error=str(e))
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    failures = [name for name, expected, found in rows if found != expected]

    if output == "json":
        _output_json(
            {
                "valid": not failures,
                "artifacts": [
                    {"name": name, "expected": expected, "actual": found, "valid": found == expected}
                    for name, expected, found in rows
                ],
            }
        )
    else:
        table = Table(title="Repository Verification")
        table.add_column("Artifact", style="cyan")
        table.add_column("Status", style="white")
        if verbose:
            table.add_column("Expected", style="dim")
            table.add_column("Actual", style="dim")

        for name, expected, found in rows:
            if found is None:
                status = "[red]missing[/red]"
            elif found == expected:
                status = "[green]✓[/green]"
            else:
                status = "[red]✗[/red]"
            row = [name, status]
            if verbose:
                row.extend([expected, found or ""])
            table.add_row(*row)

        console.print(table)

    if failures:
        logger.warning("repository_invalid", failed=failures)
        sys.exit(1)


@repo_group.command()
@click.pass_context
def clean(ctx: click.Context) -> None:
    """Delete repository files the current manifest no longer references."""
    config, console, verbose = _get_context_objects(ctx)
    output = ctx.obj.get("output", "rich")

    try:
        with Bootstrapper(config) as bootstrapper:
            manifest = bootstrapper.fetch_manifest()
            report = collect_garbage(bootstrapper.repository, manifest.artifacts)
    except BootstrapError as e:
        logger.error("repository_clean_failed", error=str(e))
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    if output == "json":
        _output_json(
            {
                "deleted": [p.name for p in report.deleted],
                "failures": [str(f) for f in report.failures],
            }
        )
        return

    for path in report.deleted:
        console.print(f"[yellow]Deleted {path.name}[/yellow]")
    for failure in report.failures:
        console.print(f"[red]{failure}[/red]")
    console.print(f"[green]Removed {len(report.deleted)} files, kept {len(report.retained)}[/green]")
    if verbose:
        console.print(f"Repository: {config.repository_dir}")


@repo_group.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show repository contents without contacting the network."""
    config, console, verbose = _get_context_objects(ctx)
    output = ctx.obj.get("output", "rich")
    repository = Repository(config)

    files = repository.list_files()
    declared = repository.read_declared_hash()
    actual = repository.read_actual_hash()

    if output == "json":
        _output_json(
            {
                "repository": str(repository.root),
                "files": [
                    {"name": p.name, "size": p.stat().st_size, "role": classify_name(p.name)[0].value}
                    for p in files
                ],
                "declared_hash": declared,
                "actual_hash": actual,
            }
        )
        return

    table = Table(title=f"Repository {repository.root}", show_header=True)
    table.add_column("File", style="cyan")
    table.add_column("Role", style="yellow")
    table.add_column("Size", justify="right", style="green")
    if verbose:
        table.add_column("SHA-256", style="dim")

    total = 0
    for path in files:
        size = path.stat().st_size
        total += size
        row = [path.name, classify_name(path.name)[0].value, format_size(size)]
        if verbose:
            row.append(repository.hash_of(path.name) or "")
        table.add_row(*row)

    console.print(table)
    console.print(f"\n[green]{len(files)} files, {format_size(total)}[/green]")
    if declared is None or actual is None:
        console.print("[yellow]Primary artifact markers missing; it will be downloaded again[/yellow]")
    elif verbose:
        console.print(f"Declared hash: {declared}")
        console.print(f"Actual hash: {actual}")
