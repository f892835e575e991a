"""Update commands: run the bootstrap pipeline or preview its plan."""

from __future__ import annotations

import json
import sys
from typing import Any

import click
import structlog
from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from bootstrapper.core.config import AppConfig
from bootstrapper.core.errors import BootstrapError, VersionGateError
from bootstrapper.core.pipeline import Bootstrapper, resolve_client_args
from bootstrapper.core.planner import UpdateAction, plan_updates
from bootstrapper.core.progress import LogReporter, ProgressReporter
from bootstrapper.core.types import LaunchSpec, TrustLevel
from bootstrapper.core.utils import format_size
from bootstrapper.core.version import check_versions

logger = structlog.get_logger()


def _get_context_objects(ctx: click.Context) -> tuple[AppConfig, Console, bool, bool]:
    """Extract common context objects."""
    config: AppConfig = ctx.obj["config"]
    console: Console = ctx.obj["console"]
    verbose: bool = ctx.obj["verbose"]
    debug: bool = ctx.obj["debug"]
    return config, console, verbose, debug


def _output_json(data: dict[str, Any], console: Console) -> None:
    """Output data as JSON."""
    print(json.dumps(data, indent=2, default=str))


def _fail(console: Console, error: BootstrapError) -> None:
    """Report a fatal pipeline error and exit."""
    logger.error("bootstrap_failed", error=str(error), error_type=type(error).__name__)
    if isinstance(error, VersionGateError):
        console.print(f"[red]{error}[/red]")
        console.print(f"[dim]Required {error.required}, running {error.running}[/dim]")
    else:
        console.print(f"[red]Error: {error}[/red]")
    sys.exit(1)


class RichReporter:
    """Progress reporter drawing a single rich progress bar."""

    def __init__(self, progress: Progress):
        self.progress = progress
        self.label = "Preparing"
        self.task: TaskID = progress.add_task(self.label, total=1.0)

    def stage(self, fraction: float, primary: str | None = None, secondary: str | None = None) -> None:
        if primary is not None:
            self.label = primary
        description = f"{self.label} - {secondary}" if secondary else self.label
        self.progress.update(self.task, completed=fraction, description=description)


def _launch_spec_table(spec: LaunchSpec) -> Table:
    table = Table(title="Launch Set", show_header=True)
    table.add_column("#", justify="right", style="dim")
    table.add_column("File", style="cyan")
    for index, path in enumerate(spec.files, 1):
        table.add_row(str(index), str(path))
    return table


@click.command()
@click.option(
    "--client-args",
    type=str,
    default=None,
    help="Application arguments (defaults to the BOOTSTRAPPER_ARGS environment variable)",
)
@click.option("--no-diff", is_flag=True, help="Always download whole artifacts")
@click.option(
    "--insecure-skip-tls-verification",
    is_flag=True,
    help="Disable TLS certificate and hostname checks (debug only)",
)
@click.option("--overlay-url", type=str, default=None, help="Unsigned overlay manifest URL")
@click.option("--max-workers", type=click.IntRange(min=1), default=None, help="Concurrent downloads")
@click.pass_context
def run(
    ctx: click.Context,
    client_args: str | None,
    no_diff: bool,
    insecure_skip_tls_verification: bool,
    overlay_url: str | None,
    max_workers: int | None,
) -> None:
    """Synchronise the repository and print the resolved launch set.

    Fetches and verifies the signed manifest, merges the overlay if one is
    configured, downloads or patches every out-of-date artifact and checks
    the whole repository before anything is handed on for launching.
    """
    config, console, verbose, debug = _get_context_objects(ctx)
    output = ctx.obj.get("output", "rich")

    updates: dict[str, Any] = {}
    if no_diff:
        updates["use_diffs"] = False
    if insecure_skip_tls_verification:
        updates["insecure_skip_tls_verification"] = True
    if overlay_url:
        updates["overlay_url"] = overlay_url
    if max_workers:
        updates["max_workers"] = max_workers
    if updates:
        config = config.model_copy(update=updates)

    arguments = resolve_client_args(client_args, debug)

    try:
        if output == "rich":
            with Progress(
                SpinnerColumn(),
                TextColumn("[bold blue]{task.description}"),
                BarColumn(),
                TaskProgressColumn(),
                TimeElapsedColumn(),
                console=console,
            ) as progress:
                reporter: ProgressReporter = RichReporter(progress)
                with Bootstrapper(config, reporter=reporter) as bootstrapper:
                    spec = bootstrapper.run(arguments)
        else:
            with Bootstrapper(config, reporter=LogReporter()) as bootstrapper:
                spec = bootstrapper.run(arguments)
    except BootstrapError as e:
        _fail(console, e)
        return

    if output == "json":
        _output_json(spec.model_dump(mode="json"), console)
        return

    console.print(_launch_spec_table(spec))
    if spec.arguments:
        console.print(f"Arguments: {' '.join(spec.arguments)}")
    if verbose and spec.runtime_arguments:
        console.print(f"Runtime arguments: {' '.join(spec.runtime_arguments)}")
    if spec.client_runtime_arguments:
        console.print(f"Client runtime arguments: {' '.join(spec.client_runtime_arguments)}")


@click.command()
@click.option("--no-diff", is_flag=True, help="Plan whole-artifact downloads only")
@click.option("--overlay-url", type=str, default=None, help="Unsigned overlay manifest URL")
@click.pass_context
def plan(ctx: click.Context, no_diff: bool, overlay_url: str | None) -> None:
    """Show what an update would transfer without changing anything."""
    config, console, verbose, _ = _get_context_objects(ctx)
    output = ctx.obj.get("output", "rich")

    if overlay_url:
        config = config.model_copy(update={"overlay_url": overlay_url})

    try:
        with Bootstrapper(config) as bootstrapper:
            manifest = bootstrapper.fetch_manifest()
            check_versions(
                manifest,
                config.launcher_version,
                config.runtime_version,
                config.external_runtime,
            )
            update_plan = plan_updates(manifest, bootstrapper.repository, use_diffs=not no_diff and config.use_diffs)
    except BootstrapError as e:
        _fail(console, e)
        return

    if output == "json":
        _output_json(
            {
                "trust": manifest.trust.value,
                "total_bytes": update_plan.total_bytes,
                "updates": [
                    {
                        "name": u.artifact.name,
                        "action": u.action.name,
                        "diff": u.diff.name if u.diff else None,
                        "size": u.estimated_size,
                    }
                    for u in update_plan.updates
                ],
            },
            console,
        )
        return

    table = Table(title="Update Plan", show_header=True)
    table.add_column("Artifact", style="cyan")
    table.add_column("Action", style="yellow")
    table.add_column("Size", justify="right", style="green")
    if verbose:
        table.add_column("Diff", style="magenta")

    styles = {
        UpdateAction.skip: "[dim]up to date[/dim]",
        UpdateAction.full_download: "download",
        UpdateAction.delta_download: "delta",
    }
    for update in update_plan.updates:
        row = [update.artifact.name, styles[update.action], format_size(update.estimated_size)]
        if verbose:
            row.append(update.diff.name if update.diff else "")
        table.add_row(*row)

    console.print(table)
    console.print(
        f"\n[green]{update_plan.download_count} downloads, {update_plan.delta_count} deltas, "
        f"{update_plan.skip_count} up to date ({format_size(update_plan.total_bytes)})[/green]"
    )
    if manifest.trust is TrustLevel.UNVERIFIED:
        console.print("[yellow]Manifest includes unsigned overlay content[/yellow]")
