"""Main entry point for bootstrapper CLI."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any

import click
import structlog
from rich.console import Console

from bootstrapper import __version__
from bootstrapper.commands.repository import repo_group
from bootstrapper.commands.update import plan, run
from bootstrapper.core.config import AppConfig
from bootstrapper.core.version import compare_version

LOG_FILE_NAME = "bootstrapper.log"

# Configure structured logging
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(colors=False),
    ],
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


def _configure_logging(app_config: AppConfig) -> None:
    """Route stdlib logging to ``logs/bootstrapper.log`` at the configured level."""
    root = logging.getLogger()
    root.setLevel(app_config.log_level)

    try:
        app_config.logs_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.warning("log_directory_unavailable", path=str(app_config.logs_dir), error=str(e))
        return

    log_file = app_config.logs_dir / LOG_FILE_NAME
    for handler in root.handlers:
        if isinstance(handler, logging.FileHandler) and Path(handler.baseFilename) == log_file:
            return

    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(handler)


@click.group()
@click.version_option(version=__version__, prog_name="bootstrapper")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Configuration file path",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--debug", "-d", is_flag=True, help="Enable debug output")
@click.option(
    "--output",
    "-o",
    type=click.Choice(["rich", "json", "plain"], case_sensitive=False),
    default="rich",
    help="Output format",
)
@click.pass_context
def main(
    ctx: click.Context,
    config: Path | None,
    verbose: bool,
    debug: bool,
    output: str,
) -> None:
    """Keep a local artifact repository in sync with a signed manifest."""
    ctx.ensure_object(dict)

    # Load configuration
    try:
        app_config = AppConfig.load(config)
    except Exception as e:
        logger.error("config_load_failed", error=str(e))
        sys.exit(1)

    # Override config with CLI options
    if verbose or debug:
        app_config.log_level = "DEBUG" if debug else "INFO"

    _configure_logging(app_config)

    # Configure logging level
    if debug:
        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.dev.set_exc_info,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.dev.ConsoleRenderer(colors=False),
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=False,
        )

    # Create console for rich output
    console = Console(
        force_terminal=output == "rich",
        no_color=output != "rich",
        width=None if output == "rich" else 120,
    )

    # Store config and console in context for subcommands
    ctx.obj["config"] = app_config
    ctx.obj["console"] = console
    ctx.obj["output"] = output
    ctx.obj["verbose"] = verbose or debug
    ctx.obj["debug"] = debug

    logger.debug("cli_initialized", config=app_config.model_dump(mode="json"))


@main.command()
@click.pass_context
def version(ctx: click.Context) -> None:
    """Show version information."""
    console: Console = ctx.obj["console"]
    config: AppConfig = ctx.obj["config"]

    if ctx.obj["output"] == "json":
        import json

        info = {
            "name": "bootstrapper",
            "version": __version__,
            "user_agent": config.user_agent,
            "python_version": sys.version.replace("\n", " "),
            "platform": config.platform.value,
        }
        # Use regular print for JSON to avoid Rich formatting
        print(json.dumps(info, indent=2))
    else:
        console.print(f"bootstrapper {__version__}")
        if ctx.obj["verbose"]:
            console.print(f"User-Agent: {config.user_agent}")
            console.print(f"Python {sys.version}")
            console.print(f"Platform: {config.platform.value}")


@main.command("compare-version")
@click.argument("first")
@click.argument("second")
@click.pass_context
def compare_version_command(ctx: click.Context, first: str, second: str) -> None:
    """Compare two dotted version strings."""
    console: Console = ctx.obj["console"]
    result = compare_version(first, second)

    if ctx.obj["output"] == "json":
        import json

        print(json.dumps({"first": first, "second": second, "result": result}))
        return

    symbol = {-1: "<", 0: "=", 1: ">"}[result]
    console.print(f"{first} {symbol} {second}")


# Register commands
main.add_command(run)
main.add_command(plan)
main.add_command(repo_group)


def handle_exception(exc_type: type[BaseException], exc_value: BaseException, exc_traceback: Any) -> None:
    """Handle uncaught exceptions."""
    if issubclass(exc_type, KeyboardInterrupt):
        logger.info("operation_cancelled")
        sys.exit(1)

    logger.error(
        "uncaught_exception",
        exc_info=(exc_type, exc_value, exc_traceback),
    )
    sys.exit(1)


if __name__ == "__main__":
    # Install exception handler
    sys.excepthook = handle_exception

    try:
        main()
    except Exception as e:
        logger.error("cli_execution_failed", error=str(e))
        sys.exit(1)
