"""Command line entry point."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from . import exit_codes
from ._version import __version__
from .driver import SubprocessDriver
from .engine import HighLevelOp
from .formatters import OutputFormatter
from .manifest import ManifestError, load_manifest
from .runner import run_operations, stop_on_signals


@dataclass(frozen=True)
class Config:
    """Options shared by every sub-command."""

    manifest: Path | None = None
    verbose: bool = False
    json_output: bool = False
    jobs: int = 1


app = typer.Typer(
    name="repoteer",
    help="Clone, pull, push or sync every repository listed in a manifest.",
)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        print(f"repoteer {__version__}")
        raise typer.Exit()


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def get_console_and_formatter(json_output: bool) -> tuple[Console, OutputFormatter]:
    """Create console and formatter."""
    console = Console(force_terminal=not json_output)
    formatter = OutputFormatter(console, use_json=json_output)
    return console, formatter


def execute(config: Config, operation: HighLevelOp) -> None:
    """Load the manifest, run the batch and exit with the batch status."""
    _, formatter = get_console_and_formatter(config.json_output)
    err_console = Console(stderr=True)

    try:
        manifest = load_manifest(config.manifest)
    except ManifestError as e:
        err_console.print(f"[red]Error: {escape(str(e))}[/]")
        raise typer.Exit(exit_codes.CONFIG_ERROR)

    formatter.print_header(operation)
    with stop_on_signals(threading.Event()) as stop:
        report = run_operations(
            operation,
            manifest,
            driver=SubprocessDriver(),
            jobs=config.jobs,
            stop=stop,
            on_outcome=formatter.print_outcome,
        )
    formatter.print_report(report)
    raise typer.Exit(report.exit_code)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    manifest: Path = typer.Option(
        None,
        "--manifest",
        "-m",
        metavar="FILE",
        help="Read a specific manifest file (default: $HOME/.config/repoteer/manifest.toml)",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log every VCS invocation",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON",
    ),
    jobs: int = typer.Option(
        1,
        "--jobs",
        min=1,
        help="Number of repositories to process in parallel",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
):
    """Clone, pull, push or sync every repository listed in a manifest.

    Runs `sync` when no command is given.
    """
    configure_logging(verbose)
    ctx.obj = Config(manifest=manifest, verbose=verbose, json_output=json_output, jobs=jobs)
    if ctx.invoked_subcommand is None:
        execute(ctx.obj, HighLevelOp.SYNC)


@app.command()
def sync(ctx: typer.Context):
    """Clone (if the repository is not cloned yet) or pull, then push."""
    execute(ctx.obj, HighLevelOp.SYNC)


@app.command()
def clone(ctx: typer.Context):
    """Clone every repository."""
    execute(ctx.obj, HighLevelOp.CLONE)


@app.command()
def pull(ctx: typer.Context):
    """Pull every branch; refuses repositories with unstaged changes."""
    execute(ctx.obj, HighLevelOp.PULL)


@app.command()
def push(ctx: typer.Context):
    """Push every branch to origin."""
    execute(ctx.obj, HighLevelOp.PUSH)


if __name__ == "__main__":
    app()
