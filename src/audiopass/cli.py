"""Command-line interface for audiopass."""

import json
import sys
from pathlib import Path

import click

from audiopass import __version__
from audiopass.config import load_config
from audiopass.core.pipeline import ProcessingPipeline
from audiopass.errors import PlanningError
from audiopass.utils.decision_log import DecisionLog
from audiopass.utils.logger import setup_logging

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CRITICAL = 2


def _load_probe_json(path: Path | None) -> dict | None:
    if path is None:
        return None
    with open(path) as f:
        return json.load(f)


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to configuration file (defaults to built-in defaults)",
)
@click.pass_context
def cli(ctx, config):
    """audiopass - DTS to DD+ recode, stereo downmix and track reordering."""
    try:
        cfg = load_config(config)
        ctx.ensure_object(dict)
        ctx.obj["config"] = cfg

        setup_logging(cfg.logging)

    except Exception as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        sys.exit(EXIT_FAILED)


@cli.command()
@click.argument("file", type=click.Path(exists=True, path_type=Path))
@click.option("--dry-run", is_flag=True, default=False, help="Plan only, leave the file untouched")
@click.option(
    "--probe-json",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Use this ffprobe JSON instead of probing the file",
)
@click.pass_context
def process(ctx, file, dry_run, probe_json):
    """Process a single media file.

    Args:
        file: Path to the media file to process
    """
    config = ctx.obj["config"]

    click.echo(f"Processing: {file}")

    try:
        probe_data = _load_probe_json(probe_json)
    except (OSError, json.JSONDecodeError) as e:
        click.secho(f"✗ Unreadable probe JSON: {e}", fg="red", err=True)
        sys.exit(EXIT_FAILED)

    pipeline = ProcessingPipeline(config)
    result = pipeline.process(file, probe_data=probe_data, dry_run=dry_run or None)

    for line in result.decision_log:
        click.echo(f"  {line}")

    if result.status == "processed":
        click.secho(str(result), fg="green")
        sys.exit(EXIT_OK)
    elif result.status == "skipped":
        click.secho(str(result), fg="yellow")
        sys.exit(EXIT_OK)
    elif result.status == "dry_run":
        click.secho(str(result), fg="cyan")
        sys.exit(EXIT_OK)
    elif result.status == "critical":
        click.secho(str(result), fg="red", bold=True, err=True)
        sys.exit(EXIT_CRITICAL)
    else:
        click.secho(str(result), fg="red", err=True)
        sys.exit(EXIT_FAILED)


@cli.command()
@click.argument("file", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--probe-json",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Use this ffprobe JSON instead of probing the file",
)
@click.pass_context
def plan(ctx, file, probe_json):
    """Show the planned output tracks for a file without touching it."""
    config = ctx.obj["config"]
    log = DecisionLog(file=str(file))

    try:
        probe_data = _load_probe_json(probe_json)
        transform = ProcessingPipeline(config).plan(file, probe_data, log)
    except (OSError, json.JSONDecodeError) as e:
        click.secho(f"✗ Unreadable probe JSON: {e}", fg="red", err=True)
        sys.exit(EXIT_FAILED)
    except PlanningError as e:
        click.secho(f"✗ {e} ({e.reason})", fg="red", err=True)
        sys.exit(EXIT_FAILED)

    for line in log:
        click.echo(line)
    click.echo("")

    if transform.no_op_required:
        click.secho("⊘ Already optimal, nothing to do", fg="yellow")

    for position, entry in enumerate(transform.entries):
        marker = "*" if entry.is_default else " "
        click.echo(f"{marker} a:{position}  {entry.origin.value:<20} {entry.title}")


@cli.command()
@click.pass_context
def daemon(ctx):
    """Start the HTTP daemon.

    Serves single-file processing requests and a health check.
    """
    config = ctx.obj["config"]

    click.echo("Starting audiopass daemon...")
    click.echo(f"Listening on {config.api.host}:{config.api.port}")
    click.echo("")
    click.echo("Endpoints:")
    click.echo(f"  - Process file:   http://{config.api.host}:{config.api.port}/process")
    click.echo(f"  - Health check:   http://{config.api.host}:{config.api.port}/health")
    click.echo(f"  - API docs:       http://{config.api.host}:{config.api.port}/docs")
    click.echo("")
    click.echo("Press Ctrl+C to stop")
    click.echo("")

    from audiopass.daemon import start_daemon

    try:
        start_daemon(config)
    except KeyboardInterrupt:
        click.echo("\n\nDaemon stopped")
        sys.exit(EXIT_OK)


@cli.command()
@click.pass_context
def version(ctx):
    """Show version information."""
    click.echo(f"audiopass v{__version__}")


def main():
    """Entry point for the CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
