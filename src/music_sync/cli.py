"""CLI entry point for the music sync pipeline."""

from pathlib import Path

import click
from loguru import logger
from pydantic import ValidationError

from .config import SyncConfig
from .errors import PipelineError
from .models import ExitCode, RunSummary
from .runner import PipelineRunner

log = logger.bind(stage="cli")


def _print_summary(summary: RunSummary, config: SyncConfig) -> None:
    if summary.nothing_to_do:
        click.echo(f"Add music files to: {config.input_dir}")
        return
    click.echo(
        f"\nDone: {summary.published} of {summary.found} files published "
        f"in {summary.elapsed:.2f} seconds ({summary.failed} failed)"
    )
    click.echo(f"  Converted files: {config.output_dir}")
    click.echo(f"  Cover art:       {config.cover_art_dir}")
    if summary.manifest_written:
        click.echo(f"  Manifest:        {config.manifest_path}")
    else:
        click.echo("  Manifest:        not written (no files published)")


@click.command()
@click.option(
    "-i",
    "--input-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory of audio files to sync.",
)
@click.option(
    "-o",
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory for encoded quality variants.",
)
@click.option(
    "--cover-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory for extracted cover art.",
)
@click.option(
    "-m",
    "--manifest",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path of the generated tracks.json.",
)
@click.option(
    "-w",
    "--workers",
    type=click.IntRange(min=0),
    default=None,
    help="Files processed in parallel (0 = auto, default 1).",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.option(
    "-c",
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Path to .env file.",
)
@click.pass_context
def main(
    ctx: click.Context,
    input_dir: Path | None,
    output_dir: Path | None,
    cover_dir: Path | None,
    manifest: Path | None,
    workers: int | None,
    verbose: bool,
    config_file: str | None,
) -> None:
    """Transcode local music, upload it to R2, and publish a tracks.json manifest."""
    # Pass CLI flags as kwargs to avoid env pollution
    config_kwargs: dict = {"verbose": verbose}
    if input_dir is not None:
        config_kwargs["input_dir"] = input_dir
    if output_dir is not None:
        config_kwargs["output_dir"] = output_dir
    if cover_dir is not None:
        config_kwargs["cover_art_dir"] = cover_dir
    if manifest is not None:
        config_kwargs["manifest_path"] = manifest
    if workers is not None:
        config_kwargs["max_workers"] = workers
    if config_file:
        config_kwargs["_env_file"] = config_file

    try:
        config = SyncConfig(**config_kwargs)
    except ValidationError as exc:
        raise click.UsageError(f"Invalid configuration: {exc}")
    config.setup_logging()

    log.info(
        f"Starting sync: input={config.input_dir} output={config.output_dir} "
        f"qualities={config.qualities}"
    )
    try:
        runner = PipelineRunner(config)
        summary = runner.run()
    except PipelineError as exc:
        click.echo(f"ERROR: {exc}", err=True)
        log.error(f"Run aborted: {exc}")
        ctx.exit(ExitCode.FAILED)

    _print_summary(summary, config)
    ctx.exit(summary.exit_code)
