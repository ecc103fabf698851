from __future__ import annotations

import logging
from pathlib import Path

import click
from pydantic import ValidationError

from . import __version__
from .config import build_run_config, load_settings
from .exceptions import ConfigError, PipelineCancelled, VmafCompareError
from .models import PIPELINE_MODES
from .utils.io import write_json
from .utils.logger import LOGGER_NAME, setup_cli_logging, setup_file_handler

logger = logging.getLogger(__name__)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("-b", "--base", type=str, required=True, help="Base (reference) video file.")
@click.option("-e", "--encoded", type=str, required=True, help="Encoded video file under test.")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Show progress and engine commands.")
@click.option(
    "-lv", "--vmaf_log", "vmaf_log", type=str, default=None,
    help="Compute VMAF, writing the per-frame JSON log here.",
)
@click.option(
    "-lp", "--psnr_log", "psnr_log", type=str, default=None,
    help="Compute PSNR, writing the per-frame stats file here.",
)
@click.option(
    "--mode", type=click.Choice(PIPELINE_MODES), default="upscale", show_default=True,
    help="'upscale' scales the encoded video to the base resolution first; 'direct' compares as-is.",
)
@click.option(
    "--config", "config_path",
    type=click.Path(exists=True, dir_okay=False), default=None,
    help="YAML file with engine settings.",
)
@click.option(
    "--summary-json", type=click.Path(dir_okay=False), default=None,
    help="Write the collected scores to this JSON file.",
)
@click.option(
    "--log-file", type=click.Path(dir_okay=False), default=None,
    help="Also write JSON-lines debug logs to this file.",
)
@click.version_option(__version__, prog_name="vmaf-compare")
def main(
    base: str,
    encoded: str,
    verbose: bool,
    vmaf_log: str | None,
    psnr_log: str | None,
    mode: str,
    config_path: str | None,
    summary_json: str | None,
    log_file: str | None,
) -> None:
    """Compute VMAF and/or PSNR of ENCODED against BASE with ffmpeg."""
    setup_cli_logging(verbose=verbose)
    if log_file:
        setup_file_handler(logging.getLogger(LOGGER_NAME), Path(log_file))

    try:
        config = build_run_config(
            base, encoded,
            verbose=verbose, vmaf_log=vmaf_log, psnr_log=psnr_log, mode=mode,
        )
        cfg = load_settings(config_path)
    except ConfigError as exc:
        raise click.BadParameter(exc.message, param_hint=exc.flag)
    except ValidationError as exc:
        raise click.BadParameter(str(exc), param_hint="--config")

    from .pipeline import run_comparison

    try:
        result = run_comparison(config, cfg)
    except KeyboardInterrupt:
        click.echo("Cancelled.", err=True)
        raise SystemExit(1)
    except PipelineCancelled as exc:
        click.echo(f"Cancelled: {exc}", err=True)
        raise SystemExit(1)
    except VmafCompareError as exc:
        invocation = getattr(exc, "invocation", None)
        if invocation:
            click.echo(f"Command: {invocation}", err=True)
        click.echo(f"Pipeline FAILED ({type(exc).__name__}): {exc}", err=True)
        raise SystemExit(1)

    if summary_json:
        path = write_json(Path(summary_json), result.as_dict())
        logger.info("Wrote summary to %s", path)


if __name__ == "__main__":
    main()
