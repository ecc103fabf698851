from __future__ import annotations

import shlex
from pathlib import Path

from ..config import Settings
from ..models import ComputePSNR, ComputeVMAF, MetricOperation, Probe, Upscale
from .filters import libvmaf_graph, psnr_graph, upscale_graph


def probe_command(op: Probe, cfg: Settings) -> list[str]:
    return [
        cfg.FFPROBE_BIN,
        "-v", "error",
        "-select_streams", "v:0",
        "-show_entries", "stream=width,height",
        "-of", "json",
        str(op.path),
    ]


def upscale_command(op: Upscale, cfg: Settings) -> list[str]:
    graph = upscale_graph(
        op.width, op.height,
        scaler=cfg.UPSCALE_SCALER,
        frame_rate=cfg.UPSCALE_FRAME_RATE,
    )
    return [
        cfg.FFMPEG_BIN,
        "-hide_banner", "-nostdin", "-y",
        "-i", str(op.source),
        "-vf", graph,
        "-pix_fmt", cfg.UPSCALE_PIX_FMT,
        "-fps_mode", "cfr",
        "-an",
        "-c:v", cfg.UPSCALE_CODEC,
        *cfg.UPSCALE_CODEC_ARGS,
        str(op.output),
    ]


def _compare_command(distorted: Path, reference: Path, graph: str, cfg: Settings) -> list[str]:
    # Filters taking two inputs treat the first as distorted and the second as reference.
    return [
        cfg.FFMPEG_BIN,
        "-hide_banner", "-nostdin",
        "-i", str(distorted),
        "-i", str(reference),
        "-lavfi", graph,
        "-f", "null", "-",
    ]


def psnr_command(op: ComputePSNR, cfg: Settings) -> list[str]:
    return _compare_command(op.distorted, op.reference, psnr_graph(str(op.stats_path)), cfg)


def vmaf_command(op: ComputeVMAF, cfg: Settings) -> list[str]:
    graph = libvmaf_graph(
        str(op.log_path),
        model=cfg.VMAF_MODEL,
        compute_psnr=cfg.VMAF_COMPUTE_PSNR,
        n_threads=cfg.VMAF_THREADS,
    )
    return _compare_command(op.distorted, op.reference, graph, cfg)


def build_command(op: MetricOperation, cfg: Settings) -> list[str]:
    """Translate *op* into the argv of one engine process."""
    if isinstance(op, Probe):
        return probe_command(op, cfg)
    if isinstance(op, Upscale):
        return upscale_command(op, cfg)
    if isinstance(op, ComputePSNR):
        return psnr_command(op, cfg)
    if isinstance(op, ComputeVMAF):
        return vmaf_command(op, cfg)
    raise TypeError(f"unsupported operation: {op!r}")


def format_invocation(argv: list[str]) -> str:
    return shlex.join(argv)
