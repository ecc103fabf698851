from __future__ import annotations

import json
import logging
import math
import re
from pathlib import Path
from typing import Any

from .exceptions import LogFormatError
from .models import Resolution, VmafResult

logger = logging.getLogger(__name__)

LOG_FORMATS = ("json-frames", "raw-text")

# Luma PSNR from the engine's summary line, e.g.
#   [Parsed_psnr_0 @ 0x...] PSNR y:42.17 u:44.01 v:44.83 average:42.80 min:38.1 max:51.2
_PSNR_Y_RE = re.compile(r"(?<![\w.])y:(inf|[-+]?\d+(?:\.\d+)?(?:[eE][-+]?\d+)?)")


def _is_number(value: Any) -> bool:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # integers too large for a float
        return False


def parse_vmaf_log(path: Path) -> dict[str, float]:
    """Average every per-frame metric in a libvmaf JSON log.

    Returns ``{metric_name: mean}`` for each numeric metric that appears in
    all frames. Frames are summed in file order, so the same bytes always
    give the same means. ``vmaf`` must be present in every frame.

    Raises LogFormatError if the file is missing, not JSON, or has no frames.
    """
    try:
        raw = Path(path).read_bytes()
    except FileNotFoundError as exc:
        raise LogFormatError(f"VMAF log not found: {path}") from exc
    except OSError as exc:
        raise LogFormatError(f"VMAF log unreadable: {path} ({exc})") from exc

    try:
        log = json.loads(raw.decode("utf-8"))
    except UnicodeDecodeError as exc:
        raise LogFormatError(f"VMAF log is not UTF-8: {path} ({exc})") from exc
    except json.JSONDecodeError as exc:
        raise LogFormatError(f"VMAF log is not valid JSON: {path} ({exc})") from exc

    frames = log.get("frames") if isinstance(log, dict) else None
    if not isinstance(frames, list):
        raise LogFormatError(f"VMAF log has no 'frames' array: {path}")
    if not frames:
        raise LogFormatError(f"VMAF log contains zero frames: {path}")

    totals: dict[str, float] = {}
    counts: dict[str, int] = {}
    for index, frame in enumerate(frames):
        metrics = frame.get("metrics") if isinstance(frame, dict) else None
        if not isinstance(metrics, dict):
            raise LogFormatError(f"frame {index} in {path} has no 'metrics' mapping")
        if not _is_number(metrics.get("vmaf")):
            raise LogFormatError(f"frame {index} in {path} has no numeric 'vmaf' value")
        for name, value in metrics.items():
            if _is_number(value):
                totals[name] = totals.get(name, 0.0) + value
                counts[name] = counts.get(name, 0) + 1

    n = len(frames)
    partial = sorted(name for name, c in counts.items() if c != n)
    if partial:
        logger.warning("Dropping metrics missing from some frames in %s: %s", path, ", ".join(partial))

    means = {name: totals[name] / n for name, c in counts.items() if c == n}
    logger.debug("Parsed %d frames from %s: %s", n, path, means)
    return means


def vmaf_result_from_means(means: dict[str, float]) -> VmafResult:
    if "vmaf" not in means:
        raise LogFormatError("no 'vmaf' mean available")
    psnr = means.get("psnr", means.get("psnr_y"))
    extra = {k: v for k, v in means.items() if k not in ("vmaf", "psnr")}
    return VmafResult(vmaf=means["vmaf"], psnr=psnr, extra=extra)


def parse_psnr_text(text: str) -> float:
    """Extract the luma PSNR from the engine's textual summary.

    The last ``y:<number>`` token wins, matching the summary line the engine
    prints when the psnr filter is torn down. ``inf`` is returned for
    identical inputs.
    """
    matches = _PSNR_Y_RE.findall(text or "")
    if not matches:
        raise LogFormatError("no 'y:<value>' PSNR token in engine output")
    return float(matches[-1])


def parse_log(path: Path, fmt: str) -> dict[str, float]:
    """Parse a result artifact in one of :data:`LOG_FORMATS`."""
    if fmt == "json-frames":
        return parse_vmaf_log(path)
    if fmt == "raw-text":
        try:
            text = Path(path).read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            raise LogFormatError(f"engine output not readable: {path} ({exc})") from exc
        return {"psnr": parse_psnr_text(text)}
    raise ValueError(f"unknown log format {fmt!r}; expected one of {LOG_FORMATS}")


def parse_probe_output(text: str) -> Resolution:
    """Read width/height of the first video stream from ffprobe JSON output."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise LogFormatError(f"probe output is not valid JSON ({exc})") from exc

    streams = data.get("streams") if isinstance(data, dict) else None
    if not isinstance(streams, list) or not streams:
        raise LogFormatError("probe output lists no video stream")
    stream = streams[0]
    if not isinstance(stream, dict):
        raise LogFormatError(f"probe output has a malformed stream entry: {stream!r}")
    width, height = stream.get("width"), stream.get("height")
    if not isinstance(width, int) or not isinstance(height, int) or width <= 0 or height <= 0:
        raise LogFormatError(f"probe output has no usable resolution: {stream!r}")
    return Resolution(width=width, height=height)
