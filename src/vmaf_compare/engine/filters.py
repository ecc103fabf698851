"""Structured builders for ffmpeg filter graphs.

ffmpeg parses a ``-vf``/``-lavfi`` argument on two levels: the filter graph
(``,`` ``;`` ``[`` ``]`` separate filters and pads) and then each filter's
option string (``:`` separates options, ``=`` key from value). A value
therefore has to be escaped for the option level first and for the graph
level second. Nothing here goes through a shell, so there is no third level.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Union

OptionValue = Union[str, int, float]

_OPTION_SPECIALS = "\\':"
_GRAPH_SPECIALS = "\\'[],;"


def _escape(text: str, specials: str) -> str:
    return "".join("\\" + ch if ch in specials else ch for ch in text)


def escape_option_value(value: OptionValue) -> str:
    return _escape(str(value), _OPTION_SPECIALS)


def escape_graph(text: str) -> str:
    return _escape(text, _GRAPH_SPECIALS)


@dataclass(frozen=True)
class Filter:
    """One filter with ordered ``key=value`` options."""

    name: str
    options: tuple[tuple[str, OptionValue], ...] = ()

    def with_option(self, key: str, value: Optional[OptionValue]) -> "Filter":
        if value is None:
            return self
        return Filter(self.name, self.options + ((key, value),))

    def render(self) -> str:
        if not self.options:
            return self.name
        opts = ":".join(f"{key}={escape_option_value(value)}" for key, value in self.options)
        return f"{self.name}={opts}"


@dataclass(frozen=True)
class FilterChain:
    """Filters applied in sequence, with optional input pad labels."""

    filters: tuple[Filter, ...]
    inputs: tuple[str, ...] = field(default=())

    def render(self) -> str:
        pads = "".join(f"[{label}]" for label in self.inputs)
        return pads + ",".join(escape_graph(f.render()) for f in self.filters)


def libvmaf_graph(
    log_path: str,
    *,
    model: Optional[str] = None,
    compute_psnr: bool = False,
    n_threads: int = 0,
) -> str:
    """``[0:v][1:v]libvmaf=...`` writing a JSON per-frame log to *log_path*."""
    f = Filter("libvmaf").with_option("log_fmt", "json").with_option("log_path", log_path)
    f = f.with_option("model", model)
    if compute_psnr:
        f = f.with_option("feature", "name=psnr")
    if n_threads:
        f = f.with_option("n_threads", n_threads)
    return FilterChain((f,), inputs=("0:v", "1:v")).render()


def psnr_graph(stats_path: str) -> str:
    """``[0:v][1:v]psnr=stats_file=...``; the summary lands on stderr."""
    f = Filter("psnr").with_option("stats_file", stats_path)
    return FilterChain((f,), inputs=("0:v", "1:v")).render()


def upscale_graph(
    width: int,
    height: int,
    *,
    scaler: str = "lanczos",
    frame_rate: Optional[str] = None,
) -> str:
    """Resize to ``width``x``height`` and normalise frame rate and timestamps."""
    filters = [
        Filter("scale", (("w", width), ("h", height), ("flags", scaler))),
    ]
    if frame_rate:
        filters.append(Filter("fps", (("fps", frame_rate),)))
    filters.append(Filter("setpts", (("expr", "PTS-STARTPTS"),)))
    return FilterChain(tuple(filters)).render()
