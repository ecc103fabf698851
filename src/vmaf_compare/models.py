from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Union

if TYPE_CHECKING:
    from .exceptions import VmafCompareError

PIPELINE_MODES = ("upscale", "direct")


@dataclass(frozen=True)
class RunConfig:
    """Inputs of a single comparison run, fixed at startup."""

    base: Path
    encoded: Path
    verbose: bool = False
    vmaf_log: Optional[Path] = None
    psnr_log: Optional[Path] = None
    mode: str = "upscale"


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Probe:
    path: Path


@dataclass(frozen=True)
class Upscale:
    source: Path
    width: int
    height: int
    output: Path


@dataclass(frozen=True)
class ComputePSNR:
    reference: Path
    distorted: Path
    stats_path: Path


@dataclass(frozen=True)
class ComputeVMAF:
    reference: Path
    distorted: Path
    log_path: Path


MetricOperation = Union[Probe, Upscale, ComputePSNR, ComputeVMAF]


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Resolution:
    width: int
    height: int

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


@dataclass(frozen=True)
class PsnrResult:
    psnr: float


@dataclass(frozen=True)
class VmafResult:
    vmaf: float
    psnr: Optional[float] = None
    extra: dict[str, float] = field(default_factory=dict)


MetricResult = Union[Resolution, PsnrResult, VmafResult]


# ---------------------------------------------------------------------------
# Engine events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Started:
    invocation: str


@dataclass(frozen=True)
class Progress:
    percent: float


@dataclass(frozen=True)
class Failed:
    message: str
    error: VmafCompareError


@dataclass(frozen=True)
class Completed:
    result: Optional[MetricResult] = None
    output: str = ""


EngineEvent = Union[Started, Progress, Failed, Completed]


@dataclass
class PipelineResult:
    """Outcome of ``Pipeline.run()``."""

    resolution: Resolution | None = None
    upscaled: Path | None = None
    psnr: PsnrResult | None = None
    vmaf: VmafResult | None = None
    stages: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        out: dict = {"stages": list(self.stages)}
        if self.resolution is not None:
            out["resolution"] = {"width": self.resolution.width, "height": self.resolution.height}
        if self.upscaled is not None:
            out["upscaled"] = str(self.upscaled)
        if self.psnr is not None:
            out["psnr"] = self.psnr.psnr
        if self.vmaf is not None:
            out["vmaf"] = self.vmaf.vmaf
            if self.vmaf.psnr is not None:
                out["vmaf_psnr"] = self.vmaf.psnr
        return out
