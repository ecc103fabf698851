from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Optional, Protocol, TypeVar

from .config import Settings
from .exceptions import LogFormatError, PipelineCancelled
from .models import (
    Completed,
    ComputePSNR,
    ComputeVMAF,
    Failed,
    MetricOperation,
    MetricResult,
    PipelineResult,
    Probe,
    PsnrResult,
    Resolution,
    RunConfig,
    Upscale,
    VmafResult,
)
from .reporting import ConsoleReporter, Reporter

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Invoker(Protocol):
    async def run(
        self, op: MetricOperation, on_event: Any = None, cancel: Optional[asyncio.Event] = None,
    ) -> Completed | Failed: ...


def intermediate_path(encoded: Path, resolution: Resolution, cfg: Settings) -> Path:
    """Where the upscaled copy of *encoded* is written.

    Derived only from the inputs so reruns overwrite the same file.
    """
    directory = cfg.INTERMEDIATE_DIR if cfg.INTERMEDIATE_DIR is not None else encoded.parent
    return directory / f"{encoded.stem}_upscaled_{resolution}.{cfg.UPSCALE_CONTAINER}"


def _expect(stage: str, value: Optional[MetricResult], kind: type[T]) -> T:
    if not isinstance(value, kind):
        raise LogFormatError(f"{stage} stage produced no {kind.__name__}, got {value!r}")
    return value


class Pipeline:
    """Sequences probe, upscale and the metric stages for one run.

    Stages run strictly one after another. The first ``Failed`` stage stops
    the run and its error is raised; nothing is retried or cleaned up.
    """

    def __init__(
        self,
        invoker: Invoker,
        cfg: Optional[Settings] = None,
        reporter: Optional[Reporter] = None,
    ) -> None:
        self.invoker = invoker
        self.cfg = cfg or Settings()
        self.reporter = reporter or ConsoleReporter()

    async def run(self, config: RunConfig, cancel: Optional[asyncio.Event] = None) -> PipelineResult:
        result = PipelineResult()
        reference = config.base
        distorted = config.encoded

        if config.vmaf_log is None and config.psnr_log is None:
            logger.warning("Neither --vmaf_log nor --psnr_log given; no metric will be computed.")

        if config.mode == "upscale":
            resolution = _expect(
                "probe", await self._stage("probe", Probe(config.base), result, cancel), Resolution,
            )
            result.resolution = resolution
            logger.info("Base resolution is %s", resolution)

            upscaled = intermediate_path(config.encoded, resolution, self.cfg)
            upscaled.parent.mkdir(parents=True, exist_ok=True)
            await self._stage(
                "upscale",
                Upscale(config.encoded, resolution.width, resolution.height, upscaled),
                result, cancel,
            )
            result.upscaled = upscaled
            distorted = upscaled

        if config.psnr_log is not None:
            outcome = await self._stage(
                "psnr", ComputePSNR(reference, distorted, config.psnr_log), result, cancel,
            )
            psnr = _expect("psnr", outcome, PsnrResult)
            result.psnr = psnr
            self.reporter.on_score("psnr", psnr.psnr)

        if config.vmaf_log is not None:
            outcome = await self._stage(
                "vmaf", ComputeVMAF(reference, distorted, config.vmaf_log), result, cancel,
            )
            vmaf = _expect("vmaf", outcome, VmafResult)
            result.vmaf = vmaf
            self.reporter.on_score("vmaf", vmaf.vmaf)
            if vmaf.psnr is not None and config.psnr_log is None:
                self.reporter.on_score("psnr", vmaf.psnr)

        return result

    async def _stage(
        self,
        name: str,
        op: MetricOperation,
        result: PipelineResult,
        cancel: Optional[asyncio.Event],
    ) -> Optional[MetricResult]:
        if cancel is not None and cancel.is_set():
            raise PipelineCancelled(f"cancelled before {name}")

        logger.debug("Stage %s: %s", name, op)
        result.stages.append(name)
        outcome = await self.invoker.run(
            op, on_event=lambda event: self.reporter.on_event(name, event), cancel=cancel,
        )
        if isinstance(outcome, Failed):
            raise outcome.error
        return outcome.result


def run_comparison(
    config: RunConfig,
    cfg: Settings,
    reporter: Optional[Reporter] = None,
) -> PipelineResult:
    """Blocking entry point: run the whole pipeline on a fresh event loop."""
    from .engine.invoker import EngineInvoker

    invoker = EngineInvoker(cfg, report_progress=config.verbose)
    pipeline = Pipeline(invoker, cfg, reporter or ConsoleReporter(verbose=config.verbose))
    return asyncio.run(pipeline.run(config))
