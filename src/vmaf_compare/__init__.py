from __future__ import annotations

__version__ = "0.1.0"

from .config import Settings, build_run_config, load_settings
from .exceptions import (
    ConfigError,
    EngineError,
    EngineLaunchError,
    EngineRuntimeError,
    LogFormatError,
    PipelineCancelled,
    VmafCompareError,
)
from .logparse import parse_log, parse_psnr_text, parse_vmaf_log
from .models import PipelineResult, PsnrResult, Resolution, RunConfig, VmafResult
from .pipeline import Pipeline, run_comparison

__all__ = [
    "__version__",
    "Settings",
    "load_settings",
    "build_run_config",
    "Pipeline",
    "run_comparison",
    "parse_log",
    "parse_vmaf_log",
    "parse_psnr_text",
    "RunConfig",
    "PipelineResult",
    "Resolution",
    "PsnrResult",
    "VmafResult",
    "VmafCompareError",
    "ConfigError",
    "EngineError",
    "EngineLaunchError",
    "EngineRuntimeError",
    "LogFormatError",
    "PipelineCancelled",
]
