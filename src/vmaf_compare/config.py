from __future__ import annotations
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import yaml  # type: ignore[import-untyped]
from pathlib import Path
from typing import Optional

from .exceptions import ConfigError
from .models import PIPELINE_MODES, RunConfig

# Resampling algorithms understood by ffmpeg's scale filter (``flags=``)
SWS_SCALERS = frozenset({
    "fast_bilinear", "bilinear", "bicubic", "experimental", "neighbor",
    "area", "bicublin", "gauss", "sinc", "lanczos", "spline",
})


class Settings(BaseSettings):
    model_config = SettingsConfigDict(extra="ignore", env_prefix="VMAF_COMPARE_")

    # Engine executables
    FFMPEG_BIN: str = "ffmpeg"
    FFPROBE_BIN: str = "ffprobe"

    # libvmaf
    VMAF_MODEL: Optional[str] = None        # e.g. "version=vmaf_v0.6.1" or "path=/models/x.json"
    VMAF_COMPUTE_PSNR: bool = True
    VMAF_THREADS: int = 0                   # 0 → engine default

    # Upscale stage
    UPSCALE_SCALER: str = "lanczos"
    UPSCALE_PIX_FMT: str = "yuv420p"
    UPSCALE_FRAME_RATE: Optional[str] = None  # keep the source rate when unset
    UPSCALE_CODEC: str = "libx264"
    UPSCALE_CODEC_ARGS: list[str] = ["-crf", "0", "-preset", "ultrafast"]
    UPSCALE_CONTAINER: str = "mkv"
    INTERMEDIATE_DIR: Optional[Path] = None

    # Process supervision
    KILL_GRACE_S: float = 5.0

    @field_validator("UPSCALE_SCALER")
    @classmethod
    def _validate_scaler(cls, v: str) -> str:
        if v not in SWS_SCALERS:
            raise ValueError(
                f"UPSCALE_SCALER must be one of {sorted(SWS_SCALERS)}, got {v!r}"
            )
        return v

    @field_validator("VMAF_THREADS")
    @classmethod
    def _validate_threads(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"VMAF_THREADS must be >= 0, got {v}")
        return v

    @field_validator("UPSCALE_CONTAINER")
    @classmethod
    def _validate_container(cls, v: str) -> str:
        v = v.lstrip(".")
        if not v:
            raise ValueError("UPSCALE_CONTAINER must not be empty")
        return v

    @field_validator("KILL_GRACE_S")
    @classmethod
    def _validate_grace(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"KILL_GRACE_S must be > 0, got {v}")
        return v


def load_settings(config_path: str | Path | None) -> Settings:
    if config_path is None:
        return Settings()
    p = Path(config_path)
    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML in {p}: {exc}", flag="--config") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"expected a mapping in {p}", flag="--config")
    return Settings(**data)


def build_run_config(
    base: str | Path | None,
    encoded: str | Path | None,
    *,
    verbose: bool = False,
    vmaf_log: str | Path | None = None,
    psnr_log: str | Path | None = None,
    mode: str = "upscale",
) -> RunConfig:
    """Validate raw flag values and freeze them into a :class:`RunConfig`.

    Only shape is checked here; whether the files exist is left to the engine.
    """
    if base is None or not str(base).strip():
        raise ConfigError("a base video path is required", flag="--base")
    if encoded is None or not str(encoded).strip():
        raise ConfigError("an encoded video path is required", flag="--encoded")
    if vmaf_log is not None and not str(vmaf_log).strip():
        raise ConfigError("log path must not be empty", flag="--vmaf_log")
    if psnr_log is not None and not str(psnr_log).strip():
        raise ConfigError("log path must not be empty", flag="--psnr_log")
    if mode not in PIPELINE_MODES:
        raise ConfigError(f"must be one of {', '.join(PIPELINE_MODES)}, got {mode!r}", flag="--mode")

    return RunConfig(
        base=Path(base),
        encoded=Path(encoded),
        verbose=verbose,
        vmaf_log=Path(vmaf_log) if vmaf_log is not None else None,
        psnr_log=Path(psnr_log) if psnr_log is not None else None,
        mode=mode,
    )
