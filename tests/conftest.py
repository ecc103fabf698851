from __future__ import annotations

import json
import stat
import sys
from dataclasses import dataclass
from pathlib import Path

import pytest

from vmaf_compare.config import Settings

# Stand-ins for ffmpeg/ffprobe. Behaviour is steered through FAKE_* env vars
# and every call is appended to $FAKE_ENGINE_CALLS as a JSON line.
_FAKE_FFMPEG = r'''
import json, os, re, sys, time

argv = sys.argv[1:]
with open(os.environ["FAKE_ENGINE_CALLS"], "a", encoding="utf-8") as f:
    f.write(json.dumps({"tool": "ffmpeg", "argv": argv}) + "\n")

err = sys.stderr
err.write("ffmpeg version fake\n")
err.write("Input #0, matroska,webm, from 'x':\n")
err.write("  Duration: 00:00:10.00, start: 0.000000, bitrate: 1000 kb/s\n")
err.flush()

sleep = float(os.environ.get("FAKE_FFMPEG_SLEEP", "0"))
if sleep:
    time.sleep(sleep)

for t in ("00:00:02.50", "00:00:05.00", "00:00:10.00"):
    err.write("frame=  100 fps=0.0 q=-0.0 size=N/A time=%s bitrate=N/A speed=5x\r" % t)
    err.flush()
err.write("\n")

code = int(os.environ.get("FAKE_FFMPEG_EXIT", "0"))
if code:
    err.write("Error while filtering: Invalid argument\n")
    sys.exit(code)

graph = argv[argv.index("-lavfi") + 1] if "-lavfi" in argv else ""
if "libvmaf" in graph:
    log_path = re.search(r"log_path=([^:]+)", graph).group(1)
    frames = json.loads(os.environ.get("FAKE_VMAF_FRAMES", "[]"))
    with open(log_path, "w", encoding="utf-8") as f:
        json.dump({"frames": [{"frameNum": i, "metrics": m} for i, m in enumerate(frames)]}, f)
    err.write("[Parsed_libvmaf_0 @ 0x1] VMAF score: 90.000000\n")
elif "psnr" in graph:
    stats = re.search(r"stats_file=([^:]+)", graph).group(1)
    with open(stats, "w", encoding="utf-8") as f:
        f.write("n:1 mse_avg:1.00 mse_y:1.00 psnr_avg:48.13 psnr_y:48.13\n")
    err.write(os.environ.get(
        "FAKE_PSNR_LINE",
        "[Parsed_psnr_0 @ 0x1] PSNR y:42.17 u:44.01 v:44.83 average:42.80 min:38.10 max:51.20",
    ) + "\n")
elif "-vf" in argv:
    with open(argv[-1], "wb") as f:
        f.write(b"upscaled")
'''

_FAKE_FFPROBE = r'''
import json, os, sys

with open(os.environ["FAKE_ENGINE_CALLS"], "a", encoding="utf-8") as f:
    f.write(json.dumps({"tool": "ffprobe", "argv": sys.argv[1:]}) + "\n")
code = int(os.environ.get("FAKE_FFPROBE_EXIT", "0"))
if code:
    sys.stderr.write("x.mp4: No such file or directory\n")
    sys.exit(code)
sys.stdout.write(os.environ.get("FAKE_PROBE_JSON", '{"streams": [{"width": 1920, "height": 1080}]}'))
'''


@dataclass
class FakeEngine:
    settings: Settings
    calls_path: Path

    def calls(self) -> list[dict]:
        if not self.calls_path.exists():
            return []
        return [json.loads(line) for line in self.calls_path.read_text(encoding="utf-8").splitlines()]


def _write_script(path: Path, body: str) -> Path:
    path.write_text(f"#!{sys.executable}\n{body}", encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def fake_engine(tmp_path, monkeypatch) -> FakeEngine:
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    ffmpeg = _write_script(bin_dir / "ffmpeg", _FAKE_FFMPEG)
    ffprobe = _write_script(bin_dir / "ffprobe", _FAKE_FFPROBE)
    calls_path = tmp_path / "calls.jsonl"
    monkeypatch.setenv("FAKE_ENGINE_CALLS", str(calls_path))
    settings = Settings(FFMPEG_BIN=str(ffmpeg), FFPROBE_BIN=str(ffprobe), KILL_GRACE_S=2.0)
    return FakeEngine(settings=settings, calls_path=calls_path)


def write_vmaf_log(path: Path, values: list[float], **extra_metrics: list[float]) -> Path:
    frames = []
    for i, v in enumerate(values):
        metrics = {"vmaf": v}
        for name, series in extra_metrics.items():
            metrics[name] = series[i]
        frames.append({"frameNum": i, "metrics": metrics})
    path.write_text(json.dumps({"version": "2.3.1", "frames": frames}), encoding="utf-8")
    return path
