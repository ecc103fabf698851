from __future__ import annotations

import asyncio
import logging
import re
from typing import Callable, Optional, Union

from ..config import Settings
from ..exceptions import (
    EngineLaunchError,
    EngineRuntimeError,
    LogFormatError,
    PipelineCancelled,
)
from ..logparse import parse_probe_output, parse_psnr_text, parse_vmaf_log, vmaf_result_from_means
from ..models import (
    Completed,
    ComputePSNR,
    ComputeVMAF,
    EngineEvent,
    Failed,
    MetricOperation,
    MetricResult,
    Probe,
    Progress,
    PsnrResult,
    Started,
)
from .commands import build_command, format_invocation

logger = logging.getLogger(__name__)

EventCallback = Callable[[EngineEvent], None]
Outcome = Union[Completed, Failed]

_DURATION_RE = re.compile(r"Duration:\s*(\d+):(\d{2}):(\d{2}(?:\.\d+)?)")
_TIME_RE = re.compile(r"\btime=\s*(\d+):(\d{2}):(\d{2}(?:\.\d+)?)")
_LINE_SPLIT_RE = re.compile(rb"[\r\n]")
_STATS_PREFIXES = ("frame=", "size=")
_STDERR_TAIL_LINES = 10


def _seconds(hours: str, minutes: str, seconds: str) -> float:
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


class ProgressTracker:
    """Turns ffmpeg's ``Duration:``/``time=`` chatter into a rising percentage."""

    def __init__(self) -> None:
        self.duration: Optional[float] = None
        self.last: Optional[float] = None

    def feed(self, line: str) -> Optional[float]:
        """Return a new percentage if *line* advances progress, else None."""
        if self.duration is None:
            m = _DURATION_RE.search(line)
            if m:
                self.duration = _seconds(*m.groups())
            return None
        m = _TIME_RE.search(line)
        if not m or self.duration <= 0:
            return None
        percent = min(100.0, max(0.0, _seconds(*m.groups()) / self.duration * 100.0))
        if self.last is not None and percent <= self.last:
            return None
        self.last = percent
        return percent


class EngineInvoker:
    """Runs one engine process per operation and reports its lifecycle.

    ``run()`` always ends by emitting exactly one of ``Completed``/``Failed``
    and returns that same event.
    """

    def __init__(self, cfg: Settings, *, report_progress: bool = False) -> None:
        self.cfg = cfg
        self.report_progress = report_progress

    async def run(
        self,
        op: MetricOperation,
        on_event: Optional[EventCallback] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> Outcome:
        emit: EventCallback = on_event or (lambda event: None)
        argv = build_command(op, self.cfg)
        invocation = format_invocation(argv)

        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE if isinstance(op, Probe) else asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            error = EngineLaunchError(f"could not start {argv[0]}: {exc}", invocation=invocation)
            return self._finish(emit, Failed(str(error), error))

        logger.debug("Spawned engine (pid %s): %s", proc.pid, invocation)
        emit(Started(invocation))

        tracker = ProgressTracker() if self.report_progress and not isinstance(op, Probe) else None
        try:
            stdout, stderr, cancelled = await self._communicate(proc, emit, tracker, cancel)
        except asyncio.CancelledError:
            await self._terminate(proc)
            error = PipelineCancelled(f"interrupted: {invocation}")
            self._finish(emit, Failed(str(error), error))
            raise

        if cancelled:
            error = PipelineCancelled(f"cancelled: {invocation}")
            return self._finish(emit, Failed(str(error), error))

        if proc.returncode != 0:
            tail = "\n".join(stderr.splitlines()[-_STDERR_TAIL_LINES:])
            error = EngineRuntimeError(
                f"{argv[0]} exited with status {proc.returncode}\n{tail}".rstrip(),
                invocation=invocation,
                returncode=proc.returncode,
                stderr_tail=tail,
            )
            return self._finish(emit, Failed(str(error), error))

        try:
            result = self._interpret(op, stdout, stderr)
        except LogFormatError as error:
            return self._finish(emit, Failed(str(error), error))
        except (ValueError, TypeError, KeyError, OverflowError) as exc:
            error = LogFormatError(f"could not interpret engine output: {exc}")
            error.__cause__ = exc
            return self._finish(emit, Failed(str(error), error))

        if tracker is not None and tracker.last is not None and tracker.last < 100.0:
            emit(Progress(100.0))
        return self._finish(emit, Completed(result=result, output=stderr))

    async def _communicate(
        self,
        proc: asyncio.subprocess.Process,
        emit: EventCallback,
        tracker: Optional[ProgressTracker],
        cancel: Optional[asyncio.Event],
    ) -> tuple[str, str, bool]:
        if proc.stderr is None:
            raise EngineRuntimeError("engine stderr is not piped")
        readers = [self._read_stderr(proc.stderr, emit, tracker), proc.wait()]
        if proc.stdout is not None:
            readers.append(proc.stdout.read())
        io = asyncio.ensure_future(asyncio.gather(*readers))

        cancelled = False
        if cancel is not None:
            waiter = asyncio.ensure_future(cancel.wait())
            try:
                await asyncio.wait({io, waiter}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                if not waiter.done():
                    waiter.cancel()
            if not io.done():
                cancelled = True
                logger.warning("Cancellation requested, terminating engine (pid %s)", proc.pid)
                await self._terminate(proc)

        results = await io
        stderr_text = results[0]
        stdout_text = results[2].decode("utf-8", errors="replace") if len(results) > 2 else ""
        return stdout_text, stderr_text, cancelled

    async def _read_stderr(
        self,
        stream: asyncio.StreamReader,
        emit: EventCallback,
        tracker: Optional[ProgressTracker],
    ) -> str:
        # ffmpeg rewrites its stats line with bare carriage returns
        kept: list[str] = []
        pending = b""
        while True:
            chunk = await stream.read(4096)
            if not chunk:
                break
            *complete, pending = _LINE_SPLIT_RE.split(pending + chunk)
            for raw in complete:
                self._handle_line(raw, kept, emit, tracker)
        if pending:
            self._handle_line(pending, kept, emit, tracker)
        return "\n".join(kept)

    @staticmethod
    def _handle_line(
        raw: bytes,
        kept: list[str],
        emit: EventCallback,
        tracker: Optional[ProgressTracker],
    ) -> None:
        line = raw.decode("utf-8", errors="replace").strip()
        if not line:
            return
        if tracker is not None:
            percent = tracker.feed(line)
            if percent is not None:
                emit(Progress(percent))
        if not line.startswith(_STATS_PREFIXES):
            kept.append(line)

    async def _terminate(self, proc: asyncio.subprocess.Process) -> None:
        if proc.returncode is not None:
            return
        try:
            proc.terminate()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(proc.wait(), timeout=self.cfg.KILL_GRACE_S)
        except asyncio.TimeoutError:
            logger.warning("Engine (pid %s) ignored SIGTERM, killing", proc.pid)
            try:
                proc.kill()
            except ProcessLookupError:
                return
            await proc.wait()

    @staticmethod
    def _interpret(op: MetricOperation, stdout: str, stderr: str) -> Optional[MetricResult]:
        if isinstance(op, Probe):
            return parse_probe_output(stdout)
        if isinstance(op, ComputePSNR):
            return PsnrResult(psnr=parse_psnr_text(stderr))
        if isinstance(op, ComputeVMAF):
            return vmaf_result_from_means(parse_vmaf_log(op.log_path))
        return None

    @staticmethod
    def _finish(emit: EventCallback, event: Outcome) -> Outcome:
        if isinstance(event, Failed):
            logger.debug("Engine operation failed: %s", event.message)
        emit(event)
        return event
