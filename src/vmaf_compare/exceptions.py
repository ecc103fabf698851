from __future__ import annotations


class VmafCompareError(Exception):
    """Base exception for vmaf-compare."""


class ConfigError(VmafCompareError):
    """Invalid or inconsistent configuration."""

    def __init__(self, message: str, *, flag: str | None = None) -> None:
        self.flag = flag
        self.message = message
        super().__init__(f"{flag}: {message}" if flag else message)


class EngineError(VmafCompareError):
    """The external engine could not do what was asked."""

    def __init__(self, message: str, *, invocation: str | None = None) -> None:
        self.invocation = invocation
        super().__init__(message)


class EngineLaunchError(EngineError):
    """The engine executable could not be started."""


class EngineRuntimeError(EngineError):
    """The engine started but exited with a failure status."""

    def __init__(
        self,
        message: str,
        *,
        invocation: str | None = None,
        returncode: int | None = None,
        stderr_tail: str = "",
    ) -> None:
        self.returncode = returncode
        self.stderr_tail = stderr_tail
        super().__init__(message, invocation=invocation)


class LogFormatError(VmafCompareError):
    """A result artifact is missing, malformed or empty."""


class PipelineCancelled(VmafCompareError):
    """The run was cancelled while an engine process was active."""
