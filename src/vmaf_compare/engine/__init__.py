from __future__ import annotations

from .commands import build_command
from .invoker import EngineInvoker, ProgressTracker

__all__ = ["build_command", "EngineInvoker", "ProgressTracker"]
