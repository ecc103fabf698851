from __future__ import annotations

from .io import write_json

__all__ = ["write_json"]
