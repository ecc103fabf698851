from __future__ import annotations
import json
from pathlib import Path
from typing import Any, Mapping


def write_json(path: Path, data: Mapping[str, Any]) -> Path:
    """Write *data* as indented JSON, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    return path
