from __future__ import annotations

import json
import logging
import traceback
from datetime import datetime, timezone
from pathlib import Path

LOGGER_NAME = "vmaf_compare"

_STANDARD_LOG_ATTRS = frozenset({
    "name", "msg", "args", "created", "relativeCreated", "exc_info", "exc_text",
    "stack_info", "lineno", "funcName", "levelno", "levelname", "pathname",
    "filename", "module", "thread", "threadName", "process", "processName",
    "message", "msecs", "taskName",
})


class JsonLineFormatter(logging.Formatter):
    """Formats log records as one-JSON-object-per-line."""

    def format(self, record: logging.LogRecord) -> str:
        extra = {
            k: v for k, v in record.__dict__.items()
            if k not in _STANDARD_LOG_ATTRS and not k.startswith("_")
        }
        obj: dict = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "module": record.module,
            "extra": extra,
        }
        if record.exc_info and record.exc_info[0] is not None:
            obj["traceback"] = traceback.format_exception(*record.exc_info)
        return json.dumps(obj, default=str)


def setup_file_handler(logger: logging.Logger, log_path: Path) -> None:
    """Add a JSON-lines file handler writing to *log_path* at DEBUG level.

    Idempotent: checks for existing handler before adding.
    """
    log_path.parent.mkdir(parents=True, exist_ok=True)

    for h in logger.handlers:
        if isinstance(h, logging.FileHandler) and h.baseFilename == str(log_path.resolve()):
            return

    fh = logging.FileHandler(str(log_path), encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(JsonLineFormatter())
    logger.addHandler(fh)


def setup_cli_logging(*, verbose: bool = False) -> None:
    """Attach a RichHandler to the ``vmaf_compare`` logger.

    Called from CLI entry-points only. INFO by default, DEBUG with *verbose*
    (which is also where engine invocations are shown).
    """
    from rich.console import Console
    from rich.logging import RichHandler

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    # Avoid duplicate Rich handlers on repeated calls
    for h in logger.handlers:
        if isinstance(h, RichHandler):
            h.setLevel(logging.DEBUG if verbose else logging.INFO)
            return

    handler = RichHandler(
        console=Console(stderr=True), rich_tracebacks=True, markup=True, show_path=False,
    )
    handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
