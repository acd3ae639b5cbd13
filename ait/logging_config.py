"""Logging configuration for the benchmark CLI and the per-run request log."""

from __future__ import annotations

from datetime import datetime
import itertools
import json
import logging
from pathlib import Path

REQUEST_LOGGER_NAME = "ait.requests"

_logger_ids = itertools.count(1)


def configure_logging(level: str) -> None:
    """Configure application-wide logging with a consistent format."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )


class JsonLineFormatter(logging.Formatter):
    """Render each record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created).strftime(
                "%Y-%m-%d %H:%M:%S.%f"
            )[:-3],
            "level": getattr(record, "event", record.levelname),
            "model": getattr(record, "model", None),
            "run_id": getattr(record, "run_id", None),
            "message": record.getMessage(),
            "details": getattr(record, "details", None),
        }
        return json.dumps(
            {key: value for key, value in entry.items() if value is not None},
            ensure_ascii=False,
            default=str,
        )


def request_log_path(directory: str | Path = ".") -> Path:
    """Return a timestamped log file path such as ait-25-01-31-12-00-00.log."""
    timestamp = datetime.now().strftime("%y-%m-%d-%H-%M-%S")
    return Path(directory) / f"ait-{timestamp}.log"


def create_request_logger(
    enabled: bool, directory: str | Path = "."
) -> logging.Logger | None:
    """Build the verbose request/response logger, or None when disabled.

    The logger does not propagate so request bodies never reach the console.
    """
    if not enabled:
        return None

    path = request_log_path(directory)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(JsonLineFormatter())

    request_logger = logging.getLogger(
        f"{REQUEST_LOGGER_NAME}.{path.stem}.{next(_logger_ids)}"
    )
    request_logger.setLevel(logging.DEBUG)
    request_logger.propagate = False
    request_logger.addHandler(handler)
    return request_logger


def close_request_logger(request_logger: logging.Logger | None) -> None:
    """Flush and detach the file handlers of a request logger."""
    if request_logger is None:
        return
    for handler in list(request_logger.handlers):
        handler.close()
        request_logger.removeHandler(handler)
