"""Logging setup for the evaluation pipeline.

Plain text for local runs, one JSON object per line when LOG_JSON is set.
Pipeline code attaches context through ``extra=`` (provider, kind, cache_key);
the JSON formatter lifts those fields to the top level of each line.
"""

import json
import logging
import sys
from datetime import datetime, timezone

from interview_eval.core.config import Settings, settings

CONTEXT_FIELDS = ("provider", "kind", "cache_key")

_TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_NOISY_LOGGERS = ("httpx", "httpcore", "redis", "sentry_sdk")


class JSONFormatter(logging.Formatter):
    """Structured JSON log formatter for production."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                log_data[name] = value
        if record.exc_info and record.exc_info[1]:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, ensure_ascii=False, default=str)


def _level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(s: Settings | None = None) -> None:
    """Install a single stdout handler on the root logger."""
    s = s or settings
    level = _level(s.log_level)

    handler = logging.StreamHandler(sys.stdout)
    if s.log_json:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    root = logging.getLogger()
    root.handlers[:] = [handler]  # repeated calls replace, never stack
    root.setLevel(level)

    # HTTP and Redis clients stay at WARNING even when the pipeline runs at DEBUG
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
