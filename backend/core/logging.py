from __future__ import annotations

import json
import logging
import logging.config
from datetime import datetime, timezone
from pathlib import Path

# Attributes passed through ``extra=`` that are worth keeping in structured output.
CONTEXT_FIELDS = (
    "identity",
    "cache_status",
    "method",
    "path",
    "status_code",
    "duration_ms",
    "client_host",
    "token_provided",
)

QUIET_LOGGERS = {
    # Request logging middleware already records every request.
    "uvicorn.access": "WARNING",
    # One INFO line per job run otherwise.
    "apscheduler": "WARNING",
    "aiohttp.access": "WARNING",
}


class JsonFormatter(logging.Formatter):
    """One JSON object per record, with request/cache context when present."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                payload[field] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


_configured = False


def configure_logging(settings=None) -> None:
    """Console plus rotating JSON file; applied once per process."""

    global _configured
    if _configured:
        return

    if settings is None:
        from backend.core.settings import get_settings

        settings = get_settings()

    level = settings.log_level or "INFO"
    log_file = Path(settings.log_file)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "standard": {"format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s"},
                "json": {"()": "backend.core.logging.JsonFormatter"},
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "level": level,
                    "formatter": "json" if settings.log_json else "standard",
                },
                "file": {
                    "class": "logging.handlers.RotatingFileHandler",
                    "level": level,
                    "formatter": "json",
                    "filename": str(log_file),
                    "maxBytes": 5 * 1024 * 1024,
                    "backupCount": 5,
                    "encoding": "utf-8",
                },
            },
            "root": {"level": level, "handlers": ["console", "file"]},
            "loggers": {name: {"level": lvl} for name, lvl in QUIET_LOGGERS.items()},
        }
    )
    logging.captureWarnings(True)
    _configured = True


__all__ = ["CONTEXT_FIELDS", "JsonFormatter", "configure_logging"]
