"""
Logging configuration shared by the API server and the CLI.

Access lines for the liveness/readiness probes are dropped; everything else
goes to stdout.
"""

import logging
import logging.config
import re
from typing import Any, Dict

PROBE_REQUEST = re.compile(r'"GET (/healthz|/health|/api/auth/health)[ ?]')


class HealthCheckFilter(logging.Filter):
    """Suppress uvicorn access lines for the health probes."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name != "uvicorn.access":
            return True
        return not PROBE_REQUEST.search(record.getMessage())


def _stdout_handler(formatter: str, **extra: Any) -> Dict[str, Any]:
    return {"class": "logging.StreamHandler", "formatter": formatter, "stream": "ext://sys.stdout", **extra}


def _logger(handler: str, level: str) -> Dict[str, Any]:
    return {"handlers": [handler], "level": level, "propagate": False}


def get_logging_config(level: str = "INFO") -> Dict[str, Any]:
    """dictConfig for uvicorn and the vetora loggers at the given level."""
    level = level.upper()
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"health_check_filter": {"()": HealthCheckFilter}},
        "formatters": {
            "default": {"format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"},
            "access": {"format": "%(message)s"},
        },
        "handlers": {
            "default": _stdout_handler("default"),
            "access": _stdout_handler("access", filters=["health_check_filter"]),
        },
        "loggers": {
            "uvicorn": _logger("default", "INFO"),
            "uvicorn.error": _logger("default", "INFO"),
            "uvicorn.access": _logger("access", "INFO"),
            "vetora": _logger("default", level),
        },
        "root": {"level": level, "handlers": ["default"]},
    }


def configure_logging(level: str = "INFO") -> None:
    """Apply the logging configuration."""
    logging.config.dictConfig(get_logging_config(level))
