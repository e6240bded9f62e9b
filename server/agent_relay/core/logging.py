from __future__ import annotations

import logging
import logging.config
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

from agent_relay.core.context import get_request_id, get_user_id

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s %(user_id)s"


class RelayContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id() or "-"
        record.user_id = get_user_id() or "-"
        return True


def _build_logging_config(level: str = "INFO") -> Dict[str, Any]:
    handler_names = ["default"]
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "relay_context": {
                "()": RelayContextFilter,
            }
        },
        "formatters": {
            "json": {
                "()": jsonlogger.JsonFormatter,
                "fmt": LOG_FORMAT,
                "datefmt": "%Y-%m-%dT%H:%M:%S%z",
            },
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "json",
                "filters": ["relay_context"],
            }
        },
        "loggers": {
            name: {"handlers": handler_names, "level": level, "propagate": False}
            for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "agent_relay")
        },
        "root": {"handlers": handler_names, "level": level},
    }


def configure_logging(level: str = "INFO") -> None:
    logging.config.dictConfig(_build_logging_config(level))
