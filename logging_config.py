import logging
import logging.config
from typing import Any

from pythonjsonlogger.json import JsonFormatter

from settings import settings

JSON_FORMAT = (
    "%(module)s %(asctime)s %(levelname)s %(thread)d %(processName)s %(taskName)s %(name)s "
    "%(funcName)s %(filename)s %(lineno)d %(message)s"
)
PLAIN_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Chatty at INFO; their warnings are still worth seeing.
QUIET_LOGGERS = ("aiohttp.access", "asyncio", "python_multipart", "sqlalchemy.engine", "urllib3")


class CustomJsonFormatter(JsonFormatter):
    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self._pretty = settings.environment.is_local and settings.logging.use_pretty_json
        if self._pretty:
            self.json_indent = 2

    def format(self, record: logging.LogRecord) -> str:
        result = super().format(record)
        if self._pretty:
            # Unfold tracebacks so they read like the plain formatter's
            result = result.replace("\\n", "\n\t\t")
        return result


def build_logging_config(use_json: bool) -> dict[str, Any]:
    """dictConfig for the root logger: JSON lines for log shipping, plain text for a terminal."""
    if use_json:
        formatter: dict[str, Any] = {"format": JSON_FORMAT, "class": "logging_config.CustomJsonFormatter"}
    else:
        formatter = {"format": PLAIN_FORMAT}

    def logger(level: int | None = None) -> dict[str, Any]:
        config: dict[str, Any] = {"handlers": ["stdout"], "propagate": False}
        if level is not None:
            config["level"] = level
        return config

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": formatter},
        "handlers": {"stdout": {"formatter": "default", "class": "logging.StreamHandler", "stream": "ext://sys.stdout"}},
        "loggers": {
            "": logger(settings.logging.level),
            # uvicorn installs its own handlers; route them through ours so access lines are logged once
            "uvicorn": logger(),
            "uvicorn.access": logger(),
            **{name: logger(logging.WARNING) for name in QUIET_LOGGERS},
        },
    }


def setup_logging() -> None:
    logging.config.dictConfig(build_logging_config(use_json=settings.logging.use_config is True))
    logging.captureWarnings(True)
    logging.disable(logging.NOTSET)
