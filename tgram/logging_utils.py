"""
tgram Logging Utilities.

Provides structured logging with:
- Colored console output
- Optional rotating JSON file handler (10MB max, keep 5)
- Request ID tracking so every log line for one update can be correlated

Usage:
    from tgram.logging_utils import setup_logger, log_api_call

    logger = setup_logger("tgram", log_dir="logs")
    log_api_call(logger, api="telegram", method="sendMessage", latency=0.5, success=True)
"""

import contextvars
import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional, Union

# Per-task request id (asyncio tasks copy the context they were created in)
_request_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "tgram_request_id", default=None
)

# ANSI color codes for console output
COLORS = {
    "DEBUG": "\033[36m",     # Cyan
    "INFO": "\033[32m",      # Green
    "WARNING": "\033[33m",   # Yellow
    "ERROR": "\033[31m",     # Red
    "CRITICAL": "\033[35m",  # Magenta
    "RESET": "\033[0m",
}

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


def set_request_id(request_id: Optional[str]) -> None:
    """Set the request ID for the current task context."""
    _request_id.set(request_id)


def get_request_id() -> Optional[str]:
    """Get the request ID of the current task context."""
    return _request_id.get()


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured log output.

    Produces one JSON object per line.
    """

    def __init__(self, app_name: str):
        super().__init__()
        self.app_name = app_name

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "app": self.app_name,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = get_request_id()
        if request_id:
            log_entry["request_id"] = request_id

        if hasattr(record, "extra_data"):
            log_entry.update(record.extra_data)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry)


class ColoredFormatter(logging.Formatter):
    """Console formatter that colors the level name."""

    FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    def __init__(self):
        super().__init__(self.FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        color = COLORS.get(record.levelname, COLORS["RESET"])
        reset = COLORS["RESET"]

        original_levelname = record.levelname
        record.levelname = f"{color}{record.levelname}{reset}"
        request_id = get_request_id()
        original_msg = record.msg
        if request_id:
            record.msg = f"[{request_id}] {record.msg}"

        try:
            return super().format(record)
        finally:
            record.levelname = original_levelname
            record.msg = original_msg


def _resolve_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logger(
    name: str = "tgram",
    level: Union[int, str] = logging.INFO,
    log_dir: Optional[Union[str, Path]] = None,
) -> logging.Logger:
    """
    Configure the `name` logger with console and optional file output.

    Calling it again replaces the handlers it installed, so level and
    destination can be changed at runtime.

    Args:
        name: Logger name; "tgram" configures the whole package
        level: Logging level (int or name such as "DEBUG")
        log_dir: Directory for a rotating JSON log file; None disables it

    Returns:
        The configured logger
    """
    log_level = _resolve_level(level)
    logger = logging.getLogger(name)
    logger.setLevel(log_level)
    logger.propagate = False

    for handler in logger.handlers[:]:
        if getattr(handler, "_tgram_handler", False):
            handler.close()
            logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(ColoredFormatter())
    console_handler._tgram_handler = True
    logger.addHandler(console_handler)

    if log_dir:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path / f"{name}.log",
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUPS,
            encoding="utf-8",
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(JSONFormatter(name))
        file_handler._tgram_handler = True
        logger.addHandler(file_handler)

    return logger


def log_api_call(
    logger: logging.Logger,
    api: str,
    method: str,
    latency: float,
    success: bool,
    error: Optional[str] = None,
) -> None:
    """
    Log an API call with structured data.

    Successful calls are logged at DEBUG (polling is chatty), failures at
    WARNING.
    """
    extra_data: Dict[str, Any] = {
        "log_type": "api_call",
        "api": api,
        "method": method,
        "latency_seconds": round(latency, 4),
        "success": success,
    }
    if error:
        extra_data["error"] = error

    level = logging.DEBUG if success else logging.WARNING
    message = f"API call: {api}.{method} ({'OK' if success else 'FAILED'}) in {latency:.3f}s"
    if error:
        message += f" - {error}"

    logger.log(level, message, extra={"extra_data": extra_data})
