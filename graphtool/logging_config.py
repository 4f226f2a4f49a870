"""
Logging configuration for graphtool.
Human-readable text on stderr by default; JSON lines for log shippers.
Optional rotating file handler when a logs directory is configured.
"""

import json
import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone

_RESERVED = set(vars(logging.makeLogRecord({})))


class JsonFormatter(logging.Formatter):
    """Structured JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in _RESERVED and key not in log:
                log[key] = value
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, default=str)


def setup_logging(
    log_level: str = "INFO",
    *,
    verbose: bool = False,
    json_logs: bool = False,
    logs_dir: str = "",
) -> None:
    """Configure root logger with appropriate format and handlers. --verbose forces DEBUG."""
    level = logging.DEBUG if verbose else getattr(logging, log_level.upper(), logging.INFO)

    handlers: list[logging.Handler] = []

    # stdout carries command output, so logs go to stderr
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    if json_logs:
        console.setFormatter(JsonFormatter())
    else:
        console.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%H:%M:%S",
            )
        )
    handlers.append(console)

    if logs_dir:
        os.makedirs(logs_dir, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            os.path.join(logs_dir, "graphtool.log"),
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        handlers.append(file_handler)

    logging.basicConfig(level=level, handlers=handlers, force=True)

    # Silence noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("azure").setLevel(logging.WARNING)
