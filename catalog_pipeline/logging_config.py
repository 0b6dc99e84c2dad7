"""Structured logging configuration (console + JSON log files)."""

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

from pythonjsonlogger import jsonlogger

from catalog_pipeline.config import settings

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
JSON_FORMAT = "%(timestamp)s %(level)s %(name)s %(message)s"

# Loggers that flood DEBUG output with transport detail
QUIET_LOGGERS = ("httpx", "httpcore", "openai", "asyncio", "apscheduler.executors")


class PipelineJsonFormatter(jsonlogger.JsonFormatter):
    """JSON lines with UTC timestamp, level, source location and site context."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z")
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["source"] = f"{record.filename}:{record.lineno}"
        if record.funcName:
            log_record["function"] = record.funcName
        site = getattr(record, "site", None)
        if site:
            log_record["site"] = site


def _file_handler(path: Path, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(base_dir: str | Path | None = None, level: str | None = None) -> logging.Logger:
    """Configure logging for the pipeline.

    Args:
        base_dir: Directory that receives the logs/ folder. Falls back to
                  settings.log_dir, then the working directory.
        level: Level name overriding settings.log_level.

    Returns:
        The configured root logger
    """
    logs_dir = Path(base_dir or settings.log_dir or Path.cwd()) / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, (level or settings.log_level).upper(), logging.INFO))
    root_logger.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    root_logger.addHandler(console)

    json_formatter = PipelineJsonFormatter(JSON_FORMAT)
    root_logger.addHandler(_file_handler(logs_dir / "app.log", logging.DEBUG, json_formatter))
    root_logger.addHandler(_file_handler(logs_dir / "error.log", logging.ERROR, json_formatter))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger


class LoggerAdapter(logging.LoggerAdapter):
    """Adapter that merges fixed context (e.g. site="stock") into every record."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger(name: str, **context) -> LoggerAdapter:
    """
    Get a logger carrying context fields.

    Args:
        name: Logger name (usually __name__)
        **context: Fields added to every record (e.g. site="detail")

    Returns:
        LoggerAdapter with context
    """
    return LoggerAdapter(logging.getLogger(name), context)
