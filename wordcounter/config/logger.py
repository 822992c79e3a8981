"""
Logger configuration for WordCounter using Loguru.

One console sink plus, when LOG_TO_FILE is on, rotating file sinks:
- app.log: everything from DEBUG up
- errors.log: ERROR and above with backtraces
- requests.log: HTTP middleware lines
- reconciliation.log: progress lines from count/purge tasks
- performance.log: batch and recomputation timings
"""

import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from fastapi import Request
from loguru import logger

from wordcounter.config.settings import settings

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
SOURCE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"
MESSAGE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {message}"
TASK_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[task]} | {message}"


@dataclass(frozen=True)
class FileSink:
    filename: str
    level: str
    rotation: str
    retention: str
    format: str = SOURCE_FORMAT
    filter: Optional[Callable[[dict], bool]] = None
    backtrace: bool = False


FILE_SINKS = (
    FileSink("app.log", "DEBUG", "10 MB", "7 days"),
    FileSink("errors.log", "ERROR", "5 MB", "30 days", backtrace=True),
    FileSink(
        "requests.log",
        "INFO",
        "20 MB",
        "14 days",
        format=MESSAGE_FORMAT,
        filter=lambda record: record["message"].startswith("REQUEST"),
    ),
    FileSink(
        "reconciliation.log",
        "INFO",
        "20 MB",
        "30 days",
        format=TASK_FORMAT,
        filter=lambda record: "task" in record["extra"],
    ),
    FileSink(
        "performance.log",
        "INFO",
        "10 MB",
        "7 days",
        format=MESSAGE_FORMAT,
        filter=lambda record: record["message"].startswith("PERFORMANCE"),
    ),
)


class LoguruConfig:
    """Loguru configuration for the API, background jobs and CLI."""

    def __init__(self, app_name: str = "wordcounter", logs_dir: str = "logs"):
        self.app_name = app_name
        self.logs_dir = Path(logs_dir)

    def setup_logger(self, log_level: str = "INFO", log_to_file: bool = True) -> None:
        logger.remove()

        # stderr keeps CLI progress output on stdout clean
        logger.add(
            sys.stderr,
            format=CONSOLE_FORMAT,
            level=log_level,
            colorize=True,
            backtrace=True,
            diagnose=False,
        )

        if not log_to_file:
            return

        self.logs_dir.mkdir(parents=True, exist_ok=True)
        for sink in FILE_SINKS:
            logger.add(
                self.logs_dir / sink.filename,
                format=sink.format,
                level=sink.level,
                rotation=sink.rotation,
                retention=sink.retention,
                compression="zip",
                encoding="utf-8",
                filter=sink.filter,
                backtrace=sink.backtrace,
                enqueue=True,
            )


def log_request_start(request: Request) -> None:
    logger.bind(
        query_params=str(request.query_params),
        client_ip=request.client.host if request.client else None,
        timestamp=datetime.now().isoformat(),
    ).info(
        "REQUEST START: {method} {path}",
        method=request.method,
        path=request.url.path,
    )


def log_request_end(request: Request, status_code: int, process_time: float) -> None:
    logger.info(
        "REQUEST END: {method} {path} - {status_code} ({process_time:.4f}s)",
        method=request.method,
        path=request.url.path,
        status_code=status_code,
        process_time=round(process_time, 4),
    )


def log_request_error(request: Request, error: Exception, process_time: float) -> None:
    logger.bind(error_type=type(error).__name__).error(
        "REQUEST ERROR: {method} {path} - {error} ({process_time:.4f}s)",
        method=request.method,
        path=request.url.path,
        error=str(error),
        process_time=round(process_time, 4),
    )


def log_performance(operation: str, duration: float, **kwargs) -> None:
    """Record how long an operation took; extra keyword arguments are bound to the record."""
    logger.bind(**kwargs).info(
        "PERFORMANCE: {operation} completed in {duration:.4f}s",
        operation=operation,
        duration=duration,
    )


loguru_config = LoguruConfig(logs_dir=settings.LOG_DIR)
loguru_config.setup_logger(log_level=settings.LOG_LEVEL, log_to_file=settings.LOG_TO_FILE)

app_logger = logger
