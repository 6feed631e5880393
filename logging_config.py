"""
Centralized logging configuration for CertQuoteWeb.

Every quote job runs in its own thread and fans out per-file OCR and
analysis calls to a worker pool, so log lines carry the thread name to
tell concurrent quotes apart.

Features:
    - Thread name in every record
    - Console output (always enabled)
    - Rotating file logs plus a separate error log (optional, production)
    - Namespaced loggers under "cert_quote_web"
    - Vendor SDK loggers (httpx, urllib3, stripe) held at WARNING

Log Format:
    2026-03-02 10:15:30 [INFO    ] [MainThread] cert_quote_web.app - Application ready
    2026-03-02 10:15:31 [INFO    ] [Job-a1b2c3d4] cert_quote_web.job.a1b2c3d4 - Processing 2 file(s)
    2026-03-02 10:15:33 [INFO    ] [FileWorker_0] cert_quote_web.modules.ocr - Vision OCR: 3 page(s)

Usage:
    from logging_config import setup_logging, get_logger

    setup_logging(log_level=logging.INFO, enable_file_logging=True)
    logger = get_logger(__name__)
"""

import logging
import sys
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterable, Optional

APP_LOGGER_NAME = "cert_quote_web"

# Third-party loggers that are chatty at INFO (request lines, retries)
NOISY_VENDOR_LOGGERS = ("httpx", "httpcore", "urllib3", "stripe", "google_genai", "hpack")


# =============================================================================
# THREAD CONTEXT FILTER
# =============================================================================

class ThreadContextFilter(logging.Filter):
    """
    Adds ``thread_name`` and ``thread_id`` to each record.

    The format string references ``%(thread_name)s``; records that never
    pass through this filter would fail to format, so every handler we
    create gets one.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        current = threading.current_thread()
        record.thread_name = current.name
        record.thread_id = threading.get_ident()
        return True


# =============================================================================
# LOGGING SETUP
# =============================================================================

def _rotating_handler(path: Path, level: int, formatter: logging.Formatter,
                      thread_filter: logging.Filter) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        filename=path,
        maxBytes=10 * 1024 * 1024,  # 10 MB per file
        backupCount=5,
        encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(thread_filter)
    return handler


def setup_logging(
    app_name: str = APP_LOGGER_NAME,
    log_level: int = logging.INFO,
    log_dir: Optional[Path] = None,
    enable_file_logging: bool = True,
    quiet_loggers: Iterable[str] = NOISY_VENDOR_LOGGERS,
) -> logging.Logger:
    """
    Configure application logging with thread context.

    Args:
        app_name: Name of the application logger (default: "cert_quote_web")
        log_level: Minimum log level (default: INFO)
        log_dir: Directory for log files (default: ./logs next to this file)
        enable_file_logging: Write rotating log files in addition to stdout
        quiet_loggers: Third-party logger names raised to WARNING

    Returns:
        The configured application logger
    """
    logger = logging.getLogger(app_name)
    logger.setLevel(log_level)
    logger.propagate = False

    # Allows re-configuration (tests build several apps per process)
    logger.handlers.clear()

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)-8s] [%(thread_name)s] %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    thread_filter = ThreadContextFilter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(thread_filter)
    logger.addHandler(console_handler)

    if enable_file_logging:
        if log_dir is None:
            log_dir = Path(__file__).parent / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)

        app_log_file = log_dir / f"{app_name}.log"
        logger.addHandler(_rotating_handler(app_log_file, log_level, formatter, thread_filter))
        logger.addHandler(_rotating_handler(
            log_dir / f"{app_name}_error.log", logging.ERROR, formatter, thread_filter
        ))
        logger.info(f"File logging enabled: {app_log_file}")

    for name in quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info(f"Logging configured at level {logging.getLevelName(log_level)}")
    return logger


# =============================================================================
# LOGGER FACTORY FUNCTIONS
# =============================================================================

def get_logger(name: str) -> logging.Logger:
    """
    Get a child logger under the application namespace.

    Example:
        logger = get_logger("modules.ocr")
        # Logger name: "cert_quote_web.modules.ocr"
    """
    if not name.startswith(APP_LOGGER_NAME):
        name = f"{APP_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def get_job_logger(job_id: str) -> logging.Logger:
    """
    Get a logger for one quote job, named by the first 8 chars of its id.

    Example:
        get_job_logger("a1b2c3d4-e5f6-...")  # "cert_quote_web.job.a1b2c3d4"
    """
    return logging.getLogger(f"{APP_LOGGER_NAME}.job.{job_id[:8]}")


def set_thread_name(name: str) -> None:
    """Rename the current thread; the name shows up in the [thread_name] field."""
    threading.current_thread().name = name
