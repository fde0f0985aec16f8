"""
Logging configuration for CFB Pick'em application
Provides structured logging with different levels and formatters
"""

import logging
import logging.handlers
import os
import threading
from contextlib import contextmanager
from logging import Filter

_job_state = threading.local()

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
PLAIN_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s [%(job)s]"
ERROR_FORMAT = (
    "%(asctime)s [%(levelname)s] %(name)s: %(message)s [%(pathname)s:%(lineno)d] [%(job)s]"
)
SCHEDULER_LOGGERS = (
    "cfb_pickem.services.scheduler_service",
    "cfb_pickem.services.settlement",
)


@contextmanager
def job_context(job_name):
    """Tag every record logged inside the block with the running job name"""
    previous = getattr(_job_state, "name", None)
    _job_state.name = job_name
    try:
        yield
    finally:
        _job_state.name = previous


class JobContextFilter(Filter):
    """Add scheduled job context to log records"""

    def filter(self, record):
        record.job = getattr(_job_state, "name", None) or "N/A"
        return True


class ColoredFormatter(logging.Formatter):
    """Colored formatter for console output"""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
        "RESET": "\033[0m",  # Reset
    }

    def format(self, record):
        log_color = self.COLORS.get(record.levelname, self.COLORS["RESET"])
        reset_color = self.COLORS["RESET"]

        # Color a copy so file handlers sharing the record stay plain
        original_levelname = record.levelname
        record.levelname = f"{log_color}{record.levelname}{reset_color}"
        try:
            return super().format(record)
        finally:
            record.levelname = original_levelname


def _rotating_handler(path, level, fmt, max_megabytes, backup_count=5):
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=max_megabytes * 1024 * 1024, backupCount=backup_count
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=DATE_FORMAT))
    handler.addFilter(JobContextFilter())
    return handler


def setup_logging(app):
    """
    Setup logging for the application and its background jobs

    Args:
        app: Flask application instance
    """

    # Determine log level from config
    log_level = getattr(logging, app.config.get("LOG_LEVEL", "INFO").upper())

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Clear existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # Console handler with colors (for development)
    if app.config.get("LOG_TO_CONSOLE", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_level)

        if app.debug:
            console_formatter = ColoredFormatter(
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s "
                "[%(job)s] [%(filename)s:%(lineno)d]",
                datefmt="%H:%M:%S",
            )
        else:
            console_formatter = logging.Formatter(PLAIN_FORMAT, datefmt=DATE_FORMAT)

        console_handler.setFormatter(console_formatter)
        console_handler.addFilter(JobContextFilter())
        root_logger.addHandler(console_handler)

    if app.config.get("LOG_TO_FILE", True):
        log_dir = app.config.get("LOG_DIR", "logs")
        os.makedirs(log_dir, exist_ok=True)

        root_logger.addHandler(
            _rotating_handler(os.path.join(log_dir, "cfb_pickem.log"), log_level, PLAIN_FORMAT, 10)
        )
        root_logger.addHandler(
            _rotating_handler(
                os.path.join(log_dir, "errors.log"), logging.ERROR, ERROR_FORMAT, 5, backup_count=3
            )
        )

        # Job runs and settlement also go to their own file
        scheduler_handler = _rotating_handler(
            os.path.join(log_dir, "scheduler.log"), logging.INFO, PLAIN_FORMAT, 5, backup_count=3
        )
        for name in SCHEDULER_LOGGERS:
            scheduler_logger = logging.getLogger(name)
            for handler in scheduler_logger.handlers[:]:
                scheduler_logger.removeHandler(handler)
            scheduler_logger.addHandler(scheduler_handler)

    # Configure third-party loggers
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)

    # Set APScheduler logging to WARNING to reduce verbosity (change to INFO for debugging)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)

    app.logger.info(f"Logging configured - Level: {logging.getLevelName(log_level)}")
