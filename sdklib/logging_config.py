import logging
import os
import sys
import threading
from datetime import datetime
from typing import Optional

import pytz
import sentry_sdk
from sentry_sdk.integrations.logging import LoggingIntegration

from sdklib.config import LOG_FILE_NAME, LOG_LEVEL, LOGS_DIR
from sdklib.utils.ansi_colors import (
    BRIGHT_YELLOW,
    GRAY,
    GREEN,
    RED,
    RESET,
    WHITE,
    YELLOW,
    supports_color,
)

logger = logging.getLogger(__name__)

LOG_DATE_FORMAT = "%-m-%-d-%y %H:%M:%S %Z"
PLAIN_LOG_FORMAT = "[%(levelname)5.5s] [%(asctime)s] %(pathname)22s:%(lineno)-4d %(message)s"
COLOR_LOG_FORMAT = (
    f"[%(levelname)5.5s] {GREEN}[%(asctime)s]{RESET} {YELLOW}%(pathname)22s:%(lineno)-4d{RESET} %(message)s"
)


class CustomFilter(logging.Filter):
    """Filter out DEBUG messages from external libraries."""

    def filter(self, record):
        if record.levelno == logging.DEBUG and "site-packages" in record.pathname:
            return False
        return True


class ThreadFilter(logging.Filter):
    """Only let through records emitted by one thread."""

    def __init__(self, thread_id: int):
        super().__init__()
        self.thread_id = thread_id

    def filter(self, record):
        return record.thread == self.thread_id


class RelativePathFormatter(logging.Formatter):
    """Format the pathname to be relative to the project root and color the level."""

    max_path_length = 22

    def __init__(self, *args, timezone: Optional[str] = None, use_colors: bool = True, **kwargs):
        super().__init__(*args, **kwargs)
        self.tz = pytz.timezone(timezone or os.environ.get("LOG_TIMEZONE", "UTC"))
        self.use_colors = use_colors
        self.project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

        self.level_colors = {
            logging.DEBUG: GRAY,
            logging.INFO: WHITE,
            logging.WARNING: BRIGHT_YELLOW,
            logging.ERROR: RED,
            logging.CRITICAL: RED,
        }

    def formatTime(self, record, datefmt=None):
        """Override formatTime to use the configured timezone"""
        ct = datetime.fromtimestamp(record.created, tz=pytz.UTC)
        ct = ct.astimezone(self.tz)
        return ct.strftime(datefmt or LOG_DATE_FORMAT)

    def shorten_path(self, pathname: str) -> str:
        if pathname.startswith(self.project_root):
            pathname = os.path.relpath(pathname, self.project_root)

        if len(pathname) <= self.max_path_length:
            return pathname

        # Keep the file name, truncate the directories from the left
        filename = os.path.basename(pathname)
        if len(filename) >= self.max_path_length - 3:
            return "..." + filename[-(self.max_path_length - 3) :]

        available = self.max_path_length - len(filename) - 4
        if available <= 0:
            return ".../" + filename
        directory = os.path.dirname(pathname)
        return "..." + directory[-available:] + "/" + filename

    def format(self, record):
        original_pathname = record.pathname
        record.pathname = self.shorten_path(record.pathname)
        try:
            formatted = super().format(record)
        finally:
            record.pathname = original_pathname

        level_color = self.level_colors.get(record.levelno, "")
        if not self.use_colors or not level_color or level_color == WHITE:
            return formatted

        level_tag = f"[{record.levelname:5.5s}]"
        return formatted.replace(level_tag, f"{level_color}{level_tag}{RESET}", 1)


def build_formatter(use_colors: bool) -> RelativePathFormatter:
    if use_colors:
        return RelativePathFormatter(COLOR_LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    return RelativePathFormatter(PLAIN_LOG_FORMAT, datefmt=LOG_DATE_FORMAT, use_colors=False)


def setup_logger(log_dir: Optional[str] = None, level: Optional[str] = None) -> logging.Logger:
    """
    Configure the root logger with a console handler and a file handler.

    Args:
        log_dir: Directory for the log file, defaults to LOGS_DIR
        level: Console log level name, defaults to LOG_LEVEL

    Returns:
        logging.Logger: The configured root logger
    """
    log_dir = log_dir or LOGS_DIR
    os.makedirs(log_dir, exist_ok=True)
    log_file = os.path.join(log_dir, LOG_FILE_NAME)

    custom_filter = CustomFilter()

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Remove any existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO))
    console_handler.setFormatter(build_formatter(supports_color(sys.stdout)))
    console_handler.addFilter(custom_filter)
    root_logger.addHandler(console_handler)

    # File handler keeps everything down to DEBUG, without colors
    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(build_formatter(False))
    file_handler.addFilter(custom_filter)
    root_logger.addHandler(file_handler)

    logger.debug(f"Logging configured, writing to {log_file}")
    return root_logger


def get_avd_log_handler(avd_name: str, log_dir: str) -> logging.FileHandler:
    """Create a file handler writing to <log_dir>/avd_logs/<avd_name>.log."""
    avd_log_dir = os.path.join(log_dir, "avd_logs")
    os.makedirs(avd_log_dir, exist_ok=True)

    handler = logging.FileHandler(os.path.join(avd_log_dir, f"{avd_name}.log"))
    handler.setFormatter(build_formatter(False))
    handler.addFilter(CustomFilter())
    handler.addFilter(ThreadFilter(threading.get_ident()))
    handler.setLevel(logging.DEBUG)
    return handler


class AvdLogContext:
    """
    Context manager that tees the records of one lifecycle operation to a per-AVD log file.

    Only records emitted from the thread that entered the context are written, so
    concurrent operations on other AVDs do not leak into the file. Does nothing
    when log_dir is None.

    Usage:
        with AvdLogContext("Pixel_API_30", "/var/log/avd"):
            manager.delete_avd(info)
    """

    def __init__(self, avd_name: str, log_dir: Optional[str], logger_name: str = "avd"):
        self.avd_name = avd_name
        self.log_dir = log_dir
        self.logger_name = logger_name
        self.handler = None
        self.logger = None

    def __enter__(self):
        if not self.log_dir or not self.avd_name:
            return self

        self.logger = logging.getLogger(self.logger_name)
        self.handler = get_avd_log_handler(self.avd_name, self.log_dir)
        self.logger.addHandler(self.handler)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.handler and self.logger:
            self.logger.removeHandler(self.handler)
            self.handler.close()
        return False


def init_error_reporting(dsn: Optional[str] = None, environment: Optional[str] = None) -> bool:
    """
    Initialize Sentry error reporting when a DSN is available.

    Returns:
        bool: True if Sentry was initialized
    """
    dsn = dsn or os.getenv("SENTRY_DSN")
    if not dsn:
        logger.warning("SENTRY_DSN not found in environment variables - Sentry not initialized")
        return False

    environment = (environment or os.getenv("ENVIRONMENT", "DEV")).lower()
    sentry_sdk.init(
        dsn=dsn,
        integrations=[
            LoggingIntegration(
                level=logging.INFO,  # Capture info and above as breadcrumbs
                event_level=logging.ERROR,  # Send errors as events
            ),
        ],
        environment=environment,
        send_default_pii=False,
    )
    logger.info(f"Sentry initialized for {environment} environment")
    return True
