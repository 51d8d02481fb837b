"""
Logging for the Invoice Totals Engine.

All engine loggers hang off the ``invoice_totals`` logger. Library modules
only ever call get_logger(__name__); handlers are installed once, by the
command line or by the embedding application.

Usage:
    from invoice_totals.utils.logger import setup_logger, get_logger

    setup_logger(level="DEBUG")          # once, at startup
    logger = get_logger(__name__)
    logger.debug("Stacked detectors found nothing")
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional

try:
    import colorama
    from colorama import Fore, Style
    colorama.init()
    COLORAMA_AVAILABLE = True
except ImportError:
    COLORAMA_AVAILABLE = False


APP_LOGGER_NAME = "invoice_totals"
DEFAULT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# PDF and imaging libraries that log every parsed object at DEBUG
NOISY_LIBRARY_LOGGERS = ("pdfminer", "pdfplumber", "PIL", "pytesseract")


class ColoredFormatter(logging.Formatter):
    """Console formatter that colours each record by level."""

    COLORS = {
        logging.DEBUG: Fore.CYAN if COLORAMA_AVAILABLE else '',
        logging.INFO: Fore.GREEN if COLORAMA_AVAILABLE else '',
        logging.WARNING: Fore.YELLOW if COLORAMA_AVAILABLE else '',
        logging.ERROR: Fore.RED if COLORAMA_AVAILABLE else '',
        logging.CRITICAL: Fore.RED + Style.BRIGHT if COLORAMA_AVAILABLE else '',
    }
    RESET = Style.RESET_ALL if COLORAMA_AVAILABLE else ''

    def format(self, record: logging.LogRecord) -> str:
        return f"{self.COLORS.get(record.levelno, '')}{super().format(record)}{self.RESET}"


def _console_handler(stream, level: int, log_format: str, date_format: str, colorize: bool) -> logging.Handler:
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(level)
    formatter_class = ColoredFormatter if colorize and COLORAMA_AVAILABLE else logging.Formatter
    handler.setFormatter(formatter_class(log_format, datefmt=date_format))
    return handler


def _file_handler(log_file: str, level: int, log_format: str, date_format: str,
                  max_bytes: int, backup_count: int) -> logging.Handler:
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=max_bytes, backupCount=backup_count, encoding='utf-8'
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(log_format, datefmt=date_format))
    return handler


def quiet_library_loggers(level: int = logging.WARNING) -> None:
    """Raise the threshold of the PDF/OCR libraries' own loggers."""
    for name in NOISY_LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(level)


def setup_logger(
    level: str = "INFO",
    log_format: Optional[str] = None,
    date_format: Optional[str] = None,
    log_file: Optional[str] = None,
    max_bytes: int = 10485760,  # 10 MB
    backup_count: int = 5,
    colorize: bool = True,
    stream=None
) -> logging.Logger:
    """
    Install console (and optionally rotating file) handlers on the engine logger.

    Calling it again replaces the previous handlers.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL.
        log_file: Rotating log file; None disables file logging.
        colorize: Colour console records when colorama is installed.
        stream: Console stream, stdout by default. The CLI passes stderr
            so that JSON on stdout stays clean.

    Returns:
        The ``invoice_totals`` logger.
    """
    log_format = log_format or DEFAULT_FORMAT
    date_format = date_format or DEFAULT_DATE_FORMAT
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    app_logger = logging.getLogger(APP_LOGGER_NAME)
    app_logger.setLevel(numeric_level)
    app_logger.handlers.clear()

    app_logger.addHandler(_console_handler(stream, numeric_level, log_format, date_format, colorize))
    if log_file:
        app_logger.addHandler(
            _file_handler(log_file, numeric_level, log_format, date_format, max_bytes, backup_count)
        )
    app_logger.propagate = False

    quiet_library_loggers()
    app_logger.debug("Logging initialized")
    return app_logger


def get_logger(name: str) -> logging.Logger:
    """Return the engine logger for ``name`` (usually ``__name__``)."""
    if name.startswith(APP_LOGGER_NAME):
        return logging.getLogger(name)
    return logging.getLogger(f"{APP_LOGGER_NAME}.{name}")


def setup_logger_from_config(level: Optional[str] = None, stream=None) -> logging.Logger:
    """
    setup_logger() driven by the ``logging.*`` settings.

    Args:
        level: Overrides ``logging.level`` (the CLI's --debug flag).
        stream: Console stream passed through to setup_logger().
    """
    try:
        from config import get_config

        log_file = get_config("logging.file.path") if get_config("logging.file.enabled", False) else None
        return setup_logger(
            level=level or get_config("logging.level", "INFO"),
            log_format=get_config("logging.format"),
            date_format=get_config("logging.date_format"),
            log_file=log_file,
            max_bytes=get_config("logging.file.max_bytes", 10485760),
            backup_count=get_config("logging.file.backup_count", 5),
            colorize=get_config("logging.console.colorize", True),
            stream=stream
        )
    except Exception as e:
        print(f"Warning: Could not load logging config, using defaults: {e}", file=sys.stderr)
        return setup_logger(level=level or "INFO", stream=stream)
