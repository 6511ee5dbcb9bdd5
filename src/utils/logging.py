"""Logging configuration for Passport Tracker."""

import logging
import re
import sys

# Logger name for the application
LOGGER_NAME = "passport_tracker"

# Default log format
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# HTTP client loggers that log every request URL, bot token included
NOISY_LOGGERS = ("httpx", "httpcore")

# Bot API URLs embed the token as /bot<id>:<secret>/
_TOKEN_PATTERN = re.compile(r"bot\d+:[A-Za-z0-9_-]+")

# Track if logging has been configured
_configured = False


class RedactTokenFilter(logging.Filter):
    """Mask Telegram bot tokens in formatted log messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = _TOKEN_PATTERN.sub("bot<redacted>", message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def configure_logging(
    level: str | None = None,
    format_string: str = LOG_FORMAT,
    date_format: str = DATE_FORMAT,
) -> logging.Logger:
    """Configure and return the main application logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               Defaults to INFO if not specified.
        format_string: Format string for log messages.
        date_format: Format string for timestamps.

    Returns:
        The configured root application logger.
    """
    global _configured

    logger = logging.getLogger(LOGGER_NAME)
    log_level = getattr(logging, (level or "INFO").upper(), logging.INFO)
    logger.setLevel(log_level)

    if _configured:
        for handler in logger.handlers:
            handler.setLevel(log_level)
        return logger

    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter(format_string, datefmt=date_format))
    console_handler.addFilter(RedactTokenFilter())
    logger.addHandler(console_handler)

    # uvicorn and httpx log through their own loggers
    logger.propagate = False
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _configured = True
    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a child logger for a component.

    Args:
        name: The component name (will be prefixed with 'passport_tracker.').

    Returns:
        A child logger for the component.
    """
    return logging.getLogger(f"{LOGGER_NAME}.{name}")


def reset_logging() -> None:
    """Reset logging configuration (useful for testing)."""
    global _configured

    logger = logging.getLogger(LOGGER_NAME)
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.NOTSET)

    _configured = False
