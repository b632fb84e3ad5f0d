"""Logging configuration for the FXP transfer tool.

Provides centralized logging with password redaction so that login
traffic traced in debug mode is never written out in clear text, and a
prefixing adapter that tags each line with the component that wrote it.
"""

import logging
import re
import sys
from pathlib import Path
from typing import Optional


APP_LOGGER_NAME = "fxp"


def _redact_password(match: "re.Match") -> str:
    value = '"[REDACTED]"' if match.group(2).startswith('"') else '[REDACTED]'
    return match.group(1) + value


# Sensitive patterns to redact from logs
PII_PATTERNS = [
    # Password in key=value, key: value and JSON form; quoted values end
    # at the closing quote
    (
        re.compile(r'(pass(?:word|wd)"?\s*[:=]\s*)("(?:[^"\\]|\\.)*"|[^\s,}\]]+)', re.IGNORECASE),
        _redact_password
    ),
    # PASS command on the control channel
    (re.compile(r"\bPASS [^\r\n]+"), "PASS [REDACTED]"),
    # FTP URLs with credentials
    (re.compile(r'ftps?://[^:/\s]+:[^@\s]+@'), 'ftp://[REDACTED]@'),
]


class PIIRedactingFormatter(logging.Formatter):
    """Custom formatter that redacts credentials from log messages."""

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record, redacting any credentials."""
        message = super().format(record)
        for pattern, replacement in PII_PATTERNS:
            message = pattern.sub(replacement, message)
        return message


class PrefixedLogger(logging.LoggerAdapter):
    """
    Logger adapter that renders every message as ``[    prefix] message``.

    The prefix is right-aligned in a ten character column so output from
    the application, the source server and the destination server lines
    up when interleaved.
    """

    def __init__(self, logger: logging.Logger, prefix: str):
        super().__init__(logger, {"prefix": prefix})
        self.prefix = prefix

    def process(self, msg, kwargs):
        return f"[{self.prefix:>10}] {msg}", kwargs


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    console: bool = True
) -> logging.Logger:
    """
    Configure application logging with credential redaction.

    Args:
        level: Logging level (default INFO)
        log_file: Optional file path for log output
        console: Whether to output to console (default True)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(APP_LOGGER_NAME)
    logger.setLevel(level)

    # Clear any existing handlers
    logger.handlers.clear()

    formatter = PIIRedactingFormatter(
        fmt="%(asctime)s %(levelname)-7s %(message)s",
        datefmt="%Y/%m/%d %H:%M:%S"
    )

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_prefixed_logger(prefix: str, name: str = APP_LOGGER_NAME) -> PrefixedLogger:
    """
    Get a logger that tags its lines with ``prefix``.

    Args:
        prefix: Component tag, e.g. "APP" or "source FTP"
        name: Underlying logger name

    Returns:
        PrefixedLogger wrapping the named logger
    """
    return PrefixedLogger(logging.getLogger(name), prefix)
