"""Centralized logging configuration for task-conductor."""

import os
import sys
import logging
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Optional

ROOT_LOGGER = "task_conductor"


def setup_logging(
    level: Optional[str] = None,
    log_dir: Optional[Path] = None,
    name: str = ROOT_LOGGER,
    console: bool = True,
) -> logging.Logger:
    """
    Set up logging with console and file handlers.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR). Defaults to env var or INFO.
        log_dir: Directory for log files. No file handler when omitted.
        name: Logger name
        console: Attach a stderr handler

    Returns:
        Configured logger
    """
    level = level or os.getenv("LOG_LEVEL", "INFO")
    log_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(name)
    logger.setLevel(log_level)

    # Avoid duplicate handlers
    if logger.handlers:
        return logger

    detailed_formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    simple_formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )

    redactor = SensitiveDataFilter()

    # stdout belongs to the MCP stdio transport, so console logs go to stderr
    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(simple_formatter)
        console_handler.addFilter(redactor)
        logger.addHandler(console_handler)

    if log_dir is not None:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_path / f"{name}.log",
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
        )
        file_handler.setLevel(logging.DEBUG)  # File gets all logs
        file_handler.setFormatter(detailed_formatter)
        file_handler.addFilter(redactor)
        logger.addHandler(file_handler)

    return logger


class SensitiveDataFilter(logging.Filter):
    """Flag log records that mention credentials."""

    SENSITIVE_PATTERNS = [
        ("api_key", "[REDACTED_API_KEY]"),
        ("x-api-key", "[REDACTED_API_KEY]"),
        ("authorization", "[REDACTED_AUTH]"),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            msg_lower = record.msg.lower()
            for pattern, _replacement in self.SENSITIVE_PATTERNS:
                if pattern in msg_lower:
                    record.msg = f"[SENSITIVE] {record.msg}"
                    break
        return True
