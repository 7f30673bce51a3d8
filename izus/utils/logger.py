"""
Logging utilities with security features.

This module provides logging setup with:
- Configurable log levels and output destinations
- Log rotation for file handlers
- Masking of passwords, password hashes and bearer tokens
"""

import logging
import re
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


def mask_username(username: str) -> str:
    """
    Mask a login name for safe logging.

    Examples:
        >>> mask_username("novak.jan")
        'n***'
        >>> mask_username("")
        '***'
    """
    if not username:
        return "***"
    return username[0] + "***"


class SensitiveDataFilter(logging.Filter):
    """
    Logging filter that masks sensitive information.

    Scans log messages for password, token and authorization patterns and
    masks their values before output.
    """

    PATTERNS = [
        (re.compile(r'(password|pass|pwd)["\']?\s*[:=]\s*["\']?([^"\'\s,}]+)', re.IGNORECASE),
         r'\1: ********'),
        (re.compile(r'(access_token|token)["\']?\s*[:=]\s*["\']?([^"\'\s,}]+)', re.IGNORECASE),
         r'\1: ********'),
        (re.compile(r'Bearer\s+[A-Za-z0-9\-._~+/]+=*'), 'Bearer ********'),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        """
        Mask sensitive data in the log record.

        Returns:
            Always True (allows all records through after masking)
        """
        message = record.getMessage()
        for pattern, replacement in self.PATTERNS:
            message = pattern.sub(replacement, message)
        record.msg = message
        record.args = None
        return True


def setup_logger(
    name: str = "izus",
    level: int = logging.INFO,
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    Set up and configure a logger instance.

    Module loggers (``logging.getLogger(__name__)`` below ``izus``)
    propagate to the logger configured here.

    Args:
        name: Logger name (default: "izus")
        level: Logging level (default: logging.INFO)
        log_file: Optional path to log file for file output

    Returns:
        Configured logger instance

    Examples:
        >>> logger = setup_logger(level=logging.DEBUG, log_file="output/logs/izus.log")
        >>> logger.info("Application started")
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Avoid duplicate handlers
    if logger.handlers:
        return logger

    formatter = logging.Formatter(
        fmt='%(asctime)s [%(levelname)s] %(name)s:%(funcName)s:%(lineno)d %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    sensitive_filter = SensitiveDataFilter()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.addFilter(sensitive_filter)
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding='utf-8'
        )
        file_handler.setFormatter(formatter)
        file_handler.addFilter(sensitive_filter)
        logger.addHandler(file_handler)

    return logger
