"""Logging setup, progress summaries and configuration dumps for the migrator."""

import copy
import logging
import logging.handlers
import time
from typing import Any, Dict, Optional

import colorlog

LOGGER_NAME = 'slite_outline_migrator'

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
LOG_COLORS = {
    'DEBUG': 'cyan',
    'INFO': 'green',
    'WARNING': 'yellow',
    'ERROR': 'red',
    'CRITICAL': 'red,bg_white',
}
ALLOWED_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')

SENSITIVE_KEYS = ('api_key', 'token', 'secret', 'password')
REDACTED = '***REDACTED***'


def _resolve_level(verbosity: int, level: Optional[str]) -> int:
    if level:
        level_upper = level.upper()
        if level_upper not in ALLOWED_LEVELS:
            raise ValueError(f"Invalid log level '{level}'. Must be one of: {list(ALLOWED_LEVELS)}")
        return getattr(logging, level_upper)

    if verbosity >= 2:
        return logging.DEBUG
    if verbosity == 1:
        return logging.INFO
    return logging.WARNING


def setup_logging(
    verbosity: int = 0,
    log_file: Optional[str] = None,
    level: Optional[str] = None
) -> logging.Logger:
    """
    Configure the migrator's logger.

    Args:
        verbosity: 0=WARNING, 1=INFO, 2+=DEBUG
        log_file: Optional path of a rotating log file
        level: Explicit level name, overrides verbosity

    Returns:
        The 'slite_outline_migrator' logger
    """
    log_level = _resolve_level(verbosity, level)

    # Dependencies (requests, urllib3) stay at WARNING
    logging.basicConfig(level=logging.WARNING, format=LOG_FORMAT, datefmt=DATE_FORMAT)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_level)
    logger.handlers.clear()
    logger.propagate = False

    console_handler = colorlog.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(colorlog.ColoredFormatter(
        fmt='%(log_color)s' + LOG_FORMAT,
        datefmt=DATE_FORMAT,
        log_colors=LOG_COLORS
    ))
    logger.addHandler(console_handler)

    if log_file:
        try:
            file_handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=10 * 1024 * 1024,
                backupCount=5,
                encoding='utf-8'
            )
        except OSError as e:
            logger.warning(f"Cannot write log file {log_file}, logging to console only: {e}")
        else:
            file_handler.setLevel(log_level)
            file_handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
            logger.addHandler(file_handler)
            logger.info(f"Logging to {log_file} at {logging.getLevelName(log_level)}")

    return logger


class ProgressTracker:
    """
    Counts successes and failures of one phase's item loop.

    On exit a one-line summary is logged; its level rises to WARNING when
    some items failed and to ERROR when all of them did.
    """

    def __init__(self, total_items: int, item_type: str = "items", logger: Optional[logging.Logger] = None):
        self.total_items = total_items
        self.item_type = item_type
        self.successful_items = 0
        self.failed_items = 0
        self.start_time: Optional[float] = None
        self.logger = logger or logging.getLogger(LOGGER_NAME)

    @property
    def processed_items(self) -> int:
        return self.successful_items + self.failed_items

    def __enter__(self) -> 'ProgressTracker':
        self.start_time = time.time()
        self.logger.info(f"Processing {self.total_items} {self.item_type}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        elapsed = time.time() - (self.start_time or time.time())

        if self.failed_items and self.failed_items == self.total_items:
            log_method = self.logger.error
        elif self.failed_items:
            log_method = self.logger.warning
        else:
            log_method = self.logger.info

        log_method(
            f"{self.item_type.capitalize()}: {self.successful_items}/{self.total_items} succeeded, "
            f"{self.failed_items} failed in {elapsed:.1f}s"
        )

    def increment(self, success: bool = True) -> None:
        """Record one processed item."""
        if success:
            self.successful_items += 1
        else:
            self.failed_items += 1

        if self.processed_items % 25 == 0:
            self.logger.info(f"{self.processed_items}/{self.total_items} {self.item_type} processed")


def log_section(title: str) -> None:
    """Log a banner line around ``title``."""
    logger = logging.getLogger(LOGGER_NAME)
    separator = "=" * 60
    logger.info(separator)
    logger.info(f"  {title.upper()}")
    logger.info(separator)


def log_config(config: Dict[str, Any]) -> None:
    """
    Log the effective configuration with secrets redacted.

    Args:
        config: Configuration dictionary to log
    """
    logger = logging.getLogger(LOGGER_NAME)
    sanitized = _sanitize_config(config)

    log_section("Configuration")

    outline = sanitized.get('outline', {})
    logger.info(f"Outline Base URL: {outline.get('base_url') or 'Not Set'}")
    logger.info(f"API Key: {outline.get('api_key') or 'Not Set'}")
    logger.info(f"Collection Permission: {outline.get('collection_permission', 'read_write')}")

    source = sanitized.get('source', {})
    logger.info(f"Export Path: {source.get('export_path', 'Not Set')}")
    logger.info(f"Preamble Lines: {source.get('preamble_lines', 6)}, Max Depth: {source.get('max_depth', 64)}")

    migration = sanitized.get('migration', {})
    logger.info(f"Attachment Key Mode: {migration.get('attachment_key_mode', 'scoped')}")
    logger.info(f"Dry Run: {migration.get('dry_run', False)}")
    logger.info(f"Report Path: {migration.get('report_path', 'Not Set')}")

    advanced = sanitized.get('advanced', {})
    logger.info(
        f"Requests: timeout {advanced.get('request_timeout', 30)}s, "
        f"{advanced.get('max_retries', 3)} attempts (backoff {advanced.get('retry_backoff_factor', 2.0)}s, "
        f"policy {advanced.get('retry_policy', 'all')}), rate limit {advanced.get('rate_limit', 0.0)}s, "
        f"verify SSL {advanced.get('verify_ssl', True)}"
    )


def _sanitize_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Deep copy of ``config`` with every non-empty secret string replaced."""
    def mask(data: Any) -> Any:
        if isinstance(data, dict):
            return {
                key: REDACTED
                if isinstance(value, str) and value and any(s in key.lower() for s in SENSITIVE_KEYS)
                else mask(value)
                for key, value in data.items()
            }
        if isinstance(data, list):
            return [mask(item) for item in data]
        return data

    return mask(copy.deepcopy(config))


__all__ = [
    'LOGGER_NAME',
    'setup_logging',
    'ProgressTracker',
    'log_section',
    'log_config'
]
