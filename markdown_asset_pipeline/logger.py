"""Logging setup, batch progress summaries and configuration dumps."""

import logging
import logging.handlers
import time
from typing import Any, Dict, Optional

import colorlog

LOGGER_NAME = 'markdown_asset_pipeline'

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

LOG_COLORS = {
    'DEBUG': 'cyan',
    'INFO': 'green',
    'WARNING': 'yellow',
    'ERROR': 'red',
    'CRITICAL': 'red,bg_white',
}

# -v count -> level; anything above the last entry is DEBUG
VERBOSITY_LEVELS = [logging.WARNING, logging.INFO, logging.DEBUG]

SECRET_KEY_MARKERS = ('password', 'token', 'secret', 'api_key', 'auth_header')
REDACTED = "***REDACTED***"


def setup_logging(
    verbosity: int = 0,
    log_file: Optional[str] = None,
    level: Optional[str] = None
) -> logging.Logger:
    """
    Configure the package logger.

    Args:
        verbosity: Number of -v flags (0=WARNING, 1=INFO, 2+=DEBUG)
        log_file: Also write plain-text logs to this rotating file
        level: Explicit level name, overrides verbosity

    Returns:
        The package logger

    Raises:
        ValueError: If level is not a standard level name
    """
    if level:
        log_level = logging.getLevelName(level.upper())
        if not isinstance(log_level, int):
            raise ValueError(f"Invalid log level '{level}'")
    else:
        log_level = VERBOSITY_LEVELS[min(max(verbosity, 0), len(VERBOSITY_LEVELS) - 1)]

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_level)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setFormatter(colorlog.ColoredFormatter(
        '%(log_color)s' + LOG_FORMAT, datefmt=DATE_FORMAT, log_colors=LOG_COLORS))
    logger.addHandler(console)

    if log_file:
        try:
            file_handler = logging.handlers.RotatingFileHandler(
                log_file, maxBytes=10 * 1024 * 1024, backupCount=5, encoding='utf-8')
        except OSError as e:
            logger.warning(f"Failed to set up file logging: {e}")
        else:
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
            logger.addHandler(file_handler)
            logger.info(f"Logging to file: {log_file}")

    return logger


class ProgressTracker:
    """Counts processed items of a batch and logs a summary on exit."""

    def __init__(self, total_items: int, item_type: str = "documents",
                 logger: Optional[logging.Logger] = None):
        self.total_items = total_items
        self.item_type = item_type
        self.counts = {'succeeded': 0, 'skipped': 0, 'failed': 0}
        self.start_time: Optional[float] = None
        self.logger = logger or logging.getLogger(LOGGER_NAME)

    @property
    def processed(self) -> int:
        return sum(self.counts.values())

    def __enter__(self) -> 'ProgressTracker':
        self.start_time = time.time()
        self.logger.info(f"Processing {self.total_items} {self.item_type}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        stats = self.get_stats()
        failed = self.counts['failed']
        if failed and failed == self.processed:
            log = self.logger.error
        elif failed:
            log = self.logger.warning
        else:
            log = self.logger.info

        log(
            f"{self.item_type.capitalize()}: {stats['processed']}/{self.total_items} processed, "
            f"{stats['succeeded']} succeeded, {stats['skipped']} skipped, {failed} failed "
            f"in {stats['elapsed_time_formatted']}"
        )

    def increment(self, success: bool = True, skipped: bool = False) -> None:
        """
        Count one finished item.

        Args:
            success: Whether the item was processed successfully
            skipped: Whether the item needed no work (takes precedence over success)
        """
        if skipped:
            self.counts['skipped'] += 1
        elif success:
            self.counts['succeeded'] += 1
        else:
            self.counts['failed'] += 1
            self.logger.info(f"{self.item_type.capitalize()} {self.processed}/{self.total_items} failed")

    def get_stats(self) -> Dict[str, Any]:
        elapsed = time.time() - self.start_time if self.start_time else 0.0
        stats: Dict[str, Any] = {'total': self.total_items, 'processed': self.processed}
        stats.update(self.counts)
        stats['elapsed_time'] = elapsed
        stats['elapsed_time_formatted'] = time.strftime('%H:%M:%S', time.gmtime(elapsed))
        return stats


def log_section(title: str) -> None:
    """Log a banner line for a processing phase."""
    logging.getLogger(LOGGER_NAME).info(f"=== {title} ===")


def log_config(config: Dict[str, Any]) -> None:
    """Log the effective configuration with secrets redacted."""
    logger = logging.getLogger(LOGGER_NAME)
    if not logger.isEnabledFor(logging.INFO):
        return

    log_section("Configuration")
    for section, values in redact_secrets(config).items():
        if isinstance(values, dict):
            for key, value in values.items():
                logger.info(f"{section}.{key}: {value}")
        else:
            logger.info(f"{section}: {values}")


def redact_secrets(value: Any) -> Any:
    """
    Copy a config structure, replacing string values of secret-looking keys.

    Args:
        value: Configuration dict, list or scalar

    Returns:
        Redacted copy
    """
    if isinstance(value, dict):
        return {
            key: REDACTED
            if isinstance(item, str) and any(marker in str(key).lower() for marker in SECRET_KEY_MARKERS)
            else redact_secrets(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [redact_secrets(item) for item in value]
    return value


__all__ = [
    'LOGGER_NAME',
    'setup_logging',
    'ProgressTracker',
    'log_section',
    'log_config',
    'redact_secrets'
]
