"""Logging System.

This module provides logging configuration for prompt-mixer.

Features:
- Daily rotating log files with TimedRotatingFileHandler
- Configurable log levels via Settings
- Log cleanup for old files

Log files are stored in the storage home's logs/ directory with the format:
    prompt-mixer-YYYY-MM-DD.log

Example usage:
    from prompt_mixer.core.logging import setup_logging, LogManager

    logger = setup_logging(home_path)
    logger.info("Sync started")

    log_manager = LogManager(home_path)
    log_manager.cleanup_old_logs(keep_days=30)
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Optional

from prompt_mixer.core.config import LogLevel, Settings, get_default_settings


# =============================================================================
# CONSTANTS
# =============================================================================

# Default logger name
DEFAULT_LOGGER_NAME = "prompt_mixer"

# Log file prefix
LOG_FILE_PREFIX = "prompt-mixer"

# Log file extension
LOG_FILE_EXTENSION = ".log"

# Default backup count (days to keep)
DEFAULT_BACKUP_COUNT = 30


# =============================================================================
# MODULE-LEVEL FUNCTIONS
# =============================================================================


def setup_logging(
    home_path: Path,
    settings: Optional[Settings] = None,
    name: str = DEFAULT_LOGGER_NAME,
    console: bool = True,
) -> logging.Logger:
    """Set up logging under the storage home.

    Args:
        home_path: Storage home directory.
        settings: Optional Settings, defaults are used if not provided.
        name: Logger name (default: prompt_mixer).
        console: Also log to stderr.

    Returns:
        Configured logger instance.
    """
    log_manager = LogManager(home_path, settings)
    return log_manager.setup(name, console=console)


# =============================================================================
# LOG MANAGER CLASS
# =============================================================================


class LogManager:
    """Manages log files for a storage home.

    Attributes:
        home_path: Storage home directory.
        settings: Settings providing level and format.
        logs_path: Path to the logs directory.
    """

    def __init__(self, home_path: Path, settings: Optional[Settings] = None):
        self.home_path = Path(home_path)
        self.logs_path = self.home_path / "logs"
        self.settings = settings if settings is not None else get_default_settings()
        self._logger: Optional[logging.Logger] = None

    def setup(self, name: str = DEFAULT_LOGGER_NAME, console: bool = True) -> logging.Logger:
        """Set up logging with file and console handlers.

        Creates the logs directory if it doesn't exist, then configures
        a logger with:
        - TimedRotatingFileHandler for daily log rotation
        - StreamHandler for console output (optional)

        Args:
            name: Logger name (default: prompt_mixer).
            console: Add a console handler.

        Returns:
            Configured logger instance.
        """
        self.logs_path.mkdir(parents=True, exist_ok=True)

        logger = logging.getLogger(name)

        log_level = getattr(logging, LogLevel(self.settings.logging.level).value, logging.INFO)
        logger.setLevel(log_level)

        # Only add handlers if none exist (avoid duplicates)
        if not logger.handlers:
            formatter = logging.Formatter(self.settings.logging.format)

            file_handler = TimedRotatingFileHandler(
                filename=self.get_log_file_path(),
                when="midnight",
                interval=1,
                backupCount=DEFAULT_BACKUP_COUNT,
                encoding="utf-8",
            )
            file_handler.setLevel(log_level)
            file_handler.setFormatter(formatter)
            file_handler.suffix = "%Y-%m-%d"
            logger.addHandler(file_handler)

            if console:
                console_handler = logging.StreamHandler()
                console_handler.setLevel(logging.WARNING)
                console_handler.setFormatter(formatter)
                logger.addHandler(console_handler)

        self._logger = logger
        return logger

    def get_log_file_path(self) -> Path:
        """Path of today's log file: logs/prompt-mixer-YYYY-MM-DD.log."""
        today = datetime.now().strftime("%Y-%m-%d")
        return self.logs_path / f"{LOG_FILE_PREFIX}-{today}{LOG_FILE_EXTENSION}"

    def list_log_files(self) -> list[Path]:
        """List all log files, oldest first."""
        if not self.logs_path.exists():
            return []

        log_files = list(self.logs_path.glob(f"{LOG_FILE_PREFIX}-*{LOG_FILE_EXTENSION}"))
        log_files.extend(self.logs_path.glob(f"{LOG_FILE_PREFIX}-*{LOG_FILE_EXTENSION}.*"))
        return sorted(log_files)

    def cleanup_old_logs(self, keep_days: int = DEFAULT_BACKUP_COUNT) -> list[Path]:
        """Remove log files older than keep_days.

        Returns:
            List of paths to deleted files.
        """
        cutoff_date = datetime.now() - timedelta(days=keep_days)
        deleted_files = []

        for log_file in self.list_log_files():
            file_date = self._extract_date_from_filename(log_file)
            if file_date and file_date < cutoff_date:
                try:
                    log_file.unlink()
                    deleted_files.append(log_file)
                except OSError:
                    # Skip files that can't be deleted
                    continue

        return deleted_files

    @staticmethod
    def _extract_date_from_filename(log_file: Path) -> Optional[datetime]:
        """Extract the first YYYY-MM-DD date found in a log filename."""
        matches = re.findall(r"(\d{4}-\d{2}-\d{2})", log_file.name)
        if not matches:
            return None
        try:
            return datetime.strptime(matches[0], "%Y-%m-%d")
        except ValueError:
            return None
