"""
Structured logging system for JobNest.

Provides centralized logging with console and optional file output,
log levels, and metrics tracking for monitoring search and ingest health.
"""

import json
import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from .config import LOG_LEVELS


class StructuredLogger:
    """
    Centralized logger with support for console and file outputs.
    Tracks metrics for monitoring search traffic and ingestion.
    """

    def __init__(
        self,
        name: str = "jobnest",
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        enable_file: bool = True,
        enable_console: bool = True,
    ):
        """
        Initialize the structured logger.

        Args:
            name: Logger name
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_dir: Directory for log files (default: logs/)
            enable_file: Write logs to file
            enable_console: Output logs to console
        """
        self.logger = logging.getLogger(name)

        self.metrics = {
            "searches": 0,
            "searches_failed": 0,
            "candidates_fetched": 0,
            "duplicates_dropped": 0,
            "listings_ingested": {},
        }

        self.configure(level, log_dir, enable_file, enable_console)

    def configure(
        self,
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        enable_file: bool = True,
        enable_console: bool = True,
    ):
        """Replace handlers and level; metrics are kept."""
        self.logger.setLevel(getattr(logging, level.upper()))
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()

        if enable_console:
            # stderr keeps stdout clean for JSON command output
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setLevel(getattr(logging, level.upper()))
            console_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            console_handler.setFormatter(console_formatter)
            self.logger.addHandler(console_handler)

        if enable_file:
            if log_dir is None:
                log_dir = Path("logs")
            log_dir.mkdir(parents=True, exist_ok=True)

            log_file = log_dir / f"jobnest_{datetime.now().strftime('%Y%m%d')}.log"
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)  # Always log everything to file
            file_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            file_handler.setFormatter(file_formatter)
            self.logger.addHandler(file_handler)

    def debug(self, message: str, **kwargs):
        """Log debug message with optional context."""
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs):
        """Log info message with optional context."""
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message with optional context."""
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs):
        """Log error message with optional context."""
        self._log(logging.ERROR, message, kwargs)

    def _log(self, level: int, message: str, context: dict):
        if context:
            message = f"{message} | Context: {json.dumps(context, default=str)}"
        self.logger.log(level, message)

    # Metric tracking methods

    def record_search(self, candidates: int, duplicates: int):
        """Record a served search and the size of its candidate window."""
        self.metrics["searches"] += 1
        self.metrics["candidates_fetched"] += candidates
        self.metrics["duplicates_dropped"] += duplicates

    def record_search_failure(self):
        self.metrics["searches_failed"] += 1

    def record_ingest(self, status: str):
        """Count an ingested listing by outcome (new, updated, no-change, ...)."""
        ingested = self.metrics["listings_ingested"]
        ingested[status] = ingested.get(status, 0) + 1

    def get_metrics(self) -> dict:
        """Return current metrics."""
        metrics_copy = dict(self.metrics)
        metrics_copy["listings_ingested"] = dict(self.metrics["listings_ingested"])
        if metrics_copy["candidates_fetched"] > 0:
            metrics_copy["duplicate_rate"] = round(
                metrics_copy["duplicates_dropped"] / metrics_copy["candidates_fetched"], 3
            )
        return metrics_copy

    def log_metrics_summary(self):
        """Log a summary of current metrics."""
        metrics = self.get_metrics()

        total = metrics["searches"] + metrics["searches_failed"]
        self.info("=== Session Metrics ===")
        self.info(f"Searches: {metrics['searches']}/{total} served")
        self.info(
            f"Candidates: {metrics['candidates_fetched']} fetched, "
            f"{metrics['duplicates_dropped']} duplicates dropped"
        )

        if metrics["listings_ingested"]:
            self.info("Ingested listings:")
            for status, count in metrics["listings_ingested"].items():
                self.info(f"  {status}: {count}")


# Global logger instance
_global_logger: Optional[StructuredLogger] = None


def get_logger(
    name: str = "jobnest",
    level: Optional[str] = None,
    **kwargs
) -> StructuredLogger:
    """
    Get or create the global logger instance.

    Level and file output default to JOBNEST_LOG_LEVEL and JOBNEST_LOG_DIR;
    without JOBNEST_LOG_DIR only the console handler is attached.

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        **kwargs: Additional arguments passed to StructuredLogger

    Returns:
        StructuredLogger instance
    """
    global _global_logger

    if _global_logger is None:
        if level is None:
            level = os.getenv("JOBNEST_LOG_LEVEL", "").strip().upper()
            if level not in LOG_LEVELS:
                level = "INFO"
        if "log_dir" not in kwargs and os.getenv("JOBNEST_LOG_DIR"):
            kwargs["log_dir"] = Path(os.environ["JOBNEST_LOG_DIR"])
        kwargs.setdefault("enable_file", kwargs.get("log_dir") is not None)
        _global_logger = StructuredLogger(name=name, level=level, **kwargs)

    return _global_logger


def reset_logger():
    """Reset the global logger (useful for testing)."""
    global _global_logger
    _global_logger = None
