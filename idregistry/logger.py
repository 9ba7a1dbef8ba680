"""
Structured logging system for idregistry.

Provides centralized logging with console and file outputs, log levels,
and metrics tracking for monitoring allocation and backfill health.
"""

import logging
import sys
from pathlib import Path
from typing import Optional
from datetime import datetime
import json


class StructuredLogger:
    """
    Centralized logger with support for console and file outputs.
    Tracks metrics for allocation and backfill runs.
    """

    def __init__(
        self,
        name: str = "idregistry",
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
        self.logger.setLevel(getattr(logging, level.upper()))
        self.logger.handlers.clear()  # Remove existing handlers

        # Metrics tracking
        self.metrics = {
            "batches_allocated": 0,
            "identifiers_allocated": 0,
            "collisions": 0,
            "rows_updated": 0,
            "groups_created": 0,
            "groups_completed": 0,
            "tables_processed": 0,
            "tables_failed": 0,
            "errors_by_type": {},
            "identifiers_by_table": {},
        }

        # Console handler
        if enable_console:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setLevel(getattr(logging, level.upper()))
            console_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            console_handler.setFormatter(console_formatter)
            self.logger.addHandler(console_handler)

        # File handler
        if enable_file:
            if log_dir is None:
                log_dir = Path("logs")
            log_dir.mkdir(parents=True, exist_ok=True)

            log_file = log_dir / f"idregistry_{datetime.now().strftime('%Y%m%d')}.log"
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

    def critical(self, message: str, **kwargs):
        """Log critical message with optional context."""
        self._log(logging.CRITICAL, message, kwargs)

    def _log(self, level: int, message: str, context: dict):
        """Internal logging method with context."""
        if context:
            message = f"{message} | Context: {json.dumps(context, default=str)}"
        self.logger.log(level, message)

    # Metric tracking methods

    def record_allocation(self, count: int):
        """Record a successfully allocated batch."""
        self.metrics["batches_allocated"] += 1
        self.metrics["identifiers_allocated"] += count

    def record_collision(self, count: int = 1):
        """Record identifiers rejected because they were already in use."""
        self.metrics["collisions"] += count

    def record_rows_updated(self, count: int):
        self.metrics["rows_updated"] += count

    def record_groups_created(self, count: int):
        self.metrics["groups_created"] += count

    def record_groups_completed(self, count: int):
        self.metrics["groups_completed"] += count

    def record_table_processed(self, table: str, count: int):
        """Record a finished backfill for a table."""
        self.metrics["tables_processed"] += 1
        by_table = self.metrics["identifiers_by_table"]
        by_table[table] = by_table.get(table, 0) + count

    def record_table_failure(self, table: str, error_type: str):
        """Record a backfill that was rolled back."""
        self.metrics["tables_failed"] += 1

        # Track error types
        if error_type not in self.metrics["errors_by_type"]:
            self.metrics["errors_by_type"][error_type] = 0
        self.metrics["errors_by_type"][error_type] += 1

    def get_metrics(self) -> dict:
        """Return current metrics."""
        metrics_copy = self.metrics.copy()
        allocated = metrics_copy["identifiers_allocated"]
        collisions = metrics_copy["collisions"]
        # A healthy random source keeps this at zero
        metrics_copy["collision_rate"] = 0.0
        if allocated + collisions > 0:
            metrics_copy["collision_rate"] = round(collisions / (allocated + collisions), 6)
        return metrics_copy

    def log_metrics_summary(self):
        """Log a summary of current metrics."""
        metrics = self.get_metrics()

        self.info("=== Identifier Maintenance Metrics ===")
        self.info(
            f"Allocated: {metrics['identifiers_allocated']} identifiers "
            f"in {metrics['batches_allocated']} batches"
        )
        self.info(f"Collisions: {metrics['collisions']} (rate {metrics['collision_rate']})")
        self.info(
            f"Updated: {metrics['rows_updated']} rows, {metrics['groups_created']} new groups, "
            f"{metrics['groups_completed']} completed groups"
        )
        self.info(f"Tables: {metrics['tables_processed']} processed, {metrics['tables_failed']} failed")

        if metrics["identifiers_by_table"]:
            self.info("Identifiers by table:")
            for table, count in metrics["identifiers_by_table"].items():
                self.info(f"  {table}: {count}")

        if metrics["errors_by_type"]:
            self.info("Error Types:")
            for error_type, count in metrics["errors_by_type"].items():
                self.info(f"  {error_type}: {count}")


# Global logger instance
_global_logger: Optional[StructuredLogger] = None


def get_logger(
    name: str = "idregistry",
    level: Optional[str] = None,
    **kwargs
) -> StructuredLogger:
    """
    Get or create the global logger instance.

    Level and log directory default to the IDREGISTRY_LOG_LEVEL and
    IDREGISTRY_LOG_DIR settings; file logging is only enabled when a
    directory is configured or passed in.

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        **kwargs: Additional arguments passed to StructuredLogger

    Returns:
        StructuredLogger instance
    """
    global _global_logger

    if _global_logger is None:
        from .config import Settings

        settings = Settings.from_env()
        kwargs.setdefault("log_dir", settings.log_dir)
        kwargs.setdefault("enable_file", kwargs["log_dir"] is not None)
        _global_logger = StructuredLogger(name=name, level=level or settings.log_level, **kwargs)

    return _global_logger


def reset_logger():
    """Reset the global logger (useful for testing)."""
    global _global_logger
    _global_logger = None
