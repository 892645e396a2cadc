"""
Structured logging for the pricing engine worker.

Console and file outputs with key/value context, plus job metrics
(records created, chunks failed, progress events) that are safe to
update from the batch executor's worker threads.
"""

import logging
import sys
import threading
from pathlib import Path
from typing import Optional
from datetime import datetime
import json


class StructuredLogger:
    """
    Centralized logger with support for console and file outputs.
    Tracks metrics for monitoring job throughput and failures.
    """

    def __init__(
        self,
        name: str = "quotegen",
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
        self.logger.handlers.clear()

        self._lock = threading.Lock()
        self.metrics = {
            "api_calls": 0,
            "jobs_started": 0,
            "jobs_completed": 0,
            "jobs_failed": 0,
            "records_created": 0,
            "records_failed": 0,
            "chunks_failed": 0,
            "progress_events": 0,
            "errors_by_type": {},
        }

        if enable_console:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(getattr(logging, level.upper()))
            console_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(threadName)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            console_handler.setFormatter(console_formatter)
            self.logger.addHandler(console_handler)

        if enable_file:
            if log_dir is None:
                log_dir = Path("logs")
            log_dir.mkdir(parents=True, exist_ok=True)

            log_file = log_dir / f"quotegen_{datetime.now().strftime('%Y%m%d')}.log"
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)  # Always log everything to file
            file_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(threadName)s | %(name)s:%(lineno)d | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            file_handler.setFormatter(file_formatter)
            self.logger.addHandler(file_handler)

    def set_level(self, level: str):
        """Change the level of the logger and its console handler."""
        numeric = getattr(logging, level.upper())
        self.logger.setLevel(numeric)
        for handler in self.logger.handlers:
            if not isinstance(handler, logging.FileHandler):
                handler.setLevel(numeric)

    def debug(self, message: str, /, **kwargs):
        """Log debug message with optional context."""
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, /, **kwargs):
        """Log info message with optional context."""
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, /, **kwargs):
        """Log warning message with optional context."""
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, /, **kwargs):
        """Log error message with optional context."""
        self._log(logging.ERROR, message, kwargs)

    def critical(self, message: str, /, **kwargs):
        """Log critical message with optional context."""
        self._log(logging.CRITICAL, message, kwargs)

    def _log(self, level: int, message: str, context: dict):
        """Internal logging method with context."""
        if context:
            # Decimals and ids are not JSON native
            message = f"{message} | Context: {json.dumps(context, default=str)}"
        self.logger.log(level, message)

    # Metric tracking methods

    def record_api_call(self):
        """Increment API call counter."""
        with self._lock:
            self.metrics["api_calls"] += 1

    def record_job_start(self):
        with self._lock:
            self.metrics["jobs_started"] += 1

    def record_job_end(self, success: bool):
        """Record the end of a job, successful or not."""
        with self._lock:
            if success:
                self.metrics["jobs_completed"] += 1
            else:
                self.metrics["jobs_failed"] += 1

    def record_create_results(self, created: int, failed: int):
        """Add per-record outcomes of one bulk create."""
        with self._lock:
            self.metrics["records_created"] += created
            self.metrics["records_failed"] += failed

    def record_chunk_failure(self):
        with self._lock:
            self.metrics["chunks_failed"] += 1

    def record_progress_event(self):
        with self._lock:
            self.metrics["progress_events"] += 1

    def record_error(self, error_type: str):
        """Count an error by its type name."""
        with self._lock:
            errors = self.metrics["errors_by_type"]
            errors[error_type] = errors.get(error_type, 0) + 1

    def get_metrics(self) -> dict:
        """Return a snapshot of current metrics."""
        with self._lock:
            metrics_copy = dict(self.metrics)
            metrics_copy["errors_by_type"] = dict(self.metrics["errors_by_type"])

        attempted = metrics_copy["records_created"] + metrics_copy["records_failed"]
        metrics_copy["record_success_rate"] = (
            round(metrics_copy["records_created"] / attempted, 3) if attempted else 0
        )
        return metrics_copy

    def log_metrics_summary(self):
        """Log a summary of current metrics."""
        metrics = self.get_metrics()

        self.info("=== Worker Session Metrics ===")
        self.info(f"API Calls: {metrics['api_calls']}")
        self.info(
            f"Jobs: {metrics['jobs_completed']} completed, "
            f"{metrics['jobs_failed']} failed of {metrics['jobs_started']}"
        )
        self.info(
            f"Records: {metrics['records_created']} created, {metrics['records_failed']} failed "
            f"({metrics['record_success_rate'] * 100:.1f}% success)"
        )
        self.info(f"Failed chunks: {metrics['chunks_failed']}")
        self.info(f"Progress events: {metrics['progress_events']}")

        if metrics["errors_by_type"]:
            self.info("Error Types:")
            for error_type, count in metrics["errors_by_type"].items():
                self.info(f"  {error_type}: {count}")


# Global logger instance
_global_logger: Optional[StructuredLogger] = None


def get_logger(
    name: str = "quotegen",
    level: str = "INFO",
    **kwargs
) -> StructuredLogger:
    """
    Get or create the global logger instance.

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        **kwargs: Additional arguments passed to StructuredLogger

    Returns:
        StructuredLogger instance
    """
    global _global_logger

    if _global_logger is None:
        _global_logger = StructuredLogger(name=name, level=level, **kwargs)

    return _global_logger


def reset_logger():
    """Reset the global logger (useful for testing)."""
    global _global_logger
    _global_logger = None
