"""
Logging configuration for the Video Slicer application.
"""

import logging
import logging.handlers
import os
import json
import time
from pathlib import Path
from typing import Optional, Dict, Any, List
from datetime import datetime


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    log_dir: str = "./logs",
    max_file_size: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
    enable_structured_logging: bool = True,
    enable_audit_logging: bool = True
) -> None:
    """
    Set up logging configuration for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file name. If None, uses 'video_slicer.log'
        log_dir: Directory to store log files
        max_file_size: Maximum size of log file before rotation
        backup_count: Number of backup log files to keep
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    if log_file is None:
        log_file = "video_slicer.log"

    log_file_path = log_path / log_file

    logger = logging.getLogger()
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    logger.handlers.clear()

    if enable_structured_logging:
        formatter = StructuredFormatter()
        console_formatter = logging.Formatter(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
    else:
        formatter = logging.Formatter(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        console_formatter = formatter

    # Console output stays quiet; the CLI prints its own messages
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.WARNING)
    console_handler.setFormatter(console_formatter)
    logger.addHandler(console_handler)

    file_handler = logging.handlers.RotatingFileHandler(
        filename=log_file_path,
        maxBytes=max_file_size,
        backupCount=backup_count,
        encoding='utf-8'
    )
    file_handler.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    if enable_audit_logging:
        setup_audit_logging(log_dir, max_file_size, backup_count)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a specific module.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


_RESERVED_RECORD_KEYS = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
    'filename', 'module', 'lineno', 'funcName', 'created',
    'msecs', 'relativeCreated', 'thread', 'threadName',
    'processName', 'process', 'getMessage', 'exc_info',
    'exc_text', 'stack_info', 'taskName', 'message', 'asctime'
}


class StructuredFormatter(logging.Formatter):
    """Structured JSON formatter for log records."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as structured JSON."""
        log_entry = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        extra_fields = {
            key: value for key, value in record.__dict__.items()
            if key not in _RESERVED_RECORD_KEYS
        }

        if extra_fields:
            log_entry['extra'] = extra_fields

        return json.dumps(log_entry, default=str)


class AuditLogger:
    """Specialized logger for the slicing and export audit trail."""

    def __init__(self, log_dir: str, max_file_size: int = 10 * 1024 * 1024, backup_count: int = 10):
        self.logger = logging.getLogger('audit')
        self.logger.setLevel(logging.INFO)

        audit_dir = Path(log_dir) / 'audit'
        audit_dir.mkdir(parents=True, exist_ok=True)

        audit_file = audit_dir / 'audit.log'
        self.audit_file = audit_file

        # Avoid stacking handlers when the audit logger is requested repeatedly
        for existing in list(self.logger.handlers):
            if getattr(existing, 'baseFilename', None) == str(audit_file.resolve()):
                self.logger.removeHandler(existing)
                existing.close()

        handler = logging.handlers.RotatingFileHandler(
            filename=audit_file,
            maxBytes=max_file_size,
            backupCount=backup_count,
            encoding='utf-8'
        )
        handler.setFormatter(StructuredFormatter())
        self.logger.addHandler(handler)

        self.logger.propagate = False

    def log_slice_added(self, start: float, end: float) -> None:
        """Log a committed slice."""
        self.logger.info(
            "Slice added",
            extra={
                'event_type': 'slice_added',
                'start': start,
                'end': end,
                'session_id': self._get_session_id()
            }
        )

    def log_slice_removed(self, start: float, end: float) -> None:
        """Log a deleted slice."""
        self.logger.info(
            "Slice removed",
            extra={
                'event_type': 'slice_removed',
                'start': start,
                'end': end,
                'session_id': self._get_session_id()
            }
        )

    def log_export_start(self, source: str, slice_count: int, config: Dict[str, Any]) -> None:
        """Log the start of an export operation."""
        self.logger.info(
            "Export started",
            extra={
                'event_type': 'export_start',
                'source': source,
                'slice_count': slice_count,
                'config': config,
                'session_id': self._get_session_id()
            }
        )

    def log_export_complete(self, source: str, success: bool, entries: Optional[List[str]] = None,
                            error: Optional[str] = None, duration: Optional[float] = None,
                            archive_size: Optional[int] = None) -> None:
        """Log the completion of an export operation."""
        self.logger.info(
            "Export completed",
            extra={
                'event_type': 'export_complete',
                'source': source,
                'success': success,
                'entries': entries or [],
                'error': error,
                'duration_seconds': duration,
                'archive_size_bytes': archive_size,
                'session_id': self._get_session_id()
            }
        )

    def log_error_event(self, error_type: str, error_message: str, context: Dict[str, Any],
                        severity: str = 'medium') -> None:
        """Log error events for analysis."""
        self.logger.error(
            "Error event",
            extra={
                'event_type': 'error',
                'error_type': error_type,
                'error_message': error_message,
                'context': context,
                'severity': severity,
                'session_id': self._get_session_id()
            }
        )

    def close(self) -> None:
        """Detach and close the audit file handler."""
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()

    def _get_session_id(self) -> str:
        """Get or create a session ID for tracking related operations."""
        if not hasattr(self, '_session_id'):
            self._session_id = f"session_{int(time.time())}_{os.getpid()}"
        return self._session_id


class PerformanceLogger:
    """Logger for performance monitoring and metrics."""

    def __init__(self, logger_name: str = 'performance'):
        self.logger = logging.getLogger(logger_name)
        self.start_times: Dict[str, float] = {}

    def start_operation(self, operation_id: str, operation_name: str,
                        context: Optional[Dict[str, Any]] = None) -> None:
        """Start timing an operation."""
        self.start_times[operation_id] = time.time()
        self.logger.debug(
            f"Started operation: {operation_name}",
            extra={
                'operation_id': operation_id,
                'operation_name': operation_name,
                'context': context or {}
            }
        )

    def end_operation(self, operation_id: str, operation_name: str,
                      success: bool = True, context: Optional[Dict[str, Any]] = None) -> float:
        """End timing an operation and log the duration."""
        if operation_id not in self.start_times:
            self.logger.warning(f"No start time found for operation: {operation_id}")
            return 0.0

        duration = time.time() - self.start_times.pop(operation_id)

        self.logger.info(
            f"Completed operation: {operation_name}",
            extra={
                'operation_id': operation_id,
                'operation_name': operation_name,
                'duration_seconds': duration,
                'success': success,
                'context': context or {}
            }
        )

        return duration


def setup_audit_logging(log_dir: str, max_file_size: int, backup_count: int) -> AuditLogger:
    """Set up audit logging and return the audit logger instance."""
    return AuditLogger(log_dir, max_file_size, backup_count)


def get_audit_logger(log_dir: str = './logs') -> AuditLogger:
    """Get the audit logger instance."""
    return AuditLogger(log_dir)


def get_performance_logger(name: str = 'performance') -> PerformanceLogger:
    """Get a performance logger instance."""
    return PerformanceLogger(name)
