"""
Error handling framework for the Video Slicer application.
"""

import logging
import re
import time
from enum import Enum
from typing import Optional, Callable, Any, Dict


class ErrorType(Enum):
    """Types of errors that can occur in the application."""
    VALIDATION_ERROR = "validation_error"
    PRECONDITION_ERROR = "precondition_error"
    PROCESSING_ERROR = "processing_error"
    FILESYSTEM_ERROR = "filesystem_error"
    CONFIGURATION_ERROR = "configuration_error"


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class VideoSlicerError(Exception):
    """Base exception class for Video Slicer errors."""

    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.PROCESSING_ERROR,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        details: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.severity = severity
        self.details = details or {}
        self.original_exception = original_exception
        self.timestamp = time.time()

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            'message': self.message,
            'error_type': self.error_type.value,
            'severity': self.severity.value,
            'details': self.details,
            'timestamp': self.timestamp,
            'original_exception': str(self.original_exception) if self.original_exception else None
        }


class ValidationError(VideoSlicerError):
    """Error related to input validation."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault('severity', ErrorSeverity.LOW)
        super().__init__(message, error_type=ErrorType.VALIDATION_ERROR, **kwargs)


class SliceTooShortError(ValidationError):
    """Candidate slice is narrower than the minimum slice width."""

    def __init__(self, message: str = "Slices must be at least 2 seconds apart",
                 width: Optional[float] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.width = width
        self.details['width'] = width


class SliceOverlapError(ValidationError):
    """Candidate slice intersects an already committed slice."""

    def __init__(self, message: str = "Slices cannot have overlaps with each other",
                 conflicting_slice: Any = None, **kwargs):
        super().__init__(message, **kwargs)
        self.conflicting_slice = conflicting_slice
        self.details['conflicting_slice'] = repr(conflicting_slice) if conflicting_slice else None


class UnsupportedMediaError(ValidationError):
    """Selected file is not a video."""


class PreconditionError(VideoSlicerError):
    """Export refused before any work started."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, error_type=ErrorType.PRECONDITION_ERROR, **kwargs)


class EngineNotReadyError(PreconditionError):
    """Transcoding engine has not been initialized."""

    def __init__(self, message: str = "FFmpeg is not initialized. Please install FFmpeg and try again.",
                 **kwargs):
        super().__init__(message, **kwargs)
        self.details['suggested_solution'] = "Install FFmpeg and ensure it's in your PATH"


class NoSourceAssetError(PreconditionError):
    """No source video has been loaded."""

    def __init__(self, message: str = "No video source found. Please upload a video first.", **kwargs):
        super().__init__(message, **kwargs)


class EmptySliceSetError(PreconditionError):
    """There is nothing to export."""

    def __init__(self,
                 message: str = "There are no slices to export! Create some slices first then export them.",
                 **kwargs):
        super().__init__(message, **kwargs)


class ProcessingError(VideoSlicerError):
    """Error related to video processing operations."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, error_type=ErrorType.PROCESSING_ERROR, **kwargs)


class ExtractionFailure(ProcessingError):
    """A single per-slice extraction failed; the whole export is aborted."""

    def __init__(self, slice_index: int, cause: Exception, **kwargs):
        message = f"Error splitting video: slice {slice_index} failed: {cause}"
        kwargs.setdefault('severity', ErrorSeverity.HIGH)
        kwargs.setdefault('original_exception', cause)
        super().__init__(message, **kwargs)
        self.slice_index = slice_index
        self.cause = cause
        self.details['slice_index'] = slice_index


class ArchiveBuildError(ProcessingError):
    """Packing the extracted slices into one archive failed."""


class ExportCancelledError(ProcessingError):
    """Export was aborted through its cancellation token."""

    def __init__(self, message: str = "Export cancelled", **kwargs):
        kwargs.setdefault('severity', ErrorSeverity.LOW)
        super().__init__(message, **kwargs)


class SessionStateError(ProcessingError):
    """Slicing session operation invoked from the wrong state."""


class ConfigurationError(VideoSlicerError):
    """Error related to configuration issues."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, error_type=ErrorType.CONFIGURATION_ERROR, **kwargs)


class FileSystemError(VideoSlicerError):
    """Error related to file system operations."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, error_type=ErrorType.FILESYSTEM_ERROR, **kwargs)


class ErrorHandler:
    """Centralized error logging and user-facing message generation."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self.error_counts: Dict[str, int] = {}

    def handle_error(self, error: Exception, context: str = "") -> str:
        """
        Log an error and return the single message to show the user.

        Errors are never retried automatically.

        Args:
            error: The exception that occurred
            context: Additional context about where the error occurred

        Returns:
            Human-readable message describing the failure
        """
        error_key = f"{type(error).__name__}:{context}"
        self.error_counts[error_key] = self.error_counts.get(error_key, 0) + 1

        extra = {
            'error_type': type(error).__name__,
            'context': context
        }
        if isinstance(error, VideoSlicerError):
            extra['severity'] = error.severity.value
            extra['details'] = error.details

        if isinstance(error, (ValidationError, PreconditionError, ExportCancelledError)):
            self.logger.warning(f"{context or 'operation'} refused: {error}", extra=extra)
        else:
            self.logger.error(f"Error in {context or 'operation'}: {error}", extra=extra)

        return self.user_message(error)

    @staticmethod
    def user_message(error: Exception) -> str:
        """Build the human-readable message for an error."""
        if isinstance(error, VideoSlicerError):
            return error.message
        text = str(error)
        return f"Unexpected error: {text}" if text else "Unknown error"

    def reset_error_counts(self) -> None:
        """Reset error counters."""
        self.error_counts.clear()

    def classify_engine_error(self, stderr: str, returncode: Optional[int] = None) -> ProcessingError:
        """
        Classify FFmpeg failure output into a processing error.

        Args:
            stderr: FFmpeg standard error output
            returncode: FFmpeg exit status, if known

        Returns:
            ProcessingError with a concise description
        """
        text = (stderr or "").strip()
        lowered = text.lower()
        details: Dict[str, Any] = {'returncode': returncode}

        if 'invalid data found' in lowered or 'moov atom not found' in lowered:
            reason = "input is not a readable video container"
        elif 'could not find tag for codec' in lowered or 'codec not currently supported' in lowered:
            reason = "codec cannot be stream-copied into the source container"
        elif 'no such file or directory' in lowered:
            reason = "engine workspace file is missing"
        elif re.search(r'invalid duration|invalid argument', lowered):
            reason = "invalid time range"
        elif 'no space left on device' in lowered:
            reason = "no space left on device"
        else:
            reason = f"ffmpeg exited with status {returncode}" if returncode is not None else "ffmpeg failed"

        tail = text.splitlines()[-5:] if text else []
        details['stderr_tail'] = tail
        return ProcessingError(f"Processing error: {reason}", details=details)

    def handle_graceful_degradation(self, error: Exception, operation: str,
                                    fallback_action: Optional[Callable] = None) -> Any:
        """
        Handle graceful degradation for non-critical operations.

        Args:
            error: The error that occurred
            operation: Description of the operation that failed
            fallback_action: Optional fallback function to execute

        Returns:
            Result of fallback action or None
        """
        self.logger.warning(
            f"Non-critical operation failed: {operation} - {str(error)}",
            extra={'operation': operation, 'error_type': type(error).__name__}
        )

        if fallback_action:
            try:
                return fallback_action()
            except Exception as fallback_error:
                self.logger.warning(
                    f"Fallback action also failed for {operation}: {str(fallback_error)}"
                )

        return None
