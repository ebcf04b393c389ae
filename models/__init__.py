"""
Data models for the Video Slicer application.
"""

from .core import (
    Slice, Idle, Active, SessionState, ArchiveEntry, ExportResult,
    ExportProgress, SlicerConfig, MIN_SLICE_SECONDS, DEFAULT_ARCHIVE_FILENAME
)

__all__ = [
    'Slice',
    'Idle',
    'Active',
    'SessionState',
    'ArchiveEntry',
    'ExportResult',
    'ExportProgress',
    'SlicerConfig',
    'MIN_SLICE_SECONDS',
    'DEFAULT_ARCHIVE_FILENAME'
]
