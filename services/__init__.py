"""
Service layer components for the Video Slicer application.
"""

from .interfaces import (
    SourceAssetProvider,
    TranscodingEngine,
    ArchiveBuilder,
    DownloadSink
)
from .interval_store import IntervalStore
from .slicing_session import SlicingSession
from .export_orchestrator import ExportOrchestrator

__all__ = [
    'SourceAssetProvider',
    'TranscodingEngine',
    'ArchiveBuilder',
    'DownloadSink',
    'IntervalStore',
    'SlicingSession',
    'ExportOrchestrator'
]
