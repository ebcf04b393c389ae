"""
Main application controller for the Video Slicer.
"""

import math
from pathlib import Path
from typing import Optional, List, Union, Callable

from models.core import Slice, SlicerConfig, ExportResult, ExportProgress
from services.interfaces import (
    SourceAssetProvider, TranscodingEngine, ArchiveBuilder, DownloadSink
)
from services.interval_store import IntervalStore
from services.slicing_session import SlicingSession
from services.export_orchestrator import ExportOrchestrator
from services.transcoding_engine import FFmpegEngine
from services.archive_builder import ZipArchiveBuilder
from services.download_sink import FileDownloadSink
from services.source_asset import FileSourceAsset
from services.task_queue import CancellationToken
from services.formatting import format_time
from config.logging_config import get_logger, AuditLogger
from config.error_handling import (
    ErrorHandler, VideoSlicerError, NoSourceAssetError, ValidationError,
    SessionStateError, SliceOverlapError
)
from config.filesystem_validator import FileSystemValidator


class VideoSlicerApp:
    """
    Application controller that owns the editing state of one timeline.

    Holds the playhead position, the committed slices and the slicing
    session, and wires the export pipeline to its collaborators. Slices
    live only as long as this object.
    """

    def __init__(
        self,
        config: Optional[SlicerConfig] = None,
        engine: Optional[TranscodingEngine] = None,
        archive_builder: Optional[ArchiveBuilder] = None,
        download_sink: Optional[DownloadSink] = None,
        audit_logger: Optional[AuditLogger] = None
    ):
        """
        Initialize the Video Slicer application.

        Args:
            config: Slicer configuration; defaults are used when omitted
            engine: Transcoding engine; FFmpeg is used when omitted
            archive_builder: Archive builder; zip when omitted
            download_sink: Delivery target; the configured output directory when omitted
            audit_logger: Optional audit trail for slice and export events
        """
        self.config = config or SlicerConfig()
        self.logger = get_logger(__name__)
        self.error_handler = ErrorHandler(self.logger)
        self.audit_logger = audit_logger
        self.filesystem_validator = FileSystemValidator(self.logger)

        self.store = IntervalStore()
        self.session = SlicingSession(self.store)

        self.engine = engine or FFmpegEngine(
            timeout=self.config.ffmpeg_timeout,
            workspace_dir=self.config.workspace_dir
        )
        self.download_sink = download_sink or FileDownloadSink(self.config.output_directory)
        self.orchestrator = ExportOrchestrator(
            engine=self.engine,
            archive_builder=archive_builder or ZipArchiveBuilder(),
            download_sink=self.download_sink,
            max_workers=self.config.max_parallel_extractions,
            legacy_whole_second_seek=self.config.legacy_whole_second_seek,
            archive_filename=self.config.archive_filename,
            audit_logger=audit_logger
        )

        self.asset: Optional[SourceAssetProvider] = None
        self.current_time = 0.0
        self._cancel_token: Optional[CancellationToken] = None
        self._is_running = False

        self.logger.info("Video Slicer application initialized")

    def initialize_engine(self) -> bool:
        """Prepare the transcoding engine. Returns readiness."""
        ready = self.engine.initialize()
        if not ready:
            self.logger.warning("Transcoding engine could not be initialized")
        return ready

    def load_source(self, source: Union[str, Path, SourceAssetProvider]) -> SourceAssetProvider:
        """
        Replace the source video.

        Replacing the source discards the committed slices and any slice in
        progress, and moves the playhead back to the start.
        """
        asset = source if isinstance(source, SourceAssetProvider) else FileSourceAsset(source)

        if self.session.is_active or len(self.store):
            self.logger.info("Source replaced; discarding existing slices")
        self.session.reset()
        self.store.clear()

        self.asset = asset
        self.current_time = 0.0
        self.logger.info(f"Loaded source video: {asset.name}")
        return asset

    def seek(self, time_seconds: float) -> float:
        """
        Move the playhead, clamped to the duration of the source.

        Raises:
            NoSourceAssetError: If no source video is loaded
            ValidationError: If ``time_seconds`` is not a finite number
        """
        asset = self._require_asset()
        if not math.isfinite(time_seconds):
            raise ValidationError(f"Invalid playhead time: {time_seconds}")
        self.current_time = min(max(time_seconds, 0.0), asset.duration)
        return self.current_time

    @property
    def slices(self) -> List[Slice]:
        return self.store.all()

    def slice_at_playhead(self) -> Optional[Slice]:
        return self.store.query(self.current_time)

    def start_slicing(self) -> bool:
        """Begin a slice at the playhead; refused inside an existing slice."""
        self._require_asset()
        return self.session.begin(self.current_time)

    def end_slicing(self) -> Slice:
        """
        Commit the slice in progress at the playhead.

        Raises:
            SessionStateError, SliceTooShortError, SliceOverlapError
        """
        slice_ = self.session.commit(self.current_time)
        if self.audit_logger:
            self.audit_logger.log_slice_added(slice_.start, slice_.end)
        return slice_

    def cancel_slicing(self) -> bool:
        return self.session.cancel()

    def delete_slice_at_playhead(self) -> Optional[Slice]:
        """Remove the slice under the playhead, if any."""
        removed = self.session.remove_slice_at(self.current_time)
        if removed and self.audit_logger:
            self.audit_logger.log_slice_removed(removed.start, removed.end)
        return removed

    def add_slice(self, start: float, end: float) -> Slice:
        """
        Define a slice from ``start`` to ``end`` through the slicing session.

        Raises:
            ValidationError: If a bound is not finite or lies outside the source duration
            SessionStateError: If another slice is in progress
            SliceOverlapError: If ``start`` lies inside an existing slice
            SliceTooShortError: If the slice is too narrow
        """
        asset = self._require_asset()
        for bound in (start, end):
            if not math.isfinite(bound):
                raise ValidationError(f"Invalid slice time: {bound}")
            if bound < 0 or bound > asset.duration:
                raise ValidationError(
                    f"Time {format_time(bound)} is outside the video (0 to {format_time(asset.duration)})"
                )
        if self.session.is_active:
            raise SessionStateError("Finish or cancel the slice in progress first")

        self.seek(start)
        if not self.start_slicing():
            raise SliceOverlapError(conflicting_slice=self.slice_at_playhead())

        self.seek(end)
        try:
            return self.end_slicing()
        except VideoSlicerError:
            self.session.cancel()
            raise

    def set_progress_callback(self, callback: Optional[Callable[[ExportProgress], None]]) -> None:
        """Set progress callback for export operations."""
        self.orchestrator.set_progress_callback(callback)

    def validate_output(self) -> None:
        """
        Check the output directory can take an export of the current source.

        Raises:
            FileSystemError: If the directory is unusable or too full
        """
        asset = self._require_asset()
        self.filesystem_validator.validate_export_prerequisites(
            self.config.output_directory,
            asset.size_bytes,
            check_space=self.config.check_disk_space
        )

    def export(self) -> ExportResult:
        """
        Export the committed slices as one archive.

        Raises:
            VideoSlicerError: If the export is refused or fails
        """
        self._cancel_token = CancellationToken()
        self._is_running = True
        try:
            if self.asset is not None and isinstance(self.download_sink, FileDownloadSink):
                self.orchestrator.check_preconditions(self.store, self.asset)
                self.validate_output()
            return self.orchestrator.export(self.store, self.asset, self._cancel_token)
        finally:
            self._is_running = False
            self._cancel_token = None

    def cancel_export(self, reason: str = "cancelled by user") -> bool:
        """Request cancellation of a running export."""
        token = self._cancel_token
        if token is None:
            return False
        token.cancel(reason)
        self.logger.info(f"Export cancellation requested: {reason}")
        return True

    def is_running(self) -> bool:
        """Check if an export is in progress."""
        return self._is_running

    def shutdown(self) -> None:
        """Gracefully shutdown the application."""
        if self._is_running:
            self.cancel_export("application shutdown")

        try:
            self.engine.close()
        except Exception as e:
            self.error_handler.handle_graceful_degradation(e, "close transcoding engine")

        self.error_handler.reset_error_counts()
        self.logger.info("Application shutdown complete")

    def _require_asset(self) -> SourceAssetProvider:
        if self.asset is None:
            raise NoSourceAssetError()
        return self.asset
