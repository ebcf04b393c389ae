"""
Export orchestration: turns the committed slices into one delivered archive.
"""

import time
import uuid
from dataclasses import dataclass
from typing import Callable, List, Optional
import logging

from models.core import Slice, ArchiveEntry, ExportResult, ExportProgress, DEFAULT_ARCHIVE_FILENAME
from services.interfaces import (
    SourceAssetProvider, TranscodingEngine, ArchiveBuilder, DownloadSink
)
from services.interval_store import IntervalStore
from services.task_queue import CancellationToken, ExtractionQueue
from services.formatting import format_engine_timestamp, slice_entry_path
from config.error_handling import (
    EngineNotReadyError, NoSourceAssetError, EmptySliceSetError,
    ArchiveBuildError, ExportCancelledError, VideoSlicerError
)
from config.logging_config import AuditLogger, get_performance_logger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExtractionJob:
    """One planned extraction, numbered before any work starts."""
    index: int
    slice: Slice
    path: str
    start_timestamp: str

    @property
    def duration(self) -> float:
        return self.slice.duration


class ExportOrchestrator:
    """
    Drives per-slice extraction and assembles the export archive.

    Either a complete archive reaches the download sink or nothing does:
    a failing extraction aborts the export before the archive builder runs.
    """

    def __init__(
        self,
        engine: TranscodingEngine,
        archive_builder: ArchiveBuilder,
        download_sink: DownloadSink,
        max_workers: int = 1,
        legacy_whole_second_seek: bool = False,
        archive_filename: str = DEFAULT_ARCHIVE_FILENAME,
        audit_logger: Optional[AuditLogger] = None
    ):
        """
        Initialize the orchestrator.

        Args:
            engine: Transcoding engine shared by all extractions
            archive_builder: Packs the extracted slices
            download_sink: Receives the finished archive
            max_workers: Concurrent extractions; forced to 1 for non-reentrant engines
            legacy_whole_second_seek: Truncate engine seek offsets to whole seconds
            archive_filename: Suggested filename handed to the sink
            audit_logger: Optional audit trail
        """
        self.engine = engine
        self.archive_builder = archive_builder
        self.download_sink = download_sink
        self.legacy_whole_second_seek = legacy_whole_second_seek
        self.archive_filename = archive_filename
        self.audit_logger = audit_logger
        self.performance_logger = get_performance_logger()
        self._progress_callback: Optional[Callable[[ExportProgress], None]] = None

        workers = max_workers if getattr(engine, 'reentrant', False) else 1
        if workers != max_workers:
            logger.info("Transcoding engine is not reentrant; extractions will run one at a time")
        self.queue = ExtractionQueue(workers)

    def set_progress_callback(self, callback: Optional[Callable[[ExportProgress], None]]) -> None:
        """Set callback function for progress updates."""
        self._progress_callback = callback

    def check_preconditions(self, store: IntervalStore,
                            asset: Optional[SourceAssetProvider]) -> List[Slice]:
        """
        Verify the export can start and return the ordered slices.

        Raises:
            EngineNotReadyError: If the engine is missing or not initialized
            NoSourceAssetError: If there is no source video
            EmptySliceSetError: If no slices are committed
        """
        if self.engine is None or not self.engine.is_ready:
            raise EngineNotReadyError()
        if asset is None:
            raise NoSourceAssetError()

        slices = store.all()
        if not slices:
            raise EmptySliceSetError()
        return slices

    def plan(self, slices: List[Slice], extension: str) -> List[ExtractionJob]:
        """Number slices from 1 in ascending order and name their entries."""
        return [
            ExtractionJob(
                index=index,
                slice=slice_,
                path=slice_entry_path(index, slice_, extension),
                start_timestamp=format_engine_timestamp(
                    slice_.start, whole_seconds=self.legacy_whole_second_seek
                )
            )
            for index, slice_ in enumerate(slices, start=1)
        ]

    def export(self, store: IntervalStore, asset: Optional[SourceAssetProvider],
               cancel_token: Optional[CancellationToken] = None) -> ExportResult:
        """
        Export every committed slice into one archive and deliver it.

        Args:
            store: Committed slices; read only
            asset: Source video
            cancel_token: Aborts the export at the next suspension point

        Returns:
            ExportResult with the ordered entries and the archive bytes

        Raises:
            PreconditionError: Refused before any extraction started
            ExtractionFailure: A slice could not be extracted
            ArchiveBuildError: Packing failed after all extractions succeeded
            ExportCancelledError: The export was cancelled
        """
        slices = self.check_preconditions(store, asset)
        token = cancel_token or CancellationToken()
        extension = asset.container_extension
        jobs = self.plan(slices, extension)

        operation_id = uuid.uuid4().hex
        started = time.time()
        self.performance_logger.start_operation(
            operation_id, "export", context={'slices': len(jobs), 'source': asset.name}
        )
        if self.audit_logger:
            self.audit_logger.log_export_start(asset.name, len(jobs), {
                'workers': self.queue.max_workers,
                'legacy_whole_second_seek': self.legacy_whole_second_seek
            })
        logger.info(f"Exporting {len(jobs)} slices from {asset.name}")

        try:
            token.raise_if_cancelled()
            source = asset.get_byte_stream()

            try:
                outputs = self.queue.run(
                    jobs,
                    lambda job, job_token: self._extract(job, source, extension, job_token),
                    cancel_token=token,
                    on_result=self._progress_reporter(jobs)
                )
            finally:
                self.engine.release_input(source)

            entries = [ArchiveEntry(job.path, data) for job, data in zip(jobs, outputs)]

            token.raise_if_cancelled()
            archive = self._build_archive(entries)

            token.raise_if_cancelled()
            self.download_sink.deliver(archive, self.archive_filename)

        except Exception as e:
            self.performance_logger.end_operation(operation_id, "export", success=False)
            if self.audit_logger:
                if isinstance(e, VideoSlicerError) and not isinstance(e, ExportCancelledError):
                    self.audit_logger.log_error_event(
                        type(e).__name__, e.message,
                        {'source': asset.name, 'slices': len(jobs), **e.details},
                        severity=e.severity.value
                    )
                self.audit_logger.log_export_complete(
                    asset.name, False, error=str(e), duration=time.time() - started
                )
            raise

        elapsed = self.performance_logger.end_operation(operation_id, "export", success=True)
        result = ExportResult(
            entries=entries,
            archive=archive,
            archive_filename=self.archive_filename,
            export_time=elapsed
        )
        if self.audit_logger:
            self.audit_logger.log_export_complete(
                asset.name, True, entries=result.entry_paths(),
                duration=elapsed, archive_size=len(archive)
            )
        logger.info(f"Successfully exported {result.slice_count} slices")
        return result

    def _extract(self, job: ExtractionJob, source: bytes, extension: str,
                 token: CancellationToken) -> bytes:
        logger.debug(f"Extracting slice {job.index}: {job.start_timestamp} for {job.duration:.3f}s")
        data = self.engine.extract(
            source, extension, job.start_timestamp, job.duration, cancel_token=token
        )
        token.raise_if_cancelled()
        return data

    def _build_archive(self, entries: List[ArchiveEntry]) -> bytes:
        try:
            return self.archive_builder.build(entries)
        except VideoSlicerError:
            raise
        except Exception as e:
            raise ArchiveBuildError(f"Failed to build archive: {e}", original_exception=e)

    def _progress_reporter(self, jobs: List[ExtractionJob]) -> Callable[[int, bytes], None]:
        total = len(jobs)
        completed = [0]

        def report(index: int, _data: bytes) -> None:
            completed[0] += 1
            if self._progress_callback:
                self._progress_callback(
                    ExportProgress(completed[0], total, jobs[index - 1].path)
                )

        return report
