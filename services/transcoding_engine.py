"""
FFmpeg-backed transcoding engine for codec-preserving slice extraction.
"""

import os
import shutil
import subprocess
import tempfile
import threading
import time
import uuid
from pathlib import Path
from typing import Dict, List, Optional, Tuple
import logging

from services.interfaces import TranscodingEngine
from services.formatting import format_duration_seconds
from services.task_queue import CancellationToken
from config.error_handling import ErrorHandler, ProcessingError

logger = logging.getLogger(__name__)


class FFmpegEngine(TranscodingEngine):
    """
    Transcoding engine that runs FFmpeg with stream copy (-c copy).

    Inputs are staged once per input buffer into a private workspace
    directory, keyed by the identity of the buffer the caller passes; every ``extract`` call writes a uniquely named output, so
    concurrent calls on one instance do not interfere.
    """

    reentrant = True

    # Interval between cancellation checks while FFmpeg runs
    POLL_INTERVAL = 0.1

    def __init__(self, timeout: int = 300, workspace_dir: Optional[str] = None,
                 ffmpeg_path: Optional[str] = None):
        """
        Initialize the engine.

        Args:
            timeout: Maximum seconds a single extraction may run
            workspace_dir: Parent directory for the engine workspace
            ffmpeg_path: Explicit FFmpeg executable; searched on PATH when omitted
        """
        self.timeout = timeout
        self.workspace_parent = workspace_dir
        self.ffmpeg_path = ffmpeg_path
        self.workspace: Optional[Path] = None
        self.error_handler = ErrorHandler(logger)
        self._lock = threading.Lock()
        self._staged: Dict[int, Tuple[bytes, Path]] = {}

    @property
    def is_ready(self) -> bool:
        return self.ffmpeg_path is not None and self.workspace is not None

    def initialize(self) -> bool:
        """
        Locate FFmpeg and create the workspace.

        Returns:
            True if the engine is ready to extract
        """
        if self.is_ready:
            return True

        if self.ffmpeg_path is None:
            self.ffmpeg_path = self._find_ffmpeg()
        if not self.ffmpeg_path:
            logger.warning("FFmpeg not found in system PATH")
            return False

        if self.workspace_parent:
            Path(self.workspace_parent).mkdir(parents=True, exist_ok=True)
        self.workspace = Path(tempfile.mkdtemp(prefix="video_slicer_", dir=self.workspace_parent))
        logger.debug(f"FFmpeg workspace created at {self.workspace}")
        return True

    def extract(self, input_bytes: bytes, container_ext: str, start_timestamp: str,
                duration_seconds: float,
                cancel_token: Optional[CancellationToken] = None) -> bytes:
        """
        Extract one slice from ``input_bytes`` without re-encoding.

        Args:
            input_bytes: Content of the source video
            container_ext: Container extension of input and output
            start_timestamp: Seek offset understood by FFmpeg
            duration_seconds: Length of the slice in seconds
            cancel_token: Checked while FFmpeg runs; FFmpeg is killed on cancel

        Returns:
            Content of the extracted slice

        Raises:
            ProcessingError: If the engine is not ready or FFmpeg fails
            ExportCancelledError: If cancellation was requested
        """
        if not self.is_ready:
            raise ProcessingError("FFmpeg is not initialized")

        if cancel_token:
            cancel_token.raise_if_cancelled()

        input_path = self._stage_input(input_bytes, container_ext)
        output_path = self.workspace / f"slice_{uuid.uuid4().hex}.{container_ext}"

        cmd = self.build_command(input_path, output_path, start_timestamp, duration_seconds)
        logger.debug(f"Running FFmpeg command: {' '.join(cmd)}")

        try:
            returncode, stderr = self._run(cmd, cancel_token)

            if returncode != 0:
                logger.error(f"FFmpeg failed with return code {returncode}")
                raise self.error_handler.classify_engine_error(stderr, returncode)

            if not output_path.exists() or output_path.stat().st_size == 0:
                raise ProcessingError(
                    f"FFmpeg produced no output for slice at {start_timestamp}",
                    details={'start': start_timestamp, 'duration': duration_seconds}
                )

            return output_path.read_bytes()
        finally:
            self._remove(output_path)

    def build_command(self, input_path: Path, output_path: Path, start_timestamp: str,
                      duration_seconds: float) -> List[str]:
        """FFmpeg argument list for one stream-copy extraction."""
        return [
            self.ffmpeg_path,
            '-hide_banner',
            '-loglevel', 'error',
            '-ss', start_timestamp,
            '-i', str(input_path),
            '-t', format_duration_seconds(duration_seconds),
            '-c', 'copy',  # Stream copy to avoid re-encoding
            '-avoid_negative_ts', 'make_zero',
            '-y',
            str(output_path)
        ]

    def release_input(self, input_bytes: bytes) -> None:
        """Delete the staged copy of ``input_bytes`` from the workspace."""
        with self._lock:
            entry = self._staged.get(id(input_bytes))
            if entry is None or entry[0] is not input_bytes:
                return
            del self._staged[id(input_bytes)]
        self._remove(entry[1])

    def close(self) -> None:
        """Remove the workspace and everything staged in it."""
        with self._lock:
            self._staged.clear()
            workspace, self.workspace = self.workspace, None
        if workspace is not None:
            shutil.rmtree(workspace, ignore_errors=True)
            logger.debug(f"FFmpeg workspace removed: {workspace}")

    def __enter__(self) -> "FFmpegEngine":
        self.initialize()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _run(self, cmd: List[str], cancel_token: Optional[CancellationToken]):
        process = subprocess.Popen(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.PIPE)
        deadline = time.monotonic() + self.timeout

        try:
            while True:
                try:
                    _, stderr = process.communicate(timeout=self.POLL_INTERVAL)
                    return process.returncode, stderr.decode('utf-8', errors='replace')
                except subprocess.TimeoutExpired:
                    pass

                if cancel_token is not None and cancel_token.is_cancelled:
                    self._kill(process)
                    cancel_token.raise_if_cancelled()

                if time.monotonic() > deadline:
                    self._kill(process)
                    raise ProcessingError(
                        f"FFmpeg timed out after {self.timeout} seconds",
                        details={'timeout': self.timeout}
                    )
        except BaseException:
            if process.poll() is None:
                self._kill(process)
            raise

    def _kill(self, process: subprocess.Popen) -> None:
        process.kill()
        process.communicate()

    def _stage_input(self, input_bytes: bytes, container_ext: str) -> Path:
        # The entry holds a reference to the buffer, so its id stays unique while staged
        with self._lock:
            entry = self._staged.get(id(input_bytes))
            if entry is not None and entry[0] is input_bytes and entry[1].exists():
                return entry[1]
            path = self.workspace / f"input_{uuid.uuid4().hex}.{container_ext}"
            path.write_bytes(input_bytes)
            self._staged[id(input_bytes)] = (input_bytes, path)
            logger.debug(f"Staged input ({len(input_bytes)} bytes) at {path}")
        return path

    def _remove(self, path: Path) -> None:
        try:
            if path.exists():
                os.remove(path)
        except OSError as e:
            self.error_handler.handle_graceful_degradation(e, f"remove {path}")

    def _find_ffmpeg(self) -> Optional[str]:
        """
        Find FFmpeg executable in system PATH.

        Returns:
            Path to FFmpeg executable or None if not found
        """
        for name in ('ffmpeg', 'ffmpeg.exe'):
            ffmpeg_path = shutil.which(name)
            if ffmpeg_path:
                logger.info(f"Found FFmpeg at: {ffmpeg_path}")
                return ffmpeg_path

        return None
