"""
File-backed source asset provider.
"""

import json
import mimetypes
import shutil
import subprocess
from pathlib import Path
from typing import Optional, Union
import logging

from services.interfaces import SourceAssetProvider
from config.error_handling import (
    UnsupportedMediaError, NoSourceAssetError, ProcessingError, FileSystemError
)

logger = logging.getLogger(__name__)


# MIME types with a fixed container extension
MIME_EXTENSIONS = {
    'video/webm': 'webm',
    'video/mp4': 'mp4',
    'video/quicktime': 'mov',
}

DEFAULT_EXTENSION = 'mp4'


class FileSourceAsset(SourceAssetProvider):
    """
    Source video read from the local file system.

    The duration is probed lazily with FFprobe (falling back to parsing
    FFmpeg's banner) and cached.
    """

    def __init__(self, path: Union[str, Path], ffprobe_path: Optional[str] = None,
                 ffmpeg_path: Optional[str] = None):
        """
        Args:
            path: Path to the video file
            ffprobe_path: Explicit FFprobe executable
            ffmpeg_path: Explicit FFmpeg executable used as a duration fallback

        Raises:
            NoSourceAssetError: If the file does not exist
            UnsupportedMediaError: If the file is not a video
        """
        self.path = Path(path)
        if not self.path.is_file():
            raise NoSourceAssetError(f"No video source found at {self.path}. Please select a video first.")

        self.mime_type = mimetypes.guess_type(self.path.name)[0] or ''
        if not self.mime_type.startswith('video/'):
            raise UnsupportedMediaError(
                f"{self.path.name} is not a video file",
                details={'mime_type': self.mime_type}
            )

        self.ffprobe_path = ffprobe_path or shutil.which('ffprobe')
        self.ffmpeg_path = ffmpeg_path or shutil.which('ffmpeg')
        self._duration: Optional[float] = None

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def size_bytes(self) -> int:
        return self.path.stat().st_size

    @property
    def container_extension(self) -> str:
        return MIME_EXTENSIONS.get(self.mime_type, DEFAULT_EXTENSION)

    @property
    def duration(self) -> float:
        if self._duration is None:
            self._duration = self._probe_duration()
        return self._duration

    def get_byte_stream(self) -> bytes:
        try:
            return self.path.read_bytes()
        except OSError as e:
            raise FileSystemError(
                f"Could not read video {self.path}: {e}",
                original_exception=e
            )

    def _probe_duration(self) -> float:
        """
        Get the duration of the video using FFprobe.

        Raises:
            ProcessingError: If no duration could be determined
        """
        if self.ffprobe_path:
            cmd = [
                self.ffprobe_path,
                '-v', 'quiet',
                '-print_format', 'json',
                '-show_format',
                str(self.path)
            ]
            try:
                result = subprocess.run(cmd, capture_output=True, text=True, timeout=30)
                if result.returncode == 0:
                    data = json.loads(result.stdout or '{}')
                    duration_str = data.get('format', {}).get('duration')
                    if duration_str:
                        return float(duration_str)
            except (subprocess.TimeoutExpired, json.JSONDecodeError, ValueError) as e:
                logger.warning(f"FFprobe could not read duration of {self.path}: {e}")

        duration = self._duration_from_ffmpeg()
        if duration is None:
            raise ProcessingError(f"Could not determine duration of video: {self.path}")
        return duration

    def _duration_from_ffmpeg(self) -> Optional[float]:
        if not self.ffmpeg_path:
            return None

        try:
            result = subprocess.run(
                [self.ffmpeg_path, '-i', str(self.path)],
                capture_output=True, text=True, timeout=30
            )
        except subprocess.TimeoutExpired:
            logger.error(f"FFmpeg timeout while probing {self.path}")
            return None

        for line in result.stderr.split('\n'):
            if 'Duration:' in line:
                duration_part = line.split('Duration:')[1].split(',')[0].strip()
                try:
                    return parse_duration_string(duration_part)
                except ValueError as e:
                    logger.error(f"Error parsing duration string '{duration_part}': {e}")
                    return None

        return None


def parse_duration_string(duration_str: str) -> float:
    """
    Parse FFmpeg's ``HH:MM:SS.ms`` duration into seconds.

    Raises:
        ValueError: If the string is not in that format
    """
    parts = duration_str.strip().split(':')
    if len(parts) != 3:
        raise ValueError(f"Invalid duration format: {duration_str}")

    hours, minutes, seconds = (float(p) for p in parts)
    return hours * 3600 + minutes * 60 + seconds
