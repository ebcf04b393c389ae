"""
Core data models for the Video Slicer application.
"""

import math
from dataclasses import dataclass, field
from typing import List, Optional, Union


# Minimum width of a committed slice, in seconds.
MIN_SLICE_SECONDS = 2.0

DEFAULT_ARCHIVE_FILENAME = "video_slices_export.zip"


@dataclass(frozen=True)
class Slice:
    """A time interval over the source asset, in seconds."""
    start: float
    end: float

    def __post_init__(self):
        """Validate slice bounds after initialization."""
        if not (math.isfinite(self.start) and math.isfinite(self.end)):
            raise ValueError("Slice bounds must be finite")
        if self.start < 0 or self.end < 0:
            raise ValueError("Slice bounds cannot be negative")
        if self.end < self.start:
            raise ValueError("Slice end cannot be before its start")

    @property
    def duration(self) -> float:
        return self.end - self.start

    def contains(self, point: float) -> bool:
        """Closed-interval containment test."""
        return self.start <= point <= self.end

    def overlaps(self, other: "Slice") -> bool:
        """Closed-interval overlap test; touching endpoints overlap."""
        return self.start <= other.end and other.start <= self.end


@dataclass(frozen=True)
class Idle:
    """No slice is being defined."""


@dataclass(frozen=True)
class Active:
    """A slice is being defined from a provisional start point."""
    provisional_start: float


SessionState = Union[Idle, Active]


@dataclass
class ArchiveEntry:
    """One named file inside the export archive."""
    path: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class ExportResult:
    """Result of one export invocation."""
    entries: List[ArchiveEntry] = field(default_factory=list)
    archive: bytes = b""
    archive_filename: str = DEFAULT_ARCHIVE_FILENAME
    export_time: float = 0.0

    @property
    def slice_count(self) -> int:
        return len(self.entries)

    def entry_paths(self) -> List[str]:
        """Archive paths in sequence order."""
        return [entry.path for entry in self.entries]


@dataclass
class ExportProgress:
    """Progress information for export operations."""
    completed: int
    total: int
    current_path: str = ""

    def __post_init__(self):
        """Clamp progress values after initialization."""
        if self.total < 0:
            self.total = 0
        if self.completed < 0:
            self.completed = 0
        elif self.completed > self.total:
            self.completed = self.total

    @property
    def progress_percent(self) -> float:
        if self.total == 0:
            return 100.0
        return self.completed * 100.0 / self.total

    def is_complete(self) -> bool:
        """Check if every extraction has finished."""
        return self.completed >= self.total


@dataclass
class SlicerConfig:
    """Configuration settings for slicing and export operations."""
    output_directory: str = "./exports"
    archive_filename: str = DEFAULT_ARCHIVE_FILENAME
    max_parallel_extractions: int = 1
    ffmpeg_timeout: int = 300
    legacy_whole_second_seek: bool = False
    check_disk_space: bool = True
    workspace_dir: Optional[str] = None

    def __post_init__(self):
        """Validate configuration values after initialization."""
        if self.max_parallel_extractions < 1:
            self.max_parallel_extractions = 1
        elif self.max_parallel_extractions > 8:
            self.max_parallel_extractions = 8

        if self.ffmpeg_timeout < 1:
            self.ffmpeg_timeout = 1
