"""
Interface definitions for the collaborators used by the export pipeline.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, TYPE_CHECKING

from models.core import ArchiveEntry

if TYPE_CHECKING:
    from services.task_queue import CancellationToken


class SourceAssetProvider(ABC):
    """Read-only access to the source video."""

    @property
    @abstractmethod
    def duration(self) -> float:
        """Total duration of the asset in seconds."""
        pass

    @property
    @abstractmethod
    def container_extension(self) -> str:
        """Container extension of the asset, e.g. ``mp4``."""
        pass

    @property
    def name(self) -> str:
        """Display name of the asset."""
        return "source"

    @property
    def size_bytes(self) -> int:
        """Size of the asset in bytes, 0 when unknown."""
        return 0

    @abstractmethod
    def get_byte_stream(self) -> bytes:
        """Return the full content of the asset."""
        pass


class TranscodingEngine(ABC):
    """Codec-preserving byte-range extraction."""

    # Whether concurrent ``extract`` calls on one instance are safe.
    reentrant = False

    @property
    @abstractmethod
    def is_ready(self) -> bool:
        """Whether the engine has been initialized."""
        pass

    @abstractmethod
    def initialize(self) -> bool:
        """Prepare the engine for use. Returns readiness."""
        pass

    @abstractmethod
    def extract(self, input_bytes: bytes, container_ext: str, start_timestamp: str,
                duration_seconds: float,
                cancel_token: Optional["CancellationToken"] = None) -> bytes:
        """Extract ``duration_seconds`` starting at ``start_timestamp`` with stream copy."""
        pass

    def release_input(self, input_bytes: bytes) -> None:
        """Drop any engine-side copy of ``input_bytes``, the same buffer passed to ``extract``."""

    def close(self) -> None:
        """Release all engine resources."""


class ArchiveBuilder(ABC):
    """Packs named byte buffers into one archive."""

    @abstractmethod
    def build(self, entries: List[ArchiveEntry]) -> bytes:
        """Build an archive from entries, preserving their order."""
        pass


class DownloadSink(ABC):
    """Delivers the final artifact to the user."""

    @abstractmethod
    def deliver(self, data: bytes, suggested_filename: str) -> None:
        """Deliver ``data`` under ``suggested_filename``."""
        pass
