"""
Zip archive builder for exported slices.
"""

import io
import zipfile
from typing import List
import logging

from models.core import ArchiveEntry
from services.interfaces import ArchiveBuilder
from config.error_handling import ArchiveBuildError

logger = logging.getLogger(__name__)


class ZipArchiveBuilder(ArchiveBuilder):
    """
    Packs entries into an in-memory zip, in the order given.

    Video data is already compressed, so entries are stored rather than
    deflated unless another compression method is requested.
    """

    def __init__(self, compression: int = zipfile.ZIP_STORED):
        self.compression = compression

    def build(self, entries: List[ArchiveEntry]) -> bytes:
        """
        Build a zip archive from entries.

        Raises:
            ArchiveBuildError: If an entry is invalid or packing fails
        """
        seen = set()
        for entry in entries:
            if not entry.path or entry.path.startswith('/') or '..' in entry.path.split('/'):
                raise ArchiveBuildError(f"Invalid archive entry path: {entry.path!r}")
            if entry.path in seen:
                raise ArchiveBuildError(f"Duplicate archive entry path: {entry.path}")
            seen.add(entry.path)

        buffer = io.BytesIO()
        try:
            with zipfile.ZipFile(buffer, 'w', compression=self.compression) as archive:
                for entry in entries:
                    archive.writestr(entry.path, entry.data)
        except (zipfile.LargeZipFile, OSError, ValueError) as e:
            raise ArchiveBuildError(
                f"Failed to build archive: {e}",
                original_exception=e
            )

        data = buffer.getvalue()
        logger.info(f"Built archive with {len(entries)} entries ({len(data)} bytes)")
        return data
