"""
Download sink writing the exported archive to the output directory.
"""

import os
from pathlib import Path
from typing import Optional, Union
import logging

from services.interfaces import DownloadSink
from config.error_handling import FileSystemError

logger = logging.getLogger(__name__)


class FileDownloadSink(DownloadSink):
    """
    Writes delivered archives into a directory.

    Data is written to a ``.part`` file first and renamed into place, so a
    partially written archive never appears under its final name.
    """

    def __init__(self, output_directory: Union[str, Path]):
        self.output_directory = Path(output_directory)
        self.last_delivered: Optional[Path] = None

    def deliver(self, data: bytes, suggested_filename: str) -> None:
        """
        Write ``data`` as ``suggested_filename`` in the output directory.

        Raises:
            FileSystemError: If the archive cannot be written
        """
        target = self.output_directory / Path(suggested_filename).name
        partial = target.with_name(target.name + '.part')

        try:
            self.output_directory.mkdir(parents=True, exist_ok=True)
            with open(partial, 'wb') as f:
                f.write(data)
            os.replace(partial, target)
        except OSError as e:
            if partial.exists():
                partial.unlink()
            raise FileSystemError(
                f"Could not save {suggested_filename} to {self.output_directory}: {e}",
                original_exception=e
            )

        self.last_delivered = target
        logger.info(f"Delivered {len(data)} bytes to {target}")
