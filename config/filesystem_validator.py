"""
File system validation and disk space checking utilities.
"""

import os
import shutil
from pathlib import Path
from typing import Dict, Any, Optional
import logging

from config.error_handling import FileSystemError


# Extracted slices plus the archive that packs them can take roughly twice
# the space of the source video.
EXPORT_SPACE_FACTOR = 2.0


class FileSystemValidator:
    """Validates output locations and disk space requirements."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def validate_disk_space(self, output_path: str, estimated_size: int,
                            safety_margin: float = 0.1) -> bool:
        """
        Validate that sufficient disk space is available.

        Args:
            output_path: Path where files will be saved
            estimated_size: Estimated size in bytes
            safety_margin: Additional space margin (10% by default)

        Returns:
            True if sufficient space is available

        Raises:
            FileSystemError: If insufficient space or path issues
        """
        try:
            path = Path(output_path)
            if not path.exists():
                path.mkdir(parents=True, exist_ok=True)

            available_space = shutil.disk_usage(str(path)).free
            required_space = int(estimated_size * (1 + safety_margin))

            self.logger.debug(
                f"Disk space check: Available={self._format_bytes(available_space)}, "
                f"Required={self._format_bytes(required_space)}"
            )

            if available_space < required_space:
                raise FileSystemError(
                    f"Insufficient disk space. Available: {self._format_bytes(available_space)}, "
                    f"Required: {self._format_bytes(required_space)} "
                    f"(including {safety_margin*100:.0f}% safety margin)",
                    details={
                        'available_bytes': available_space,
                        'required_bytes': required_space,
                        'estimated_bytes': estimated_size,
                        'safety_margin': safety_margin
                    }
                )

            return True

        except OSError as e:
            raise FileSystemError(
                f"Could not check disk space for path {output_path}: {str(e)}",
                original_exception=e
            )

    def validate_path_permissions(self, output_path: str) -> Dict[str, bool]:
        """
        Validate file system permissions for the output path.

        Returns:
            Dictionary with permission status

        Raises:
            FileSystemError: If the directory cannot be created or written to
        """
        path = Path(output_path)

        if not path.exists():
            try:
                path.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise FileSystemError(
                    f"Cannot create directory {output_path}: {str(e)}",
                    original_exception=e
                )

        if not path.is_dir():
            raise FileSystemError(
                f"Output path {output_path} exists but is not a directory"
            )

        permissions = {
            'readable': os.access(str(path), os.R_OK),
            'writable': os.access(str(path), os.W_OK),
        }

        test_file = path / '.test_write_permission'
        try:
            test_file.touch()
            test_file.unlink()
            permissions['can_create_files'] = True
        except OSError:
            permissions['can_create_files'] = False

        if not permissions['writable'] or not permissions['can_create_files']:
            raise FileSystemError(
                f"Insufficient permissions for directory {output_path}. "
                f"Write permission: {permissions['writable']}, "
                f"Can create files: {permissions['can_create_files']}"
            )

        self.logger.debug(f"Path permissions validated for {output_path}: {permissions}")
        return permissions

    def validate_export_prerequisites(self, output_path: str, source_size: int,
                                      check_space: bool = True) -> Dict[str, Any]:
        """
        Validate that an export of a source of ``source_size`` bytes can be written.

        Args:
            output_path: Directory that receives the archive
            source_size: Size of the source video in bytes
            check_space: Whether to enforce the free space requirement

        Returns:
            Dictionary with validation results

        Raises:
            FileSystemError: If validation fails
        """
        results = {
            'permissions': self.validate_path_permissions(output_path),
            'required_bytes': int(source_size * EXPORT_SPACE_FACTOR),
            'disk_space_ok': None
        }

        if check_space and source_size > 0:
            self.validate_disk_space(output_path, results['required_bytes'])
            results['disk_space_ok'] = True

        return results

    def _format_bytes(self, bytes_value: float) -> str:
        """Format bytes into human-readable string."""
        for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
            if bytes_value < 1024.0:
                return f"{bytes_value:.1f} {unit}"
            bytes_value /= 1024.0
        return f"{bytes_value:.1f} PB"
