"""
Unit tests for filesystem validation functionality.
"""

import pytest
import tempfile
import shutil
from collections import namedtuple
from pathlib import Path
from unittest.mock import patch

from config.filesystem_validator import FileSystemValidator, EXPORT_SPACE_FACTOR
from config.error_handling import FileSystemError

DiskUsage = namedtuple('DiskUsage', ['total', 'used', 'free'])


class TestFileSystemValidator:
    """Test cases for FileSystemValidator class."""

    def setup_method(self):
        """Set up test fixtures."""
        self.validator = FileSystemValidator()
        self.temp_dir = tempfile.mkdtemp()
        self.temp_path = Path(self.temp_dir)

    def teardown_method(self):
        """Clean up test fixtures."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_validate_disk_space_sufficient(self):
        """Test disk space validation with sufficient space."""
        assert self.validator.validate_disk_space(str(self.temp_path), 1024) is True

    def test_validate_disk_space_insufficient(self):
        """Test disk space validation with insufficient space."""
        huge_size = 10**18

        with pytest.raises(FileSystemError) as exc_info:
            self.validator.validate_disk_space(str(self.temp_path), huge_size)

        message = str(exc_info.value).lower()
        assert "insufficient disk space" in message
        assert "available" in message
        assert "required" in message

    @patch('shutil.disk_usage')
    def test_validate_disk_space_includes_margin(self, mock_usage):
        """Test the safety margin is added to the requirement."""
        mock_usage.return_value = DiskUsage(total=2000, used=950, free=1050)

        with pytest.raises(FileSystemError) as exc_info:
            self.validator.validate_disk_space(str(self.temp_path), 1000)

        assert exc_info.value.details['required_bytes'] == 1100

        assert self.validator.validate_disk_space(str(self.temp_path), 1000, safety_margin=0.0)

    def test_validate_disk_space_creates_directory(self):
        target = self.temp_path / "new" / "dir"

        self.validator.validate_disk_space(str(target), 1)

        assert target.is_dir()

    def test_validate_path_permissions(self):
        permissions = self.validator.validate_path_permissions(str(self.temp_path))

        assert permissions == {'readable': True, 'writable': True, 'can_create_files': True}
        assert not (self.temp_path / '.test_write_permission').exists()

    def test_validate_path_permissions_not_directory(self):
        """Test a file in place of the output directory is rejected."""
        blocker = self.temp_path / "exports"
        blocker.write_text("not a directory")

        with pytest.raises(FileSystemError) as exc_info:
            self.validator.validate_path_permissions(str(blocker))

        assert "not a directory" in str(exc_info.value)

    @patch('os.access', return_value=False)
    def test_validate_path_permissions_not_writable(self, mock_access):
        with pytest.raises(FileSystemError) as exc_info:
            self.validator.validate_path_permissions(str(self.temp_path))

        assert "Insufficient permissions" in str(exc_info.value)

    @patch('shutil.disk_usage')
    def test_export_prerequisites_twice_source_size(self, mock_usage):
        """Test exports need room for twice the source video."""
        mock_usage.return_value = DiskUsage(total=10**9, used=0, free=10**9)

        results = self.validator.validate_export_prerequisites(str(self.temp_path), 1000)

        assert results['required_bytes'] == int(1000 * EXPORT_SPACE_FACTOR)
        assert results['disk_space_ok'] is True
        assert results['permissions']['writable'] is True

    @patch('shutil.disk_usage')
    def test_export_prerequisites_insufficient(self, mock_usage):
        mock_usage.return_value = DiskUsage(total=3000, used=1000, free=2000)

        with pytest.raises(FileSystemError):
            self.validator.validate_export_prerequisites(str(self.temp_path), 1000)

    @patch('shutil.disk_usage')
    def test_export_prerequisites_space_check_disabled(self, mock_usage):
        results = self.validator.validate_export_prerequisites(
            str(self.temp_path), 10**18, check_space=False
        )

        assert results['disk_space_ok'] is None
        mock_usage.assert_not_called()

    def test_format_bytes(self):
        assert self.validator._format_bytes(512) == "512.0 B"
        assert self.validator._format_bytes(1536) == "1.5 KB"
        assert self.validator._format_bytes(3 * 1024 ** 3) == "3.0 GB"
