"""
End-to-end integration tests for the Video Slicer application.

These tests run complete exports from CLI input to the archive on disk,
with the FFmpeg and FFprobe processes replaced by fakes.
"""

import json
import logging
import logging.handlers
import shutil
import tempfile
import zipfile
import pytest
from pathlib import Path
from unittest.mock import MagicMock, Mock, patch
from click.testing import CliRunner

from cli.main_cli import main
from core.application import VideoSlicerApp
from models.core import SlicerConfig, Slice


def fake_popen(cmd, **kwargs):
    """Stand-in for FFmpeg: writes the requested seek and duration into the output file."""
    start = cmd[cmd.index('-ss') + 1]
    duration = cmd[cmd.index('-t') + 1]
    Path(cmd[-1]).write_bytes(f"{start}+{duration}".encode())
    process = MagicMock()
    process.returncode = 0
    process.communicate.return_value = (None, b'')
    process.poll.return_value = 0
    return process


def fake_probe(cmd, **kwargs):
    return Mock(returncode=0, stdout=json.dumps({'format': {'duration': '120.0'}}), stderr='')


class TestEndToEndIntegration:
    """End-to-end integration tests for the complete export workflow."""

    def setup_method(self):
        """Set up test fixtures."""
        self.runner = CliRunner()
        self.temp_dir = tempfile.mkdtemp()
        self.temp_path = Path(self.temp_dir)
        self.video = self.temp_path / 'lecture.mp4'
        self.video.write_bytes(b'\x00' * 4096)

        patch('shutil.which', side_effect=lambda name: f'/usr/bin/{name}').start()
        self.popen = patch('subprocess.Popen', side_effect=fake_popen).start()
        patch('subprocess.run', side_effect=fake_probe).start()

    def teardown_method(self):
        """Clean up test fixtures."""
        patch.stopall()
        for name in ('', 'audit'):
            log = logging.getLogger(name)
            for handler in list(log.handlers):
                if type(handler) in (logging.StreamHandler, logging.handlers.RotatingFileHandler):
                    log.removeHandler(handler)
                    handler.close()
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _read_archive(self, path):
        with zipfile.ZipFile(path) as archive:
            return {name: archive.read(name) for name in archive.namelist()}, archive.namelist()

    def test_cli_parallel_export(self):
        """Test a parallel export through the real engine, builder and sink."""
        output = self.temp_path / 'out'
        with self.runner.isolated_filesystem():
            result = self.runner.invoke(main, [
                'export', str(self.video), '-o', str(output), '-p', '3',
                '-s', '1:00-1:10', '-s', '0:02.5-0:05', '-s', '20-30', '-s', '00:01:40:000-00:01:45:125'
            ])

        assert result.exit_code == 0, result.output
        contents, names = self._read_archive(output / 'video_slices_export.zip')
        assert names == [
            "1/00-00-02-500_to_00-00-05-000.mp4",
            "2/00-00-20-000_to_00-00-30-000.mp4",
            "3/00-01-00-000_to_00-01-10-000.mp4",
            "4/00-01-40-000_to_00-01-45-125.mp4",
        ]
        assert contents["1/00-00-02-500_to_00-00-05-000.mp4"] == b"00:00:02.500+2.500"
        assert contents["4/00-01-40-000_to_00-01-45-125.mp4"] == b"00:01:40.000+5.125"
        assert self.popen.call_count == 4
        assert "Successfully exported 4 slice(s) in a zip file!" in result.output

    def test_cli_config_file_workflow(self):
        """Test generating, editing and using a configuration file."""
        config_path = self.temp_path / 'slicer.json'
        output = self.temp_path / 'configured'
        with self.runner.isolated_filesystem():
            result = self.runner.invoke(main, ['init-config', '-o', str(config_path)])
            assert result.exit_code == 0

            data = json.loads(config_path.read_text())
            data['output_directory'] = str(output)
            data['archive_filename'] = 'lecture_clips.zip'
            data['legacy_whole_second_seek'] = True
            config_path.write_text(json.dumps(data))

            result = self.runner.invoke(main, [
                '--config', str(config_path), 'export', str(self.video), '-s', '3.75-8'
            ])

        assert result.exit_code == 0, result.output
        contents, names = self._read_archive(output / 'lecture_clips.zip')
        assert names == ["1/00-00-03-750_to_00-00-08-000.mp4"]
        assert contents[names[0]] == b"00:00:03+4.250"

    def test_cli_ffmpeg_failure_leaves_no_archive(self):
        """Test a failing extraction aborts the export with a readable message."""
        output = self.temp_path / 'failed'
        calls = []

        def failing_popen(cmd, **kwargs):
            calls.append(cmd)
            if len(calls) == 2:
                process = MagicMock()
                process.returncode = 1
                process.communicate.return_value = (None, b'moov atom not found')
                process.poll.return_value = 1
                return process
            return fake_popen(cmd)

        self.popen.side_effect = failing_popen
        with self.runner.isolated_filesystem():
            result = self.runner.invoke(main, [
                'export', str(self.video), '-o', str(output), '-s', '2-5', '-s', '10-15', '-s', '20-25'
            ])

        assert result.exit_code == 1
        assert "slice 2 failed" in result.output
        assert "not a readable video container" in result.output
        assert len(calls) == 2
        assert not (output / 'video_slices_export.zip').exists()

    def test_application_workflow(self):
        """Test the application controller against a real file."""
        config = SlicerConfig(output_directory=str(self.temp_path / 'app'),
                              workspace_dir=str(self.temp_path / 'work'))
        app = VideoSlicerApp(config=config, audit_logger=Mock())
        try:
            assert app.initialize_engine() is True
            asset = app.load_source(self.video)
            assert asset.duration == 120.0

            app.seek(10.0)
            app.start_slicing()
            app.seek(14.0)
            app.end_slicing()
            app.add_slice(0.0, 2.0)

            result = app.export()

            assert result.entry_paths() == [
                "1/00-00-00-000_to_00-00-02-000.mp4",
                "2/00-00-10-000_to_00-00-14-000.mp4",
            ]
            assert app.slices == [Slice(0.0, 2.0), Slice(10.0, 14.0)]
            assert (self.temp_path / 'app' / 'video_slices_export.zip').exists()
        finally:
            app.shutdown()

        assert list((self.temp_path / 'work').iterdir()) == []
