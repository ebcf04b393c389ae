"""
Unit tests for FFmpegEngine class.
"""

import subprocess
import tempfile
import shutil
import pytest
from pathlib import Path
from unittest.mock import Mock, patch, MagicMock

from services.transcoding_engine import FFmpegEngine
from services.task_queue import CancellationToken
from config.error_handling import ProcessingError, ExportCancelledError


def make_process(returncode=0, stderr=b'', output=None, cmd=None):
    """Build a fake Popen object; writes ``output`` to the command's target file."""
    if output is not None and cmd is not None:
        Path(cmd[-1]).write_bytes(output)
    process = MagicMock()
    process.returncode = returncode
    process.communicate.return_value = (None, stderr)
    process.poll.return_value = returncode
    return process


class TestFFmpegEngine:
    """Test cases for FFmpegEngine class."""

    def setup_method(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()
        self.engine = FFmpegEngine(timeout=5, workspace_dir=self.temp_dir, ffmpeg_path='/usr/bin/ffmpeg')
        self.engine.initialize()

    def teardown_method(self):
        """Clean up test fixtures."""
        self.engine.close()
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    @patch('shutil.which')
    def test_find_ffmpeg_found(self, mock_which):
        """Test finding FFmpeg when it exists."""
        mock_which.return_value = '/usr/bin/ffmpeg'

        engine = FFmpegEngine(workspace_dir=self.temp_dir)
        assert engine.initialize() is True
        assert engine.ffmpeg_path == '/usr/bin/ffmpeg'
        assert engine.is_ready
        engine.close()

    @patch('shutil.which')
    def test_find_ffmpeg_not_found(self, mock_which):
        """Test initialization fails when FFmpeg is missing."""
        mock_which.return_value = None

        engine = FFmpegEngine(workspace_dir=self.temp_dir)
        assert engine.initialize() is False
        assert engine.is_ready is False

    def test_reentrant(self):
        """Test the engine declares concurrent extraction support."""
        assert FFmpegEngine.reentrant is True

    def test_build_command(self):
        """Test the FFmpeg command uses stream copy with seek and duration."""
        cmd = self.engine.build_command(Path('in.mp4'), Path('out.mp4'), '00:00:02.500', 3.25)

        assert cmd == [
            '/usr/bin/ffmpeg', '-hide_banner', '-loglevel', 'error',
            '-ss', '00:00:02.500', '-i', 'in.mp4', '-t', '3.250',
            '-c', 'copy', '-avoid_negative_ts', 'make_zero', '-y', 'out.mp4'
        ]

    @patch('subprocess.Popen')
    def test_extract_success(self, mock_popen):
        """Test a successful extraction returns the output bytes and cleans up."""
        mock_popen.side_effect = lambda cmd, **kwargs: make_process(output=b'slice-data', cmd=cmd)

        data = self.engine.extract(b'source', 'mp4', '00:00:02.000', 3.0)

        assert data == b'slice-data'
        cmd = mock_popen.call_args[0][0]
        assert cmd[cmd.index('-ss') + 1] == '00:00:02.000'
        assert cmd[cmd.index('-t') + 1] == '3.000'
        assert cmd[-1].endswith('.mp4')
        assert not Path(cmd[-1]).exists()

    @patch('subprocess.Popen')
    def test_extract_stages_input_once(self, mock_popen):
        """Test the same input is written to the workspace once and released on request."""
        mock_popen.side_effect = lambda cmd, **kwargs: make_process(output=b'x', cmd=cmd)
        source = b'source'

        self.engine.extract(source, 'mp4', '00:00:00.000', 2.0)
        self.engine.extract(source, 'mp4', '00:00:05.000', 2.0)

        inputs = {call[0][0][call[0][0].index('-i') + 1] for call in mock_popen.call_args_list}
        assert len(inputs) == 1
        staged = Path(inputs.pop())
        assert staged.read_bytes() == b'source'

        self.engine.release_input(source)
        assert not staged.exists()

    @patch('subprocess.Popen')
    def test_staged_input_written_once_for_many_slices(self, mock_popen):
        """Test extracting many slices writes the source to disk a single time."""
        mock_popen.side_effect = lambda cmd, **kwargs: make_process(output=b'x', cmd=cmd)
        source = b's' * 4096
        original_write = Path.write_bytes

        with patch.object(Path, 'write_bytes', autospec=True,
                          side_effect=lambda path, data: original_write(path, data)) as mock_write:
            for offset in range(5):
                self.engine.extract(source, 'mp4', f'00:00:0{offset}.000', 2.0)

        source_writes = [c for c in mock_write.call_args_list if c[0][1] is source]
        assert len(source_writes) == 1

    @patch('subprocess.Popen')
    def test_release_ignores_unstaged_buffer(self, mock_popen):
        """Test releasing a buffer that was never staged keeps the staged input."""
        mock_popen.side_effect = lambda cmd, **kwargs: make_process(output=b'x', cmd=cmd)
        source = b'source' * 2

        self.engine.extract(source, 'mp4', '00:00:00.000', 2.0)
        staged = Path(mock_popen.call_args[0][0][mock_popen.call_args[0][0].index('-i') + 1])

        self.engine.release_input(bytes(bytearray(source)))
        assert staged.exists()

        self.engine.release_input(source)
        assert not staged.exists()

    @patch('subprocess.Popen')
    def test_extract_failure_classified(self, mock_popen):
        """Test a non-zero exit becomes a classified processing error."""
        mock_popen.return_value = make_process(
            returncode=1, stderr=b'in.mp4: Invalid data found when processing input'
        )

        with pytest.raises(ProcessingError) as exc_info:
            self.engine.extract(b'source', 'mp4', '00:00:00.000', 2.0)

        assert "not a readable video container" in exc_info.value.message
        assert exc_info.value.details['returncode'] == 1

    @patch('subprocess.Popen')
    def test_extract_empty_output(self, mock_popen):
        """Test a zero exit without output is an error."""
        mock_popen.return_value = make_process()

        with pytest.raises(ProcessingError) as exc_info:
            self.engine.extract(b'source', 'mp4', '00:00:00.000', 2.0)

        assert "no output" in exc_info.value.message

    def test_extract_not_ready(self):
        """Test extraction without initialization fails."""
        engine = FFmpegEngine()

        with pytest.raises(ProcessingError):
            engine.extract(b'source', 'mp4', '00:00:00.000', 2.0)

    @patch('subprocess.Popen')
    def test_extract_cancelled_before_start(self, mock_popen):
        """Test a cancelled token prevents FFmpeg from starting."""
        token = CancellationToken()
        token.cancel()

        with pytest.raises(ExportCancelledError):
            self.engine.extract(b'source', 'mp4', '00:00:00.000', 2.0, cancel_token=token)

        mock_popen.assert_not_called()

    @patch('subprocess.Popen')
    def test_extract_cancelled_while_running(self, mock_popen):
        """Test FFmpeg is killed when cancellation arrives mid-run."""
        token = CancellationToken()
        process = MagicMock()
        process.poll.return_value = None

        def communicate(timeout=None):
            if timeout is not None:
                token.cancel("user")
                raise subprocess.TimeoutExpired('ffmpeg', timeout)
            return None, b''

        process.communicate.side_effect = communicate
        mock_popen.return_value = process

        with pytest.raises(ExportCancelledError):
            self.engine.extract(b'source', 'mp4', '00:00:00.000', 2.0, cancel_token=token)

        process.kill.assert_called()

    @patch('subprocess.Popen')
    def test_extract_timeout(self, mock_popen):
        """Test FFmpeg is killed after the timeout."""
        self.engine.timeout = 0
        process = MagicMock()
        process.poll.return_value = None

        def communicate(timeout=None):
            if timeout is not None:
                raise subprocess.TimeoutExpired('ffmpeg', timeout)
            return None, b''

        process.communicate.side_effect = communicate
        mock_popen.return_value = process

        with pytest.raises(ProcessingError) as exc_info:
            self.engine.extract(b'source', 'mp4', '00:00:00.000', 2.0)

        assert "timed out" in exc_info.value.message
        process.kill.assert_called()

    def test_close_removes_workspace(self):
        """Test close deletes the workspace directory."""
        workspace = self.engine.workspace
        assert workspace.exists()

        self.engine.close()

        assert not workspace.exists()
        assert self.engine.is_ready is False

    def test_context_manager(self):
        """Test the engine can be used as a context manager."""
        with FFmpegEngine(workspace_dir=self.temp_dir, ffmpeg_path='/usr/bin/ffmpeg') as engine:
            workspace = engine.workspace
            assert engine.is_ready

        assert not workspace.exists()
