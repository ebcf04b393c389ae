"""
Main CLI implementation using Click framework for the Video Slicer.
"""

import click
import sys
import shlex
from pathlib import Path
from typing import Optional, Dict, Any

from models.core import SlicerConfig, ExportProgress, ExportResult
from config import ConfigManager, setup_logging, get_logger
from config.logging_config import get_audit_logger
from config.error_handling import (
    ErrorHandler, ConfigurationError, ValidationError, VideoSlicerError
)
from cli.interfaces import CLIInterface, ArgumentValidator
from core.application import VideoSlicerApp
from services.source_asset import FileSourceAsset
from services.download_sink import FileDownloadSink
from services.formatting import format_time, format_video_size, parse_time


EDIT_HELP = """Commands:
  seek T      move the playhead to T (SS, MM:SS, HH:MM:SS or HH:MM:SS:mmm)
  start       start a slice at the playhead
  end         end the slice in progress at the playhead
  cancel      drop the slice in progress
  delete      delete the slice under the playhead (asks for confirmation)
  list        show the committed slices
  info        show the loaded video
  export      export every slice into one zip archive
  help        show this help
  quit        leave the editor"""


class VideoSlicerCLI(CLIInterface):
    """Main CLI application class using Click framework."""

    def __init__(self):
        """Initialize CLI application."""
        self.config_manager = ConfigManager()
        self.logger = get_logger(__name__)
        self.error_handler = ErrorHandler(self.logger)
        self.app: Optional[VideoSlicerApp] = None

    def create_app(self, config: SlicerConfig) -> VideoSlicerApp:
        """Build the application controller for one command."""
        self.app = VideoSlicerApp(config=config, audit_logger=get_audit_logger())
        return self.app

    def shutdown(self) -> None:
        """Shut down the running application, if any."""
        if self.app is not None:
            if self.app.is_running():
                self.logger.warning("Shutting down with an export in progress")
            self.app.shutdown()
            self.app = None

    def display_progress(self, progress: ExportProgress) -> None:
        """Display progress information to the user."""
        click.echo(
            f"[{progress.completed}/{progress.total}] {progress.current_path} "
            f"({progress.progress_percent:.0f}%)"
        )
        if progress.is_complete():
            click.echo("All slices extracted, building the zip file...")

    def handle_user_prompts(self, prompt: str) -> str:
        """Handle user prompts and return user input."""
        return click.prompt(prompt, default='', show_default=False, prompt_suffix='> ')

    def display_error(self, error_message: str) -> None:
        """Display error message to the user."""
        click.echo(click.style(f"Error: {error_message}", fg='red'), err=True)

    def display_warning(self, message: str) -> None:
        click.echo(click.style(message, fg='yellow'), err=True)

    def display_success(self, message: str) -> None:
        """Display success message to the user."""
        click.echo(click.style(message, fg='green'))

    def report_error(self, error: Exception, context: str) -> None:
        """Log an error and show its message."""
        self.display_error(self.error_handler.handle_error(error, context))


# Global CLI instance
cli_app = VideoSlicerCLI()


@click.group(invoke_without_command=True)
@click.option('--config', '-c',
              type=click.Path(exists=True, path_type=Path),
              help='Path to configuration file')
@click.option('--log-level',
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
              default='INFO',
              help='Set logging level')
@click.option('--log-file',
              type=click.Path(path_type=Path),
              help='Path to log file')
@click.pass_context
def main(ctx, config, log_level, log_file):
    """
    Video Slicer - Cut slices out of a video and export them as one zip.

    Slices are closed time ranges that never overlap and are at least two
    seconds wide. Every slice is cut without re-encoding and stored in the
    archive as N/START_to_END.EXT, numbered in timeline order.

    \b
    EXAMPLES:

    Export two slices:
        video-slicer export talk.mp4 -s 0:05-0:12 -s 1:00-1:30

    Slice interactively:
        video-slicer edit talk.mp4

    Show video details:
        video-slicer info talk.mp4

    \b
    CONFIGURATION:

    Generate default configuration file:
        video-slicer init-config

    Use custom configuration:
        video-slicer --config my-config.json export talk.mp4 -s 5-12
    """
    ctx.ensure_object(dict)

    setup_logging(
        log_level=log_level,
        log_file=str(log_file) if log_file else None
    )

    try:
        if config:
            ctx.obj['config'] = cli_app.config_manager.load_config(config)
        else:
            default_config_path = cli_app.config_manager.get_config_path()
            ctx.obj['config'] = cli_app.config_manager.load_config(default_config_path)
    except (ConfigurationError, ValidationError) as e:
        cli_app.display_error(f"Configuration error: {e.message}")
        sys.exit(1)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@main.command()
@click.argument('video', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--slice', '-s', 'slice_specs',
              multiple=True,
              help='Slice as START-END, e.g. 0:05-0:12 (repeatable)')
@click.option('--output', '-o',
              type=click.Path(file_okay=False, path_type=Path),
              help='Output directory for the archive')
@click.option('--parallel', '-p',
              type=click.IntRange(1, 8),
              help='Number of concurrent extractions (1-8)')
@click.option('--timeout',
              type=click.IntRange(min=1),
              help='Seconds allowed for one extraction')
@click.option('--legacy-seek/--no-legacy-seek',
              default=None,
              help='Seek to whole seconds only')
@click.option('--check-space/--no-check-space',
              default=None,
              help='Check free disk space before exporting')
@click.option('--workspace',
              type=click.Path(file_okay=False, path_type=Path),
              help='Directory for intermediate files')
@click.pass_context
def export(ctx, video, slice_specs, **kwargs):
    """
    Export slices of VIDEO into one zip archive.

    \b
    EXAMPLES:

    Two slices with millisecond precision:
        video-slicer export talk.mp4 -s 00:00:05:250-00:00:09 -s 1:00-1:30

    Into a specific directory, four extractions at a time:
        video-slicer export talk.mp4 -s 5-12 -o ~/clips -p 4
    """
    try:
        config = _resolve_config(ctx, kwargs)
    except (ConfigurationError, ValidationError) as e:
        cli_app.display_error(f"Configuration error: {e.message}")
        sys.exit(1)

    app = cli_app.create_app(config)
    try:
        app.initialize_engine()
        app.load_source(FileSourceAsset(video))

        for spec in slice_specs:
            try:
                start, end = ArgumentValidator.parse_slice_spec(spec)
            except ValueError as e:
                cli_app.display_error(str(e))
                sys.exit(1)
            app.add_slice(start, end)

        result = _run_export(app)
        for entry_path in result.entry_paths():
            click.echo(f"  {entry_path}")

    except VideoSlicerError as e:
        cli_app.report_error(e, "export")
        sys.exit(1)
    finally:
        cli_app.shutdown()


@main.command()
@click.argument('video', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--output', '-o',
              type=click.Path(file_okay=False, path_type=Path),
              help='Output directory for the archive')
@click.option('--parallel', '-p',
              type=click.IntRange(1, 8),
              help='Number of concurrent extractions (1-8)')
@click.option('--legacy-seek/--no-legacy-seek',
              default=None,
              help='Seek to whole seconds only')
@click.pass_context
def edit(ctx, video, **kwargs):
    """
    Slice VIDEO interactively.

    Move the playhead with "seek", mark slices with "start" and "end",
    then "export". Type "help" inside the editor for every command.
    """
    try:
        config = _resolve_config(ctx, kwargs)
    except (ConfigurationError, ValidationError) as e:
        cli_app.display_error(f"Configuration error: {e.message}")
        sys.exit(1)

    app = cli_app.create_app(config)
    try:
        app.initialize_engine()
        asset = app.load_source(FileSourceAsset(video))
        click.echo(f"Loaded {asset.name} ({format_time(asset.duration)})")
        click.echo('Type "help" for commands.')
    except VideoSlicerError as e:
        cli_app.report_error(e, "edit")
        cli_app.shutdown()
        sys.exit(1)

    try:
        while True:
            try:
                line = cli_app.handle_user_prompts(format_time(app.current_time))
            except click.Abort:
                break
            if not _run_edit_command(app, line):
                break
    finally:
        cli_app.shutdown()


@main.command()
@click.argument('video', type=click.Path(exists=True, dir_okay=False, path_type=Path))
def info(video):
    """Show duration, container and size of VIDEO."""
    try:
        asset = FileSourceAsset(video)
        _print_asset(asset)
    except VideoSlicerError as e:
        cli_app.report_error(e, "info")
        sys.exit(1)


@main.command()
@click.option('--output', '-o',
              type=click.Path(path_type=Path),
              default=f'./{ConfigManager.DEFAULT_CONFIG_FILENAME}',
              help='Output path for configuration file')
def init_config(output):
    """Generate a default configuration file."""
    try:
        cli_app.config_manager.save_default_config(output)
        cli_app.display_success(f"Default configuration saved to: {output}")
        click.echo("You can now edit this file to customize your settings.")

    except ConfigurationError as e:
        cli_app.display_error(f"Failed to create configuration file: {e.message}")
        sys.exit(1)


@main.command()
@click.option('--config', '-c',
              type=click.Path(exists=True, path_type=Path),
              help='Path to configuration file to validate')
def validate_config(config):
    """Validate a configuration file."""
    try:
        if not config:
            config = cli_app.config_manager.get_config_path()

        loaded_config = cli_app.config_manager.load_config(config)
        cli_app.display_success(f"Configuration file is valid: {config}")

        click.echo("\nConfiguration Summary:")
        click.echo(f"  Output Directory: {loaded_config.output_directory}")
        click.echo(f"  Archive Filename: {loaded_config.archive_filename}")
        click.echo(f"  Parallel Extractions: {loaded_config.max_parallel_extractions}")
        click.echo(f"  FFmpeg Timeout: {loaded_config.ffmpeg_timeout}s")
        click.echo(f"  Whole-Second Seek: {loaded_config.legacy_whole_second_seek}")
        click.echo(f"  Check Disk Space: {loaded_config.check_disk_space}")

    except (ConfigurationError, ValidationError) as e:
        cli_app.display_error(f"Configuration validation failed: {e.message}")
        sys.exit(1)


def _resolve_config(ctx, cli_args: Dict[str, Any]) -> SlicerConfig:
    """Merge command options over the loaded configuration."""
    base_config = (ctx.obj or {}).get('config') or SlicerConfig()
    return cli_app.config_manager.merge_cli_args(base_config, _process_cli_args(cli_args))


def _process_cli_args(cli_args: Dict[str, Any]) -> Dict[str, Any]:
    """
    Drop unset options and convert Path objects to strings.

    Args:
        cli_args: Raw CLI arguments

    Returns:
        Processed CLI arguments
    """
    processed_args = {}

    for key, value in cli_args.items():
        if value is None:
            continue
        processed_args[key] = str(value) if isinstance(value, Path) else value

    return processed_args


def _print_asset(asset) -> None:
    click.echo(f"File: {asset.name}")
    click.echo(f"Duration: {format_time(asset.duration)}")
    click.echo(f"Container: {asset.container_extension}")
    click.echo(f"Size: {format_video_size(asset.size_bytes)}")


def _run_export(app: VideoSlicerApp) -> ExportResult:
    """Export the committed slices and report the outcome."""
    if app.asset is not None and app.asset.size_bytes:
        cli_app.display_warning(
            f"Keep at least {format_video_size(app.asset.size_bytes * 2)} free "
            f"(twice the video size) while exporting."
        )

    app.set_progress_callback(cli_app.display_progress)
    result = app.export()

    cli_app.display_success(f"Successfully exported {result.slice_count} slice(s) in a zip file!")
    sink = app.download_sink
    if isinstance(sink, FileDownloadSink) and sink.last_delivered:
        click.echo(f"Archive saved to: {sink.last_delivered}")
    return result


def _run_edit_command(app: VideoSlicerApp, line: str) -> bool:
    """
    Execute one editor command.

    Returns:
        False when the editor should exit
    """
    try:
        parts = shlex.split(line)
    except ValueError as e:
        cli_app.display_error(str(e))
        return True
    if not parts:
        return True

    command, args = parts[0].lower(), parts[1:]

    try:
        if command in ('quit', 'exit', 'q'):
            return False

        elif command == 'help':
            click.echo(EDIT_HELP)

        elif command == 'seek':
            if len(args) != 1:
                cli_app.display_error("Usage: seek TIME")
                return True
            position = app.seek(parse_time(args[0]))
            inside = app.slice_at_playhead()
            suffix = f" (inside slice {format_time(inside.start)} - {format_time(inside.end)})" if inside else ""
            click.echo(f"Playhead at {format_time(position)}{suffix}")

        elif command == 'start':
            if app.session.is_active:
                cli_app.display_error("A slice is already in progress; use 'end' or 'cancel'")
            elif app.start_slicing():
                click.echo(f"Slice started at {format_time(app.current_time)}")
            else:
                cli_app.display_error("Cannot start a slice inside an existing slice")

        elif command == 'end':
            slice_ = app.end_slicing()
            cli_app.display_success(
                f"Slice added: {format_time(slice_.start)} - {format_time(slice_.end)}"
            )

        elif command == 'cancel':
            if app.cancel_slicing():
                click.echo("Slice in progress discarded")
            else:
                click.echo("No slice in progress")

        elif command == 'delete':
            if app.session.is_active:
                cli_app.display_error("Finish or cancel the slice in progress first")
                return True
            target = app.slice_at_playhead()
            if target is None:
                click.echo("No slice under the playhead")
                return True
            click.echo(f"Slice {format_time(target.start)} - {format_time(target.end)}")
            try:
                confirmed = click.confirm("Do you want to delete this slice?", default=False)
            except click.Abort:
                confirmed = False
            if not confirmed:
                click.echo("Slice kept")
                return True
            removed = app.delete_slice_at_playhead()
            click.echo(f"Slice deleted: {format_time(removed.start)} - {format_time(removed.end)}")

        elif command == 'list':
            slices = app.slices
            if not slices:
                click.echo("No slices yet")
            for index, slice_ in enumerate(slices, start=1):
                click.echo(f"  {index}. {format_time(slice_.start)} - {format_time(slice_.end)}")
            if app.session.is_active:
                click.echo(f"  (in progress from {format_time(app.session.state.provisional_start)})")

        elif command == 'info':
            _print_asset(app.asset)
            click.echo(f"Slices: {len(app.slices)}")

        elif command == 'export':
            _run_export(app)

        else:
            cli_app.display_error(f"Unknown command: {command} (type 'help')")

    except ValueError as e:
        cli_app.display_error(str(e))
    except VideoSlicerError as e:
        cli_app.report_error(e, command)

    return True


if __name__ == '__main__':
    main()
