"""
Configuration management for the Video Slicer application.
"""

import json
from pathlib import Path
from typing import Dict, Any, Optional, Union
import logging

from models.core import SlicerConfig, DEFAULT_ARCHIVE_FILENAME
from config.error_handling import ConfigurationError, ValidationError


class ConfigManager:
    """Manages configuration loading, validation, and merging."""

    DEFAULT_CONFIG_FILENAME = "video_slicer_config.json"

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Initialize ConfigManager.

        Args:
            logger: Optional logger instance
        """
        self.logger = logger or logging.getLogger(__name__)
        self._default_config = self._create_default_config()

    def _create_default_config(self) -> Dict[str, Any]:
        """Create default configuration dictionary."""
        return {
            "output_directory": "./exports",
            "archive_filename": DEFAULT_ARCHIVE_FILENAME,
            "max_parallel_extractions": 1,
            "ffmpeg_timeout": 300,
            "legacy_whole_second_seek": False,
            "check_disk_space": True,
            "workspace_dir": None
        }

    def load_config(self, config_path: Union[str, Path]) -> SlicerConfig:
        """
        Load configuration from JSON file.

        Args:
            config_path: Path to configuration file

        Returns:
            SlicerConfig instance

        Raises:
            ConfigurationError: If configuration file cannot be loaded or is invalid
        """
        config_path = Path(config_path)

        if not config_path.exists():
            self.logger.debug(f"Configuration file not found: {config_path}")
            return self._create_slicer_config(self._default_config)

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                config_data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                f"Invalid JSON in configuration file {config_path}: {str(e)}",
                details={"file_path": str(config_path), "json_error": str(e)}
            )
        except OSError as e:
            raise ConfigurationError(
                f"Failed to load configuration from {config_path}: {str(e)}",
                details={"file_path": str(config_path)},
                original_exception=e
            )

        if not isinstance(config_data, dict):
            raise ConfigurationError(
                f"Configuration file {config_path} must contain a JSON object",
                details={"file_path": str(config_path)}
            )

        self.logger.info(f"Loaded configuration from: {config_path}")

        merged_config = self._merge_configs(self._default_config, config_data)
        self._validate_config(merged_config)

        return self._create_slicer_config(merged_config)

    def save_config(self, config: SlicerConfig, config_path: Union[str, Path]) -> None:
        """
        Save configuration to JSON file.

        Raises:
            ConfigurationError: If configuration cannot be saved
        """
        self._write_json(self._slicer_config_to_dict(config), Path(config_path))
        self.logger.info(f"Configuration saved to: {config_path}")

    def save_default_config(self, output_path: Union[str, Path]) -> None:
        """
        Generate and save default configuration file.

        Raises:
            ConfigurationError: If default configuration cannot be saved
        """
        self._write_json(self._default_config, Path(output_path))
        self.logger.info(f"Default configuration saved to: {output_path}")

    def merge_cli_args(self, config: SlicerConfig, cli_args: Dict[str, Any]) -> SlicerConfig:
        """
        Merge CLI arguments with existing configuration.
        CLI arguments take precedence over configuration file values.

        Args:
            config: Base SlicerConfig instance
            cli_args: Dictionary of CLI arguments

        Returns:
            New SlicerConfig instance with merged values
        """
        config_dict = self._slicer_config_to_dict(config)

        cli_mapping = {
            'output': 'output_directory',
            'parallel': 'max_parallel_extractions',
            'timeout': 'ffmpeg_timeout',
            'legacy_seek': 'legacy_whole_second_seek',
            'check_space': 'check_disk_space',
            'workspace': 'workspace_dir'
        }

        for cli_key, config_key in cli_mapping.items():
            if cli_key in cli_args and cli_args[cli_key] is not None:
                value = cli_args[cli_key]
                if isinstance(value, Path):
                    value = str(value)
                config_dict[config_key] = value
                self.logger.debug(f"CLI override: {config_key} = {value}")

        self._validate_config(config_dict)

        return self._create_slicer_config(config_dict)

    def validate_config(self, config: SlicerConfig) -> bool:
        """Validate a SlicerConfig instance, raising ValidationError when invalid."""
        self._validate_config(self._slicer_config_to_dict(config))
        return True

    def _merge_configs(self, base_config: Dict[str, Any], override_config: Dict[str, Any]) -> Dict[str, Any]:
        """Merge two configuration dictionaries, recursing into nested dictionaries."""
        merged = base_config.copy()

        for key, value in override_config.items():
            if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
                merged[key] = self._merge_configs(merged[key], value)
            else:
                merged[key] = value

        return merged

    def _validate_config(self, config: Dict[str, Any]) -> None:
        """
        Validate configuration dictionary.

        Raises:
            ValidationError: If configuration is invalid
        """
        for field_name in self._default_config:
            if field_name not in config:
                raise ValidationError(f"Missing required configuration field: {field_name}")

        unknown = set(config) - set(self._default_config)
        if unknown:
            self.logger.warning(f"Ignoring unknown configuration fields: {sorted(unknown)}")

        if not isinstance(config['output_directory'], str) or not config['output_directory']:
            raise ValidationError("output_directory must be a non-empty string")

        archive_filename = config['archive_filename']
        if not isinstance(archive_filename, str) or not archive_filename.endswith('.zip'):
            raise ValidationError("archive_filename must be a string ending in .zip")
        if '/' in archive_filename or '\\' in archive_filename:
            raise ValidationError("archive_filename must not contain path separators")

        parallel = config['max_parallel_extractions']
        if not isinstance(parallel, int) or isinstance(parallel, bool) or parallel < 1:
            raise ValidationError("max_parallel_extractions must be a positive integer")
        if parallel > 8:
            self.logger.warning("max_parallel_extractions > 8 will be capped at 8")

        timeout = config['ffmpeg_timeout']
        if not isinstance(timeout, int) or isinstance(timeout, bool) or timeout < 1:
            raise ValidationError("ffmpeg_timeout must be a positive integer")

        for flag in ('legacy_whole_second_seek', 'check_disk_space'):
            if not isinstance(config[flag], bool):
                raise ValidationError(f"{flag} must be a boolean")

        if config['workspace_dir'] is not None and not isinstance(config['workspace_dir'], str):
            raise ValidationError("workspace_dir must be a string or null")

    def _create_slicer_config(self, config_dict: Dict[str, Any]) -> SlicerConfig:
        """Create SlicerConfig instance from dictionary."""
        return SlicerConfig(
            output_directory=config_dict['output_directory'],
            archive_filename=config_dict['archive_filename'],
            max_parallel_extractions=config_dict['max_parallel_extractions'],
            ffmpeg_timeout=config_dict['ffmpeg_timeout'],
            legacy_whole_second_seek=config_dict['legacy_whole_second_seek'],
            check_disk_space=config_dict['check_disk_space'],
            workspace_dir=config_dict['workspace_dir']
        )

    def _slicer_config_to_dict(self, config: SlicerConfig) -> Dict[str, Any]:
        """Convert SlicerConfig instance to dictionary."""
        return {
            'output_directory': config.output_directory,
            'archive_filename': config.archive_filename,
            'max_parallel_extractions': config.max_parallel_extractions,
            'ffmpeg_timeout': config.ffmpeg_timeout,
            'legacy_whole_second_seek': config.legacy_whole_second_seek,
            'check_disk_space': config.check_disk_space,
            'workspace_dir': config.workspace_dir
        }

    def _write_json(self, data: Dict[str, Any], path: Path) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
        except OSError as e:
            raise ConfigurationError(
                f"Failed to save configuration to {path}: {str(e)}",
                details={"file_path": str(path)},
                original_exception=e
            )

    def get_config_path(self, config_dir: Optional[Union[str, Path]] = None) -> Path:
        """
        Get the default configuration file path.

        Args:
            config_dir: Optional directory for configuration file

        Returns:
            Path to configuration file
        """
        config_dir = Path.cwd() if config_dir is None else Path(config_dir)
        return config_dir / self.DEFAULT_CONFIG_FILENAME
