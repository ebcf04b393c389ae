"""
Configuration management components for the Video Slicer application.
"""

from .logging_config import setup_logging, get_logger
from .error_handling import ErrorHandler, VideoSlicerError
from .config_manager import ConfigManager

__all__ = ['setup_logging', 'get_logger', 'ErrorHandler', 'VideoSlicerError', 'ConfigManager']
