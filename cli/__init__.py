"""
Command-line interface components for the Video Slicer application.
"""

from .interfaces import CLIInterface, ArgumentValidator
from .main_cli import VideoSlicerCLI

__all__ = ['CLIInterface', 'ArgumentValidator', 'VideoSlicerCLI']
