"""
Interface definitions for CLI components.
"""

from abc import ABC, abstractmethod
from typing import Tuple

from models.core import ExportProgress
from services.formatting import parse_time


class CLIInterface(ABC):
    """Interface for command-line interface operations."""

    @abstractmethod
    def display_progress(self, progress: ExportProgress) -> None:
        """Display progress information to the user."""
        pass

    @abstractmethod
    def handle_user_prompts(self, prompt: str) -> str:
        """Handle user prompts and return user input."""
        pass

    @abstractmethod
    def display_error(self, error_message: str) -> None:
        """Display error message to the user."""
        pass

    @abstractmethod
    def display_success(self, message: str) -> None:
        """Display success message to the user."""
        pass


class ArgumentValidator:
    """Validates and parses CLI arguments."""

    @staticmethod
    def parse_slice_spec(value: str) -> Tuple[float, float]:
        """
        Parse ``START-END`` into a pair of seconds.

        Raises:
            ValueError: If the value is not two times joined by a single hyphen
        """
        if not value or not isinstance(value, str) or value.count('-') != 1:
            raise ValueError(f"Slice must look like START-END, got {value!r}")
        start_text, end_text = value.split('-')
        return parse_time(start_text), parse_time(end_text)
