"""Typed exception hierarchy for CLI-related errors."""

from typing import List

from src.git_integration.errors import ContentStoreError


class CLIError(ContentStoreError):
    """Base exception for all CLI-related errors."""
    pass


class InvalidOptionError(CLIError):
    """Raised when a command line option cannot be interpreted."""

    def __init__(self, option: str, reason: str):
        super().__init__(f"Invalid value for {option}: {reason}")
        self.option = option
        self.reason = reason


class MissingOptionError(CLIError):
    """Raised when options required by a command are absent."""

    def __init__(self, options: List[str]):
        super().__init__(f"Missing required option(s): {', '.join(options)}")
        self.options = options
