"""Command-line interface for the git-backed content store.

This package provides the `gitcms` CLI tool, an operator front end over
ContentService with Rich output and meaningful exit codes.
"""

from .errors import CLIError, InvalidOptionError, MissingOptionError
from .models import ExitCode
from .output import OutputHandler

__all__ = [
    'CLIError',
    'ExitCode',
    'InvalidOptionError',
    'MissingOptionError',
    'OutputHandler',
]
