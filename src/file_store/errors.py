"""Typed exception hierarchy for file store errors.

This module defines all custom exceptions raised by the sandboxed file store.
All exceptions inherit from FileStoreError so callers can catch every
deterministic filesystem failure in one place.
"""

from typing import Optional

from src.git_integration.errors import ContentStoreError


class FileStoreError(ContentStoreError):
    """Base exception for all file store errors."""

    def __init__(self, message: str, filename: Optional[str] = None):
        super().__init__(message)
        self.filename = filename


class PathEscapeError(FileStoreError):
    """Raised when a path resolves outside the sandboxed content directory."""

    def __init__(self, segment: str, root: str):
        super().__init__(
            f"Path traversal detected: '{segment}' is outside base directory {root}",
            segment,
        )
        self.root = root


class NotFoundError(FileStoreError):
    """Raised when a requested document does not exist."""

    def __init__(self, filename: str):
        super().__init__(f"Post {filename} not found", filename)


class AlreadyExistsError(FileStoreError):
    """Raised when creating a document whose filename is already taken."""

    def __init__(self, filename: str):
        super().__init__(f"File {filename} already exists", filename)


class ConflictError(FileStoreError):
    """Raised when a rename target already exists."""

    def __init__(self, source: str, destination: str):
        super().__init__(
            f"Cannot rename {source} to {destination}: a post with that slug already exists",
            destination,
        )
        self.source = source
        self.destination = destination


class InvalidFilenameError(FileStoreError):
    """Raised when a filename is empty after sanitization or lacks the .md suffix."""

    def __init__(self, filename: str, reason: str = "Expected a .md file"):
        super().__init__(f"Invalid filename '{filename}': {reason}", filename)
        self.reason = reason


class InvalidMetadataError(FileStoreError):
    """Raised when a metadata change cannot be rendered into frontmatter."""

    def __init__(self, field: str, reason: str):
        super().__init__(f"Invalid value for '{field}': {reason}")
        self.field = field
        self.reason = reason
