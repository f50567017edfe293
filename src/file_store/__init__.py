"""Sandboxed markdown file store.

This package provides path-confined CRUD over a project's content directory
and the frontmatter codec that edits post metadata without disturbing
unknown fields or key order.
"""

from .file_store import FileStore
from .filesafe_converter import FilesafeConverter
from .frontmatter_codec import FrontmatterCodec
from .models import (
    EntryKind,
    FrontmatterEntry,
    ListingEntry,
    ParsedDocument,
    SplitDocument,
)
from .errors import (
    AlreadyExistsError,
    ConflictError,
    FileStoreError,
    InvalidFilenameError,
    InvalidMetadataError,
    NotFoundError,
    PathEscapeError,
)
from .path_guard import PathGuard

__all__ = [
    'FileStore',
    'FilesafeConverter',
    'FrontmatterCodec',
    'PathGuard',
    'EntryKind',
    'FrontmatterEntry',
    'ListingEntry',
    'ParsedDocument',
    'SplitDocument',
    'AlreadyExistsError',
    'ConflictError',
    'FileStoreError',
    'InvalidFilenameError',
    'InvalidMetadataError',
    'NotFoundError',
    'PathEscapeError',
]
