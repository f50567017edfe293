"""Sandboxed CRUD over the markdown files of one content directory.

A FileStore is built per request from the working copy path handed out by a
project's RepositoryConnection plus the project's content subdirectory.
Every path it touches is resolved through PathGuard first.
"""

import logging
import os
import stat
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Union

from .errors import (
    AlreadyExistsError,
    ConflictError,
    FileStoreError,
    InvalidFilenameError,
    NotFoundError,
)
from .filesafe_converter import MARKDOWN_SUFFIX, FilesafeConverter
from .models import ListingEntry
from .path_guard import PathGuard

logger = logging.getLogger(__name__)

# Maximum file size to prevent memory exhaustion on read
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MB in bytes


class FileStore:
    """CRUD over markdown documents inside <working-copy>/<content-dir>.

    Filenames are basenames ending in .md. Anything that resolves outside the
    content directory raises PathEscapeError before any I/O happens.

    Example:
        >>> store = FileStore("/data/p1", "src/content/blog")
        >>> name = store.create("Hello World", "---\\ntitle: x\\n---\\n")
        >>> name
        'Hello-World.md'
        >>> store.read(name)
        '---\\ntitle: x\\n---\\n'
    """

    def __init__(self, base_path: Union[str, Path], content_dir: str = ""):
        """Initialize the store.

        Args:
            base_path: Working copy root
            content_dir: Subdirectory holding the posts (may be empty)

        Raises:
            PathEscapeError: If content_dir resolves outside base_path
        """
        self.base_path = Path(base_path)
        self.content_dir = content_dir or ""
        self.root = PathGuard.resolve(self.base_path, self.content_dir)

    def ensure_dir(self) -> None:
        """Create the content directory if it does not exist."""
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Failed to create content directory {self.root}: {e}")
            raise FileStoreError(f"Failed to create content directory: {e}") from e

    def _resolve(self, filename: str) -> Path:
        """Resolve an existing-document filename inside the sandbox.

        Raises:
            PathEscapeError: If the name resolves outside the content directory
            InvalidFilenameError: If it is not a plain *.md basename
        """
        name = (filename or "").strip()
        path = PathGuard.resolve(self.root, name)
        if not name or path.parent != self.root or path.name != name:
            raise InvalidFilenameError(filename, "Expected a file name, not a path")
        if not name.endswith(MARKDOWN_SUFFIX):
            raise InvalidFilenameError(filename)
        return path

    def _resolve_new(self, raw_name: str) -> Path:
        """Guard a caller-supplied name, then sanitize it into a new target path."""
        PathGuard.resolve(self.root, (raw_name or "").strip())
        sanitized = FilesafeConverter.sanitize_filename(raw_name)
        if not sanitized:
            raise InvalidFilenameError(raw_name, "Empty filename after sanitization")
        return PathGuard.resolve(self.root, sanitized)

    def exists(self, filename: str) -> bool:
        return self._resolve(filename).is_file()

    def list(self) -> List[ListingEntry]:
        """List markdown files, newest first.

        Returns:
            ListingEntry per *.md file in the content directory
        """
        self.ensure_dir()
        entries = []
        with os.scandir(self.root) as it:
            for entry in it:
                if not entry.name.endswith(MARKDOWN_SUFFIX) or not entry.is_file():
                    continue
                info = entry.stat()
                entries.append(ListingEntry(
                    filename=entry.name,
                    modified=datetime.fromtimestamp(info.st_mtime, tz=timezone.utc),
                    size=info.st_size,
                ))
        entries.sort(key=lambda e: (e.modified, e.filename), reverse=True)
        return entries

    def read(self, filename: str) -> str:
        """Return the raw text of a document.

        Raises:
            NotFoundError: If the file does not exist
            PathEscapeError: If filename resolves outside the sandbox
            FileStoreError: If the file exceeds MAX_FILE_SIZE
        """
        path = self._resolve(filename)
        if not path.is_file():
            raise NotFoundError(filename)
        size = path.stat().st_size
        if size > MAX_FILE_SIZE:
            raise FileStoreError(
                f"File {filename} is {size} bytes, exceeding the {MAX_FILE_SIZE} byte limit",
                filename,
            )
        return path.read_text(encoding="utf-8")

    def create(self, filename: str, content: str) -> str:
        """Create a new document.

        The name is sanitized to [A-Za-z0-9.-] and given the .md suffix.

        Returns:
            The final filename

        Raises:
            AlreadyExistsError: If the sanitized name is taken
            InvalidFilenameError: If nothing is left after sanitization
            PathEscapeError: If filename resolves outside the sandbox
        """
        path = self._resolve_new(filename)
        self.ensure_dir()
        try:
            with open(path, "x", encoding="utf-8") as f:
                f.write(content)
        except FileExistsError:
            raise AlreadyExistsError(path.name)
        logger.debug(f"Created {path}")
        return path.name

    def update(self, filename: str, content: str) -> None:
        """Overwrite an existing document atomically.

        Content is written to a temporary file in the same directory and
        moved over the target, so readers see either the old or the new
        text, never a partial write.

        Raises:
            NotFoundError: If the file does not exist
        """
        path = self._resolve(filename)
        if not path.is_file():
            raise NotFoundError(filename)

        mode = stat.S_IMODE(path.stat().st_mode)
        fd, tmp_name = tempfile.mkstemp(dir=self.root, prefix=".tmp-", suffix=".part")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            os.chmod(tmp_name, mode)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        logger.debug(f"Updated {path}")

    def delete(self, filename: str) -> None:
        """Remove an existing document.

        Raises:
            NotFoundError: If the file does not exist
        """
        path = self._resolve(filename)
        if not path.is_file():
            raise NotFoundError(filename)
        path.unlink()
        logger.debug(f"Deleted {path}")

    def rename(self, old_filename: str, new_basename: str) -> str:
        """Rename a document within the content directory.

        Args:
            old_filename: Existing document
            new_basename: Desired name (sanitized, .md appended if missing)

        Returns:
            The final filename

        Raises:
            NotFoundError: If old_filename does not exist
            ConflictError: If the destination already exists
        """
        source = self._resolve(old_filename)
        if not source.is_file():
            raise NotFoundError(old_filename)
        destination = self._resolve_new(new_basename)
        if destination == source:
            return source.name
        if destination.exists() and not os.path.samefile(source, destination):
            raise ConflictError(source.name, destination.name)
        os.rename(source, destination)
        logger.info(f"Renamed post {source.name} -> {destination.name}")
        return destination.name
