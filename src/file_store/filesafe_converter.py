"""Filesafe filename and slug conversion.

This module converts human titles into URL-safe slugs and sanitizes
caller-supplied filenames to the [A-Za-z0-9.-] character set.
"""

import re

MARKDOWN_SUFFIX = ".md"
DEFAULT_SLUG = "untitled"


class FilesafeConverter:
    """Converts titles and raw names into safe markdown filenames.

    Conversion rules for slugs:
    - Lowercased
    - Runs of characters outside [a-z0-9] -> single hyphen
    - Leading/trailing hyphens trimmed
    - Empty result -> "untitled"

    Conversion rules for filenames:
    - Every character outside [A-Za-z0-9.-] -> hyphen
    - .md suffix appended when missing

    Examples:
        - "Hello World" -> "hello-world"
        - "  Q&A: Part 2!" -> "q-a-part-2"
        - "my post.md" -> "my-post.md"
    """

    @staticmethod
    def slugify(title: str) -> str:
        """Derive a slug from a title.

        Examples:
            >>> FilesafeConverter.slugify("Hello World")
            'hello-world'
            >>> FilesafeConverter.slugify("!!!")
            'untitled'
        """
        slug = re.sub(r'[^a-z0-9]+', '-', (title or "").lower().strip())
        return slug.strip('-') or DEFAULT_SLUG

    @staticmethod
    def slug_candidate(slug: str, attempt: int) -> str:
        """Filename for the n-th allocation attempt: slug.md, slug-1.md, ..."""
        suffix = "" if attempt == 0 else f"-{attempt}"
        return f"{slug}{suffix}{MARKDOWN_SUFFIX}"

    @staticmethod
    def sanitize_filename(filename: str) -> str:
        """Restrict a filename to [A-Za-z0-9.-] and force the .md suffix.

        Returns an empty string when nothing usable is left, so callers can
        reject it.

        Examples:
            >>> FilesafeConverter.sanitize_filename("my post")
            'my-post.md'
            >>> FilesafeConverter.sanitize_filename("notes.md")
            'notes.md'
        """
        sanitized = re.sub(r'[^A-Za-z0-9.-]', '-', (filename or "").strip())
        stem = sanitized[:-len(MARKDOWN_SUFFIX)] if sanitized.endswith(MARKDOWN_SUFFIX) else sanitized
        if not stem.strip('.-'):
            return ""
        return FilesafeConverter.ensure_suffix(sanitized)

    @staticmethod
    def ensure_suffix(name: str) -> str:
        """Append .md unless the name already ends with exactly ".md"."""
        if name.endswith(MARKDOWN_SUFFIX):
            return name
        return f"{name}{MARKDOWN_SUFFIX}"
