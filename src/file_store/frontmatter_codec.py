"""YAML-like frontmatter parsing and line-preserving merging.

This module handles the metadata header of markdown posts. It deliberately
does not round-trip through a YAML library: merges rewrite only the lines
whose key is being changed, so unknown fields, comments and the original
key order survive every edit.

Frontmatter format:
    ---
    title: "Hello World"
    pubDate: 2024-01-15T10:30:00.000Z
    draft: false
    tags: ["python", "git"]
    customField: anything
    ---

    Body markdown...
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from .errors import InvalidMetadataError
from .models import EntryKind, FrontmatterEntry, FrontmatterValue, ParsedDocument, SplitDocument


class FrontmatterCodec:
    """Splits, parses, merges and composes frontmatter blocks.

    All methods are pure: no I/O. Value coercion on parse is applied in this
    priority: boolean literal, ISO-8601 date, bracketed list, quoted string,
    raw string.
    """

    # Leading ---/--- block; one blank line after the closing delimiter
    # belongs to the delimiter so compose() and split() round-trip the body
    FRONTMATTER_PATTERN = re.compile(
        r'\A---[ \t]*\r?\n(?:(.*?)\r?\n)?---[ \t]*(?:\r?\n(?:[ \t]*\r?\n)?|\Z)',
        re.DOTALL
    )

    # Top-level "key: value" line. Indented lines belong to nested YAML and
    # are treated as raw.
    KEY_LINE_PATTERN = re.compile(r'^([A-Za-z0-9_-]+)\s*:\s*(.*?)\s*$')

    BOOL_PATTERN = re.compile(r'^(true|false)$', re.IGNORECASE)
    DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}(?:[T ]\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?(?:Z|[+-]\d{2}:?\d{2})?)?$')
    LIST_PATTERN = re.compile(r'^\[(.*)\]$')
    LIST_ITEM_PATTERN = re.compile(r'\s*(?:"((?:[^"\\]|\\.)*)"|\'([^\']*)\'|([^,]+))\s*(?:,|$)')

    TAGS_FIELD = "tags"
    DRAFT_FIELD = "draft"
    DATE_FIELDS = frozenset({"pubDate", "updatedDate"})

    # ------------------------------------------------------------------
    # Split / compose
    # ------------------------------------------------------------------

    @classmethod
    def split(cls, raw_text: str) -> SplitDocument:
        """Split a document into frontmatter block and body.

        Args:
            raw_text: Full markdown text

        Returns:
            SplitDocument; without a leading block the whole text is body
        """
        raw_text = raw_text or ""
        match = cls.FRONTMATTER_PATTERN.match(raw_text)
        if not match:
            return SplitDocument(has_frontmatter=False, frontmatter_block="", body=raw_text)
        return SplitDocument(
            has_frontmatter=True,
            frontmatter_block=match.group(1) or "",
            body=raw_text[match.end():],
        )

    @classmethod
    def has_frontmatter(cls, raw_text: str) -> bool:
        return cls.FRONTMATTER_PATTERN.match(raw_text or "") is not None

    @staticmethod
    def compose(frontmatter_block: str, body: str) -> str:
        """Reassemble a document as ---\\n<block>\\n---\\n\\n<body>."""
        return f"---\n{frontmatter_block}\n---\n\n{body or ''}"

    # ------------------------------------------------------------------
    # Parse
    # ------------------------------------------------------------------

    @classmethod
    def parse(cls, frontmatter_block: str) -> Dict[str, FrontmatterValue]:
        """Parse a frontmatter block into an ordered key -> value mapping.

        Unrecognized lines are skipped. A repeated key keeps its first
        position and its last value.
        """
        metadata: Dict[str, FrontmatterValue] = {}
        for entry in cls.parse_entries(frontmatter_block):
            if entry.kind is not EntryKind.RAW:
                metadata[entry.key] = entry.value
        return metadata

    @classmethod
    def parse_entries(cls, frontmatter_block: str) -> List[FrontmatterEntry]:
        """Parse a block into typed entries, one per line, RAW lines included."""
        entries = []
        for line in cls._lines(frontmatter_block):
            match = cls.KEY_LINE_PATTERN.match(line)
            if not match:
                entries.append(FrontmatterEntry(kind=EntryKind.RAW, line=line))
                continue
            kind, value = cls.coerce(match.group(2))
            entries.append(FrontmatterEntry(kind=kind, line=line, key=match.group(1), value=value))
        return entries

    @classmethod
    def decode(cls, raw_text: str) -> ParsedDocument:
        """Split and parse in one step."""
        parts = cls.split(raw_text)
        return ParsedDocument(
            metadata=cls.parse(parts.frontmatter_block) if parts.has_frontmatter else {},
            body=parts.body,
            has_frontmatter=parts.has_frontmatter,
        )

    @classmethod
    def coerce(cls, raw_value: str) -> tuple:
        """Decode a raw value string into (EntryKind, value)."""
        value = raw_value.strip()

        if cls.BOOL_PATTERN.match(value):
            return EntryKind.BOOL, value.lower() == "true"

        if cls.DATE_PATTERN.match(value):
            parsed = cls.parse_timestamp(value)
            if parsed is not None:
                return EntryKind.TIMESTAMP, parsed

        list_match = cls.LIST_PATTERN.match(value)
        if list_match:
            return EntryKind.STRING_LIST, cls._parse_list(list_match.group(1))

        return EntryKind.STRING, cls._unquote(value)

    @classmethod
    def _parse_list(cls, inner: str) -> List[str]:
        items = []
        for match in cls.LIST_ITEM_PATTERN.finditer(inner):
            double, single, bare = match.groups()
            if double is not None:
                item = double.replace('\\"', '"')
            elif single is not None:
                item = single
            else:
                item = (bare or "").strip()
            if item:
                items.append(item)
        return items

    @staticmethod
    def _unquote(value: str) -> str:
        if len(value) >= 2 and value[0] == value[-1] == '"':
            return value[1:-1].replace('\\"', '"')
        if len(value) >= 2 and value[0] == value[-1] == "'":
            return value[1:-1].replace("''", "'")
        return value

    # ------------------------------------------------------------------
    # Timestamps
    # ------------------------------------------------------------------

    @staticmethod
    def parse_timestamp(value: Any) -> Optional[datetime]:
        """Parse an ISO-8601 string (or datetime) into an aware UTC datetime.

        Naive values are taken to be UTC. Returns None if unparseable.
        """
        if isinstance(value, datetime):
            parsed = value
        else:
            text = str(value or "").strip()
            if not text:
                return None
            if text.endswith(("Z", "z")):
                text = text[:-1] + "+00:00"
            try:
                parsed = datetime.fromisoformat(text)
            except ValueError:
                return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)

    @staticmethod
    def format_timestamp(value: datetime) -> str:
        """Render a datetime as 2024-01-15T10:30:00.000Z."""
        utc = value.astimezone(timezone.utc) if value.tzinfo else value.replace(tzinfo=timezone.utc)
        return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"

    # ------------------------------------------------------------------
    # Merge / render
    # ------------------------------------------------------------------

    @staticmethod
    def quote(value: Any) -> str:
        """Double-quote a scalar, escaping embedded double quotes."""
        text = "" if value is None else str(value)
        text = text.replace("\r", " ").replace("\n", " ")
        return '"' + text.replace('"', '\\"') + '"'

    @classmethod
    def render_value(cls, key: str, value: Any) -> str:
        """Render the right-hand side of a frontmatter line for a key.

        Raises:
            InvalidMetadataError: If a date field value is not an ISO-8601 date
        """
        if key == cls.TAGS_FIELD:
            if isinstance(value, str):
                items = [t.strip() for t in value.split(",") if t.strip()]
            else:
                items = [str(t).strip() for t in (value or []) if str(t).strip()]
            return "[" + ", ".join(cls.quote(t) for t in items) + "]"
        if key == cls.DRAFT_FIELD:
            if isinstance(value, str):
                value = value.strip().lower() == "true"
            return "true" if value else "false"
        if key in cls.DATE_FIELDS:
            parsed = cls.parse_timestamp(value)
            if parsed is None:
                raise InvalidMetadataError(key, f"not an ISO-8601 date: '{value}'")
            return cls.format_timestamp(parsed)
        # Typed values keep their kind so parse() decodes them back unchanged
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, datetime):
            return cls.format_timestamp(value)
        if isinstance(value, (list, tuple)):
            return "[" + ", ".join(cls.quote(v) for v in value) + "]"
        return cls.quote(value)

    @classmethod
    def render_line(cls, key: str, value: Any) -> str:
        return f"{key}: {cls.render_value(key, value)}"

    @classmethod
    def merge(cls, frontmatter_block: str, changes: Mapping[str, Any]) -> str:
        """Apply metadata changes to a block, touching only the changed keys.

        Lines whose key appears in changes are re-rendered in place; keys not
        present in the block are appended at the end in the order given; every
        other line is copied verbatim.

        Args:
            frontmatter_block: Existing block (without delimiters)
            changes: key -> new value

        Returns:
            The merged block

        Raises:
            ValueError: If a change key is not a valid frontmatter key
            InvalidMetadataError: If a date field value cannot be parsed
        """
        for key in changes:
            if not re.fullmatch(r'[A-Za-z0-9_-]+', key):
                raise ValueError(f"Invalid frontmatter key: '{key}'")

        lines = cls._lines(frontmatter_block)
        applied = set()
        for index, line in enumerate(lines):
            match = cls.KEY_LINE_PATTERN.match(line)
            if not match or match.group(1) not in changes:
                continue
            key = match.group(1)
            lines[index] = cls.render_line(key, changes[key])
            applied.add(key)

        for key, value in changes.items():
            if key not in applied:
                lines.append(cls.render_line(key, value))
        return "\n".join(lines)

    @classmethod
    def render_template(cls, title: str, now: datetime) -> str:
        """Frontmatter block seeded into a newly created post."""
        timestamp = cls.format_timestamp(now)
        return "\n".join([
            f"title: {cls.quote(title)}",
            'description: ""',
            f"pubDate: {timestamp}",
            "draft: false",
            "tags: []",
            f"updatedDate: {timestamp}",
        ])

    @staticmethod
    def _lines(frontmatter_block: str) -> List[str]:
        if not frontmatter_block:
            return []
        return re.split(r'\r?\n', frontmatter_block)
