"""Data models for the file store.

This module defines the listing entry, the split/parsed document views and
the typed frontmatter entry union used by FrontmatterCodec.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

FrontmatterValue = Union[str, bool, datetime, List[str]]


@dataclass
class ListingEntry:
    """One markdown file in a content directory listing.

    Attributes:
        filename: Basename of the file (always ends in .md)
        modified: Last modification time (timezone-aware, UTC)
        size: Size in bytes
    """
    filename: str
    modified: datetime
    size: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filename": self.filename,
            "modified": self.modified.isoformat(),
            "size": self.size,
        }


@dataclass
class SplitDocument:
    """A markdown document split into its frontmatter block and body.

    Attributes:
        has_frontmatter: True if a leading ---/--- block was found
        frontmatter_block: Text between the delimiters (no delimiters)
        body: Everything after the closing delimiter
    """
    has_frontmatter: bool
    frontmatter_block: str
    body: str


class EntryKind(Enum):
    """Kinds of frontmatter lines.

    RAW covers every line that is not a recognizable "key: value" pair
    (comments, blank lines, nested YAML). RAW lines are never interpreted,
    only carried through merges verbatim.
    """

    STRING = "string"
    BOOL = "bool"
    TIMESTAMP = "timestamp"
    STRING_LIST = "string_list"
    RAW = "raw"


@dataclass
class FrontmatterEntry:
    """A single frontmatter line with its decoded value.

    Attributes:
        kind: Decoded kind of the value
        line: The original line, kept verbatim
        key: Field name (None for RAW lines)
        value: Decoded value (None for RAW lines)
    """
    kind: EntryKind
    line: str
    key: Optional[str] = None
    value: Optional[FrontmatterValue] = None


@dataclass
class ParsedDocument:
    """Decoded view of a markdown document."""
    metadata: Dict[str, FrontmatterValue] = field(default_factory=dict)
    body: str = ""
    has_frontmatter: bool = False
