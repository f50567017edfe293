"""Result models returned by ContentService.

These are the values the HTTP layer serializes 1:1 into responses.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

from src.file_store.models import FrontmatterValue


@dataclass
class ConfigureResult:
    """Outcome of configure(): only returned once connectivity is proven."""
    configured: bool
    state: str = ""


@dataclass
class CreatePostResult:
    """Outcome of create_post().

    Attributes:
        filename: Allocated filename (slug.md, slug-1.md, ...)
        published: Whether the best-effort commit+push succeeded
    """
    filename: str
    published: bool = False


@dataclass
class PostDocument:
    """A post as read from the working copy.

    Attributes:
        filename: Document filename
        raw_text: Full file text
        metadata: Decoded frontmatter (ordered)
        body: Markdown after the frontmatter block
        has_frontmatter: Whether the file carries a frontmatter block
    """
    filename: str
    raw_text: str
    metadata: Dict[str, FrontmatterValue] = field(default_factory=dict)
    body: str = ""
    has_frontmatter: bool = False


@dataclass
class UpdatePostResult:
    """Outcome of update_post().

    A rename is reported through redirect_filename so the caller can move
    its editor to the new name; a plain update leaves it None.
    """
    filename: str
    renamed: bool = False
    redirect_filename: Optional[str] = None


@dataclass
class DeletePostResult:
    """Outcome of delete_post(). deleted=True with published=False is a partial success."""
    deleted: bool
    published: bool
    detail: str = ""


@dataclass
class PublishOutcome:
    """Outcome of publish().

    Attributes:
        published: True only when a push happened
        status: "published", "no_changes" or "push_rejected"
        detail: Human readable message
        hint: Remediation hint for rejected pushes
        commit_sha: HEAD after a successful push
    """
    published: bool
    status: str
    detail: str
    hint: Optional[str] = None
    commit_sha: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}
