"""Content service orchestration.

This module provides the ContentService class, the entry point external
collaborators (HTTP handlers, the CLI) use to manage a project's posts. It
composes ConnectionRegistry, FileStore and FrontmatterCodec, and runs every
operation while holding the project's exclusive lock so pulls, writes and
publishes on one working copy never interleave.
"""

import logging
import os
import re
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional

from src.content_service.models import (
    ConfigureResult,
    CreatePostResult,
    DeletePostResult,
    PostDocument,
    PublishOutcome,
    UpdatePostResult,
)
from src.file_store.errors import (
    AlreadyExistsError,
    FileStoreError,
    InvalidMetadataError,
)
from src.file_store.file_store import FileStore
from src.file_store.filesafe_converter import FilesafeConverter
from src.file_store.frontmatter_codec import FrontmatterCodec
from src.file_store.models import ListingEntry
from src.git_integration.connection_registry import ConnectionRegistry
from src.git_integration.errors import (
    ConfigError,
    PublishError,
    PushRejectedError,
    RepositoryUnavailableError,
)
from src.git_integration.git_repository import RepositoryConnection
from src.git_integration.models import PublishStatus, RepositoryConfig

logger = logging.getLogger(__name__)

ConfigProvider = Callable[[str], RepositoryConfig]

DEFAULT_POST_TITLE = "Untitled Post"
DEFAULT_POST_BODY = "Write your post here...\n"
DEFAULT_COMMIT_MESSAGE = "Update with GitCMS"

MAX_SLUG_ATTEMPTS = 50
MAX_TITLE_LENGTH = 300
MAX_COMMIT_MESSAGE_LENGTH = 200

METADATA_KEY_PATTERN = re.compile(r'^[A-Za-z0-9_-]+$')


class ContentService:
    """Entry point for configuring projects and managing their posts.

    Every public method resolves the project's configuration through the
    config provider, takes exclusive access to the project's connection
    (creating it on first use) and releases it before returning.

    Example:
        >>> registry = ConnectionRegistry("/srv/gitcms/data")
        >>> service = ContentService(registry, ProjectConfigLoader.provider("projects.yaml"))
        >>> service.create_post("blog", "Hello World").filename
        'hello-world.md'
        >>> service.publish("blog", "Fix typo").status
        'published'
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        config_provider: ConfigProvider,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize the service.

        Args:
            registry: Connection registry owned by the bootstrapping process
            config_provider: Returns a project's RepositoryConfig (the
                project database); raises ConfigError for unknown projects
            clock: Returns "now" as an aware datetime (injectable for tests)
        """
        self.registry = registry
        self.config_provider = config_provider
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _config(self, project_id: str) -> RepositoryConfig:
        try:
            return self.config_provider(project_id)
        except KeyError:
            raise ConfigError(f"Project {project_id} is not configured")

    @contextmanager
    def _open(self, project_id: str) -> Iterator[RepositoryConnection]:
        connection = self.registry.get(project_id)
        config = connection.config if connection is not None else self._config(project_id)
        with self.registry.exclusive(project_id, config) as connection:
            yield connection

    @staticmethod
    def _store(connection: RepositoryConnection) -> FileStore:
        return FileStore(connection.get_local_path(), connection.config.content_dir)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def configure(
        self,
        project_id: str,
        config: RepositoryConfig,
        discard_local_changes: bool = False,
    ) -> ConfigureResult:
        """Validate a configuration by connecting for real.

        The cached connection (if any) is evicted, then the working copy is
        cloned or reopened and pulled. Success is only reported once the pull
        went through; persisting the configuration is the caller's job and
        must happen after this returns.

        Args:
            project_id: Project identifier
            config: Configuration to validate
            discard_local_changes: Allow wiping unpublished work if the
                remote now points at a different repository

        Returns:
            ConfigureResult(configured=True)

        Raises:
            RepositoryUnavailableError: If the repository cannot be reached
        """
        with self.registry.locked(project_id):
            self.registry.dispose(project_id)
            connection = self.registry.get_or_init(
                project_id, config, discard_local_changes=discard_local_changes
            )
            if connection.last_sync is not None and not connection.last_sync.is_fresh:
                self.registry.dispose(project_id)
                raise RepositoryUnavailableError(project_id, connection.last_sync.reason or "pull failed")

        logger.info(f"Configured project {project_id} ({connection.state.value})")
        return ConfigureResult(configured=True, state=connection.state.value)

    def disconnect(self, project_id: str) -> None:
        """Forget a project's connection (configuration invalidated or project deleted)."""
        with self.registry.locked(project_id):
            self.registry.dispose(project_id)

    def list_posts(self, project_id: str) -> List[ListingEntry]:
        """List a project's posts, newest first, after a best-effort pull."""
        with self._open(project_id) as connection:
            connection.pull_latest()
            return self._store(connection).list()

    def create_post(self, project_id: str, title: Optional[str] = None) -> CreatePostResult:
        """Create a new post seeded with a frontmatter template.

        The filename is derived from the title and made unique by probing
        slug.md, slug-1.md, slug-2.md, ... The new file is then committed and
        pushed; a failed publish does not fail the creation.

        Args:
            project_id: Project identifier
            title: Post title (defaults to "Untitled Post")

        Returns:
            CreatePostResult with the allocated filename

        Raises:
            FileStoreError: If no free filename was found
        """
        title = (title or "").strip()[:MAX_TITLE_LENGTH] or DEFAULT_POST_TITLE
        slug = FilesafeConverter.slugify(title)
        content = FrontmatterCodec.compose(
            FrontmatterCodec.render_template(title, self.clock()),
            DEFAULT_POST_BODY,
        )

        with self._open(project_id) as connection:
            connection.pull_latest()
            store = self._store(connection)

            filename = None
            for attempt in range(MAX_SLUG_ATTEMPTS):
                try:
                    filename = store.create(FilesafeConverter.slug_candidate(slug, attempt), content)
                    break
                except AlreadyExistsError:
                    continue
            if filename is None:
                raise FileStoreError(
                    f"Failed to allocate a filename for '{slug}' after {MAX_SLUG_ATTEMPTS} attempts"
                )
            logger.info(f"Created post {filename} in project {project_id}")

            published = False
            try:
                published = connection.publish(f"Create post: {filename}").published
            except PublishError as e:
                logger.warning(f"Publish failed after creating post {filename}: {e.detail}")

        return CreatePostResult(filename=filename, published=published)

    def read_post(self, project_id: str, filename: str) -> PostDocument:
        """Read a post in both raw and decoded form.

        Raises:
            NotFoundError: If the post does not exist
            PathEscapeError: If filename escapes the content directory
        """
        with self._open(project_id) as connection:
            connection.pull_latest()
            raw_text = self._store(connection).read(filename)

        decoded = FrontmatterCodec.decode(raw_text)
        return PostDocument(
            filename=filename,
            raw_text=raw_text,
            metadata=decoded.metadata,
            body=decoded.body,
            has_frontmatter=decoded.has_frontmatter,
        )

    def update_post(
        self,
        project_id: str,
        filename: str,
        body: str,
        metadata_changes: Optional[Mapping[str, Any]] = None,
        desired_new_name: Optional[str] = None,
    ) -> UpdatePostResult:
        """Save a post, preserving its metadata, then optionally rename it.

        If body already carries a frontmatter block it replaces the file
        verbatim. Otherwise the existing block is kept, merged with
        metadata_changes, and recomposed with the new body. The rename runs
        only after the content write succeeded and refuses to overwrite.

        Args:
            project_id: Project identifier
            filename: Existing post filename
            body: New markdown (body only, or a complete document)
            metadata_changes: Frontmatter fields to set
            desired_new_name: New basename (slug) for the post

        Returns:
            UpdatePostResult; renamed posts carry redirect_filename

        Raises:
            NotFoundError: If the post does not exist
            ConflictError: If the rename target exists (content is saved)
            InvalidMetadataError: If a metadata value is unusable
        """
        changes = self.normalize_metadata(metadata_changes or {})

        with self._open(project_id) as connection:
            store = self._store(connection)
            original = store.read(filename)
            store.update(filename, self.merge_document(original, body, changes))
            logger.debug(f"Updated post {filename} in project {project_id}")

            if desired_new_name and desired_new_name.strip():
                desired = FilesafeConverter.ensure_suffix(os.path.basename(desired_new_name.strip()))
                if desired != filename:
                    new_filename = store.rename(filename, desired)
                    if new_filename != filename:
                        return UpdatePostResult(
                            filename=new_filename,
                            renamed=True,
                            redirect_filename=new_filename,
                        )

        return UpdatePostResult(filename=filename)

    def delete_post(self, project_id: str, filename: str) -> DeletePostResult:
        """Delete a post and publish the deletion.

        A failed publish is reported as deleted=True, published=False; the
        local deletion is kept and goes out with the next publish.
        """
        with self._open(project_id) as connection:
            connection.pull_latest()
            self._store(connection).delete(filename)
            logger.info(f"Deleted post {filename} in project {project_id}")

            try:
                result = connection.publish(f"Delete post: {filename}")
            except PublishError as e:
                logger.warning(f"Publish failed after deleting post {filename}: {e.detail}")
                return DeletePostResult(deleted=True, published=False, detail=e.detail)

        return DeletePostResult(deleted=True, published=result.published, detail=result.message)

    def publish(self, project_id: str, message: Optional[str] = None) -> PublishOutcome:
        """Commit and push everything in the working copy.

        Returns:
            PublishOutcome with status "published", "no_changes" or
            "push_rejected" (with a remediation hint)

        Raises:
            PublishError: For failures other than a rejected push
        """
        commit_message = (message or "").strip()[:MAX_COMMIT_MESSAGE_LENGTH] or DEFAULT_COMMIT_MESSAGE

        with self._open(project_id) as connection:
            connection.pull_latest()
            try:
                result = connection.publish(commit_message)
            except PushRejectedError as e:
                return PublishOutcome(
                    published=False,
                    status="push_rejected",
                    detail=e.detail,
                    hint=e.hint,
                )

        if result.status == PublishStatus.NO_CHANGES:
            return PublishOutcome(published=False, status="no_changes", detail=result.message)
        return PublishOutcome(
            published=True,
            status="published",
            detail=result.message,
            commit_sha=result.commit_sha,
        )

    # ------------------------------------------------------------------
    # Metadata policy
    # ------------------------------------------------------------------

    def normalize_metadata(self, raw: Mapping[str, Any]) -> Dict[str, Any]:
        """Normalize caller-supplied metadata changes.

        - title: trimmed, capped at 300 characters
        - description: trimmed
        - pubDate: parsed as ISO-8601; also stamps updatedDate with now
        - draft: bool, or "true"/"false" string
        - tags: list, or comma separated string
        - other keys: passed through (string, bool or list of strings)

        Raises:
            InvalidMetadataError: On bad keys or unusable values
        """
        changes: Dict[str, Any] = {}
        for key, value in raw.items():
            if not METADATA_KEY_PATTERN.match(str(key)):
                raise InvalidMetadataError(str(key), "invalid key")
            if value is None:
                continue

            if key == "title":
                changes[key] = str(value).strip()[:MAX_TITLE_LENGTH]
            elif key == "description":
                changes[key] = str(value).strip()
            elif key in FrontmatterCodec.DATE_FIELDS:
                parsed = FrontmatterCodec.parse_timestamp(value)
                if parsed is None:
                    raise InvalidMetadataError(key, f"not an ISO-8601 date: '{value}'")
                changes[key] = parsed
                if key == "pubDate":
                    changes.setdefault("updatedDate", self.clock())
            elif key == "draft":
                changes[key] = value if isinstance(value, bool) else str(value).strip().lower() == "true"
            elif key == "tags":
                if isinstance(value, str):
                    changes[key] = [t.strip() for t in value.split(",") if t.strip()]
                elif isinstance(value, (list, tuple)):
                    changes[key] = [str(t).strip() for t in value if str(t).strip()]
                else:
                    raise InvalidMetadataError(key, "expected a list or comma separated string")
            elif isinstance(value, (str, bool, datetime)):
                changes[key] = value
            elif isinstance(value, (list, tuple)):
                changes[key] = [str(v) for v in value]
            else:
                raise InvalidMetadataError(key, f"unsupported type {type(value).__name__}")
        return changes

    @staticmethod
    def merge_document(original: str, body: str, changes: Mapping[str, Any]) -> str:
        """Apply the frontmatter-preserving update policy.

        Args:
            original: Current file text
            body: Incoming text (body only, or a complete document)
            changes: Normalized metadata changes

        Returns:
            Text to write
        """
        body = body or ""
        if FrontmatterCodec.has_frontmatter(body):
            return body

        parts = FrontmatterCodec.split(original)
        if parts.has_frontmatter:
            block = FrontmatterCodec.merge(parts.frontmatter_block, changes) if changes else parts.frontmatter_block
            return FrontmatterCodec.compose(block, body)
        if changes:
            return FrontmatterCodec.compose(FrontmatterCodec.merge("", changes), body)
        return body
