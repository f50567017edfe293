"""Unit tests for content_service.content_service module.

A fake connection stands in for RepositoryConnection: it owns a plain
directory as its working copy and records pulls and publishes, so the
service's file handling and publish policy are exercised without git.
"""

from datetime import datetime, timezone

import pytest

from src.content_service.content_service import ContentService
from src.file_store.errors import (
    ConflictError,
    FileStoreError,
    InvalidMetadataError,
    NotFoundError,
    PathEscapeError,
)
from src.file_store.frontmatter_codec import FrontmatterCodec
from src.git_integration.connection_registry import ConnectionRegistry
from src.git_integration.errors import (
    ConfigError,
    PublishError,
    PushRejectedError,
    RepositoryUnavailableError,
)
from src.git_integration.models import (
    ConnectionState,
    PublishResult,
    PublishStatus,
    RepositoryConfig,
    SyncResult,
)

NOW = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


class FakeConnection:
    """Records pulls/publishes; the working copy is a plain directory."""

    def __init__(self, project_id, config, local_path):
        self.project_id = project_id
        self.config = config
        self.local_path = local_path
        self.state = ConnectionState.UNINITIALIZED
        self.last_sync = None
        self.pulls = 0
        self.published_messages = []
        self.publish_error = None
        self.pull_result = SyncResult.fresh()

    def initialize(self, discard_local_changes=False):
        self.local_path.mkdir(parents=True, exist_ok=True)
        self.last_sync = self.pull_result
        self.state = ConnectionState.SYNCED if self.pull_result.is_fresh else ConnectionState.STALE

    def get_local_path(self):
        return self.local_path

    def pull_latest(self, require_fresh=False):
        self.pulls += 1
        self.last_sync = self.pull_result
        return self.pull_result

    def publish(self, commit_message):
        if self.publish_error is not None:
            raise self.publish_error
        self.published_messages.append(commit_message)
        return PublishResult(PublishStatus.PUBLISHED, "Changes published successfully", "abc123")


@pytest.fixture
def connections():
    return {}


@pytest.fixture
def project_config():
    return RepositoryConfig(remote_url="https://github.com/acme/blog.git", content_dir="posts")


@pytest.fixture
def service(tmp_path, connections, project_config):
    def factory(project_id, config, local_path):
        connection = FakeConnection(project_id, config, local_path)
        connections[project_id] = connection
        return connection

    def provider(project_id):
        if project_id != "blog":
            raise KeyError(project_id)
        return project_config

    registry = ConnectionRegistry(tmp_path / "data", connection_factory=factory, lock_timeout=2)
    return ContentService(registry, provider, clock=lambda: NOW)


def posts_dir(tmp_path):
    return tmp_path / "data" / "blog" / "posts"


def write_post(tmp_path, name, content):
    directory = posts_dir(tmp_path)
    directory.mkdir(parents=True, exist_ok=True)
    (directory / name).write_text(content, encoding="utf-8")


class TestConfigure:
    """Test cases for configure() and disconnect()."""

    def test_configure_connects(self, service, project_config, connections):
        result = service.configure("blog", project_config)

        assert result.configured is True
        assert result.state == "synced"
        assert connections["blog"].state == ConnectionState.SYNCED

    def test_configure_replaces_cached_connection(self, service, project_config, connections):
        service.configure("blog", project_config)
        first = connections["blog"]

        service.configure("blog", project_config)

        assert connections["blog"] is not first

    def test_configure_with_failed_pull_raises_and_is_not_cached(self, service, project_config, mocker):
        mocker.patch.object(FakeConnection, "initialize", autospec=True, side_effect=_stale_initialize)

        with pytest.raises(RepositoryUnavailableError):
            service.configure("blog", project_config)

        assert service.registry.get("blog") is None

    def test_disconnect(self, service, project_config):
        service.configure("blog", project_config)

        service.disconnect("blog")

        assert service.registry.get("blog") is None

    def test_unknown_project_raises_config_error(self, service):
        with pytest.raises(ConfigError):
            service.list_posts("unknown")


def _stale_initialize(self, discard_local_changes=False):
    self.local_path.mkdir(parents=True, exist_ok=True)
    self.last_sync = SyncResult.stale("Could not resolve host")
    self.state = ConnectionState.STALE


class TestListAndRead:
    """Test cases for list_posts() and read_post()."""

    def test_list_pulls_first(self, service, connections, tmp_path):
        write_post(tmp_path, "a.md", "A")

        entries = service.list_posts("blog")

        assert [e.filename for e in entries] == ["a.md"]
        assert connections["blog"].pulls == 1

    def test_list_works_on_stale_working_copy(self, service, connections, tmp_path):
        write_post(tmp_path, "a.md", "A")
        service.list_posts("blog")
        connections["blog"].pull_result = SyncResult.stale("offline")

        assert [e.filename for e in service.list_posts("blog")] == ["a.md"]

    def test_read_decodes_frontmatter(self, service, tmp_path):
        write_post(tmp_path, "post.md", '---\ntitle: "Hi"\ndraft: true\n---\n\nBody\n')

        document = service.read_post("blog", "post.md")

        assert document.filename == "post.md"
        assert document.has_frontmatter
        assert document.metadata == {"title": "Hi", "draft": True}
        assert document.body == "Body\n"
        assert document.raw_text.startswith("---\n")

    def test_read_missing_raises(self, service):
        with pytest.raises(NotFoundError):
            service.read_post("blog", "missing.md")

    def test_read_traversal_raises(self, service):
        with pytest.raises(PathEscapeError):
            service.read_post("blog", "../../../etc/passwd")


class TestCreatePost:
    """Test cases for create_post()."""

    def test_create_uses_slug_and_template(self, service, connections, tmp_path):
        result = service.create_post("blog", "Hello World")

        assert result.filename == "hello-world.md"
        assert result.published is True
        assert connections["blog"].published_messages == ["Create post: hello-world.md"]

        metadata = FrontmatterCodec.decode((posts_dir(tmp_path) / "hello-world.md").read_text()).metadata
        assert metadata["title"] == "Hello World"
        assert metadata["pubDate"] == NOW
        assert metadata["draft"] is False
        assert metadata["tags"] == []

    def test_colliding_titles_get_numbered(self, service):
        names = [service.create_post("blog", "Hello World").filename for _ in range(3)]

        assert names == ["hello-world.md", "hello-world-1.md", "hello-world-2.md"]

    def test_default_title(self, service):
        assert service.create_post("blog").filename == "untitled-post.md"

    def test_publish_failure_keeps_created_file(self, service, connections, tmp_path):
        service.list_posts("blog")
        connections["blog"].publish_error = PublishError("blog", "network down")

        result = service.create_post("blog", "Offline")

        assert result.filename == "offline.md"
        assert result.published is False
        assert (posts_dir(tmp_path) / "offline.md").exists()

    def test_exhausted_slugs_raise(self, service, tmp_path, mocker):
        mocker.patch("src.content_service.content_service.MAX_SLUG_ATTEMPTS", 2)
        write_post(tmp_path, "taken.md", "x")
        write_post(tmp_path, "taken-1.md", "x")

        with pytest.raises(FileStoreError):
            service.create_post("blog", "Taken")


class TestUpdatePost:
    """Test cases for update_post()."""

    ORIGINAL = '---\ntitle: "Old"\ncustom: keep\ndraft: true\n---\n\nOld body\n'

    def test_body_only_keeps_frontmatter(self, service, tmp_path):
        write_post(tmp_path, "post.md", self.ORIGINAL)

        result = service.update_post("blog", "post.md", "New body\n")

        assert result.filename == "post.md"
        assert result.renamed is False
        assert (posts_dir(tmp_path) / "post.md").read_text() == (
            '---\ntitle: "Old"\ncustom: keep\ndraft: true\n---\n\nNew body\n'
        )

    def test_full_document_replaces_verbatim(self, service, tmp_path):
        write_post(tmp_path, "post.md", self.ORIGINAL)
        replacement = "---\ntitle: Replaced\n---\nText"

        service.update_post("blog", "post.md", replacement, {"title": "ignored"})

        assert (posts_dir(tmp_path) / "post.md").read_text() == replacement

    def test_metadata_changes_merged_in_place(self, service, tmp_path):
        write_post(tmp_path, "post.md", self.ORIGINAL)

        service.update_post("blog", "post.md", "Body", {"title": "  New  ", "draft": "false", "tags": "a, b"})

        text = (posts_dir(tmp_path) / "post.md").read_text()
        assert text == '---\ntitle: "New"\ncustom: keep\ndraft: false\ntags: ["a", "b"]\n---\n\nBody'

    def test_pub_date_change_stamps_updated_date(self, service, tmp_path):
        write_post(tmp_path, "post.md", self.ORIGINAL)

        service.update_post("blog", "post.md", "Body", {"pubDate": "2024-01-15"})

        metadata = FrontmatterCodec.decode((posts_dir(tmp_path) / "post.md").read_text()).metadata
        assert metadata["pubDate"] == datetime(2024, 1, 15, tzinfo=timezone.utc)
        assert metadata["updatedDate"] == NOW

    def test_invalid_date_rejected_before_write(self, service, tmp_path):
        write_post(tmp_path, "post.md", self.ORIGINAL)

        with pytest.raises(InvalidMetadataError):
            service.update_post("blog", "post.md", "Body", {"pubDate": "someday"})

        assert (posts_dir(tmp_path) / "post.md").read_text() == self.ORIGINAL

    def test_plain_file_without_changes_written_as_is(self, service, tmp_path):
        write_post(tmp_path, "plain.md", "old")

        service.update_post("blog", "plain.md", "new")

        assert (posts_dir(tmp_path) / "plain.md").read_text() == "new"

    def test_plain_file_with_changes_gets_frontmatter(self, service, tmp_path):
        write_post(tmp_path, "plain.md", "old")

        service.update_post("blog", "plain.md", "new", {"title": "T"})

        assert (posts_dir(tmp_path) / "plain.md").read_text() == '---\ntitle: "T"\n---\n\nnew'

    def test_update_does_not_publish(self, service, connections, tmp_path):
        write_post(tmp_path, "post.md", self.ORIGINAL)

        service.update_post("blog", "post.md", "Body")

        assert connections["blog"].published_messages == []

    def test_rename_reports_redirect(self, service, tmp_path):
        write_post(tmp_path, "post.md", self.ORIGINAL)

        result = service.update_post("blog", "post.md", "Body", desired_new_name="better-name")

        assert result.renamed is True
        assert result.filename == "better-name.md"
        assert result.redirect_filename == "better-name.md"
        assert not (posts_dir(tmp_path) / "post.md").exists()
        assert "Body" in (posts_dir(tmp_path) / "better-name.md").read_text()

    def test_rename_path_components_stripped(self, service, tmp_path):
        write_post(tmp_path, "post.md", self.ORIGINAL)

        result = service.update_post("blog", "post.md", "Body", desired_new_name="../../evil")

        assert result.filename == "evil.md"
        assert (posts_dir(tmp_path) / "evil.md").exists()

    def test_same_name_is_not_a_rename(self, service, tmp_path):
        write_post(tmp_path, "post.md", self.ORIGINAL)

        result = service.update_post("blog", "post.md", "Body", desired_new_name="post")

        assert result.renamed is False
        assert result.redirect_filename is None

    def test_rename_conflict_keeps_saved_content(self, service, tmp_path):
        write_post(tmp_path, "post.md", self.ORIGINAL)
        write_post(tmp_path, "taken.md", "other")

        with pytest.raises(ConflictError):
            service.update_post("blog", "post.md", "Saved body\n", desired_new_name="taken")

        assert "Saved body" in (posts_dir(tmp_path) / "post.md").read_text()
        assert (posts_dir(tmp_path) / "taken.md").read_text() == "other"

    def test_missing_post_raises(self, service):
        with pytest.raises(NotFoundError):
            service.update_post("blog", "missing.md", "Body")


class TestDeletePost:
    """Test cases for delete_post()."""

    def test_delete_publishes(self, service, connections, tmp_path):
        write_post(tmp_path, "post.md", "x")

        result = service.delete_post("blog", "post.md")

        assert result.deleted is True
        assert result.published is True
        assert connections["blog"].published_messages == ["Delete post: post.md"]
        assert not (posts_dir(tmp_path) / "post.md").exists()

    def test_publish_failure_is_partial_success(self, service, connections, tmp_path):
        write_post(tmp_path, "post.md", "x")
        service.list_posts("blog")
        connections["blog"].publish_error = PushRejectedError("blog", "rejected (fetch first)")

        result = service.delete_post("blog", "post.md")

        assert result.deleted is True
        assert result.published is False
        assert "rejected" in result.detail
        assert not (posts_dir(tmp_path) / "post.md").exists()

    def test_delete_missing_raises(self, service):
        with pytest.raises(NotFoundError):
            service.delete_post("blog", "missing.md")


class TestPublish:
    """Test cases for publish()."""

    def test_published(self, service, connections):
        outcome = service.publish("blog", "Fix typo")

        assert outcome.published is True
        assert outcome.status == "published"
        assert outcome.commit_sha == "abc123"
        assert connections["blog"].published_messages == ["Fix typo"]
        assert connections["blog"].pulls == 1

    def test_default_and_truncated_messages(self, service, connections):
        service.publish("blog")
        service.publish("blog", "   ")
        service.publish("blog", "x" * 500)

        messages = connections["blog"].published_messages
        assert messages[0] == messages[1] == "Update with GitCMS"
        assert len(messages[2]) == 200

    def test_no_changes(self, service, connections, mocker):
        service.list_posts("blog")
        mocker.patch.object(
            connections["blog"], "publish",
            return_value=PublishResult(PublishStatus.NO_CHANGES, "No changes to publish"),
        )

        outcome = service.publish("blog")

        assert outcome.published is False
        assert outcome.status == "no_changes"
        assert outcome.to_dict() == {
            "published": False,
            "status": "no_changes",
            "detail": "No changes to publish",
        }

    def test_push_rejected_returns_hint(self, service, connections):
        service.list_posts("blog")
        connections["blog"].publish_error = PushRejectedError("blog", "! [rejected] main -> main (fetch first)")

        outcome = service.publish("blog", "msg")

        assert outcome.published is False
        assert outcome.status == "push_rejected"
        assert outcome.hint == "Remote has new commits. Pull/rebase then try again."

    def test_other_failures_propagate(self, service, connections):
        service.list_posts("blog")
        connections["blog"].publish_error = PublishError("blog", "Authentication failed")

        with pytest.raises(PublishError):
            service.publish("blog")


class TestNormalizeMetadata:
    """Test cases for normalize_metadata()."""

    @pytest.fixture
    def normalize(self, service):
        return service.normalize_metadata

    def test_title_trimmed_and_capped(self, normalize):
        assert normalize({"title": "  " + "x" * 400})["title"] == "x" * 300

    def test_none_values_skipped(self, normalize):
        assert normalize({"title": None, "description": " d "}) == {"description": "d"}

    def test_draft_and_tags(self, normalize):
        changes = normalize({"draft": "TRUE", "tags": ["a", " ", "b "]})

        assert changes == {"draft": True, "tags": ["a", "b"]}

    def test_explicit_updated_date_is_kept(self, normalize):
        changes = normalize({"pubDate": "2024-01-01", "updatedDate": "2024-02-01"})

        assert changes["updatedDate"] == datetime(2024, 2, 1, tzinfo=timezone.utc)

    def test_other_keys_pass_through(self, normalize):
        assert normalize({"layout": "post", "featured": True, "authors": ["a"]}) == {
            "layout": "post", "featured": True, "authors": ["a"]
        }

    def test_plain_date_key_does_not_wipe_value(self, normalize):
        original = '---\ntitle: "x"\ndate: 2024-01-15\n---\n\nbody'

        merged = ContentService.merge_document(original, "body", normalize({"date": "next week"}))

        assert merged == '---\ntitle: "x"\ndate: "next week"\n---\n\nbody'

    @pytest.mark.parametrize("raw", [{"bad key": "x"}, {"count": 3}, {"tags": 5}, {"updatedDate": "next week"}])
    def test_invalid_input_raises(self, normalize, raw):
        with pytest.raises(InvalidMetadataError):
            normalize(raw)
