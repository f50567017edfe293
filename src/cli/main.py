"""Main CLI entry point for the gitcms command.

This module provides the Typer application operators use to drive the
content store from a terminal: validate a project's repository
configuration, then list, create, show, update, delete and publish posts.
Every command goes through ContentService, exactly like the HTTP layer.
"""

import logging
import re
import sys
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterator, List, Optional

import typer

from src.cli.errors import InvalidOptionError, MissingOptionError
from src.cli.models import ExitCode
from src.cli.output import OutputHandler
from src.content_service.config_loader import ProjectConfigLoader
from src.content_service.content_service import ContentService
from src.content_service.settings import Settings
from src.file_store.errors import AlreadyExistsError, ConflictError
from src.git_integration.connection_registry import ConnectionRegistry
from src.git_integration.errors import (
    ContentStoreError,
    GitCommandError,
    ProjectBusyError,
    PushRejectedError,
    RepositoryUnavailableError,
    SyncStaleError,
)
from src.git_integration.git_runner import GitCommandRunner

app = typer.Typer(
    name="gitcms",
    help="""Manage markdown posts stored in a git repository.

QUICK START:
  gitcms configure blog --remote https://github.com/acme/blog.git --credential-env BLOG_TOKEN
  gitcms list blog
  gitcms create blog "Hello World"
  gitcms publish blog -m "First post"
""",
    add_completion=False,
    rich_markup_mode=None,
    no_args_is_help=True,
)

# Module logger
logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "gitcms.yaml"

AUTH_FAILURE_PATTERN = re.compile(
    r'authentication failed|could not read username|permission denied|'
    r'invalid username or password|\b401\b|\b403\b',
    re.IGNORECASE,
)


@dataclass
class CLIContext:
    """Options shared by every command (set by the app callback)."""
    config_path: str = DEFAULT_CONFIG_PATH
    verbosity: int = 0
    no_color: bool = False


def _configure_logging(verbosity: int, logdir: Optional[str] = None) -> None:
    """Configure logging based on verbosity level.

    Configures only the 'src' namespace logger to avoid affecting third-party
    libraries. The root logger is left unchanged.

    Args:
        verbosity: Verbosity level (0=WARNING, 1=INFO, 2=DEBUG)
        logdir: Optional directory for log files (creates timestamped log file)
    """
    if verbosity == 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    app_logger = logging.getLogger("src")
    app_logger.setLevel(level)

    log_format = "%(asctime)s [%(levelname)8s] %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(log_format, datefmt=date_format))
    app_logger.addHandler(console_handler)

    if logdir:
        log_path = Path(logdir)
        log_path.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = log_path / f"gitcms_{timestamp}.log"

        file_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(file_format, datefmt=date_format))
        app_logger.addHandler(file_handler)

        logger.info(f"Logging to file: {log_file}")


def exit_code_for(error: Exception) -> ExitCode:
    """Map a content store exception to the process exit code."""
    if isinstance(error, (ConflictError, AlreadyExistsError, PushRejectedError)):
        return ExitCode.CONFLICT
    if isinstance(error, RepositoryUnavailableError):
        if AUTH_FAILURE_PATTERN.search(error.reason or ""):
            return ExitCode.AUTH_ERROR
        return ExitCode.NETWORK_ERROR
    if isinstance(error, (GitCommandError, SyncStaleError, ProjectBusyError)):
        return ExitCode.NETWORK_ERROR
    return ExitCode.GENERAL_ERROR


def _build_service(config_path: str) -> ContentService:
    """Wire settings, git runner, registry and config provider together."""
    settings = Settings.from_env()
    runner = GitCommandRunner(
        timeout=settings.git_timeout,
        network_timeout=settings.network_timeout,
    )
    registry = ConnectionRegistry(
        settings.data_root,
        runner=runner,
        lock_timeout=settings.lock_timeout,
    )
    return ContentService(registry, ProjectConfigLoader.provider(config_path))


@contextmanager
def _handle_errors(output: OutputHandler, action: str) -> Iterator[None]:
    """Report failures and convert them to typer.Exit with a mapped code."""
    try:
        yield
    except typer.Exit:
        raise
    except ContentStoreError as e:
        logger.error(f"{action} failed: {e}")
        output.error(f"{action} failed: {e}")
        raise typer.Exit(exit_code_for(e))
    except ValueError as e:
        output.error(f"{action} failed: {e}")
        raise typer.Exit(ExitCode.GENERAL_ERROR)
    except Exception as e:
        logger.exception(f"Unexpected error during {action.lower()}")
        output.error(f"Unexpected error: {e}")
        raise typer.Exit(ExitCode.GENERAL_ERROR)


def _output(ctx: typer.Context) -> OutputHandler:
    options: CLIContext = ctx.obj
    return OutputHandler(verbosity=options.verbosity, no_color=options.no_color)


def parse_assignments(assignments: Optional[List[str]]) -> Dict[str, str]:
    """Parse repeated --set key=value options into a mapping.

    Raises:
        InvalidOptionError: If an assignment has no '=' or an empty key
    """
    changes: Dict[str, str] = {}
    for assignment in assignments or []:
        key, separator, value = assignment.partition("=")
        if not separator or not key.strip():
            raise InvalidOptionError("--set", f"expected key=value, got '{assignment}'")
        changes[key.strip()] = value
    return changes


@app.callback()
def main_callback(
    ctx: typer.Context,
    config_path: str = typer.Option(
        DEFAULT_CONFIG_PATH,
        "--config",
        "-c",
        help="Projects configuration file (YAML)",
        envvar="GITCMS_CONFIG",
    ),
    logdir: Optional[str] = typer.Option(
        None,
        "--logdir",
        help="Directory for log files (creates timestamped log file)",
    ),
    verbosity: int = typer.Option(
        0,
        "--verbosity",
        "-v",
        help="Verbosity level: 0=summary, 1=info, 2=debug",
    ),
    no_color: bool = typer.Option(
        False,
        "--no-color",
        help="Disable colored output",
    ),
) -> None:
    """Manage markdown posts stored in a git repository."""
    _configure_logging(verbosity, logdir)
    ctx.obj = CLIContext(config_path=config_path, verbosity=verbosity, no_color=no_color)


@app.command()
def configure(
    ctx: typer.Context,
    project_id: str = typer.Argument(..., help="Project identifier"),
    remote: Optional[str] = typer.Option(None, "--remote", help="Repository URL", metavar="URL"),
    branch: str = typer.Option("main", "--branch", help="Branch to work on"),
    content_dir: str = typer.Option("", "--content-dir", help="Posts directory inside the repository"),
    committer_name: str = typer.Option("GitCMS", "--committer-name", help="Commit author name"),
    committer_email: str = typer.Option("noreply@gitcms.local", "--committer-email", help="Commit author email"),
    credential_env: Optional[str] = typer.Option(
        None,
        "--credential-env",
        help="Environment variable holding the access token",
        metavar="VAR",
    ),
    discard_local_changes: bool = typer.Option(
        False,
        "--discard-local-changes",
        help="Allow wiping unpublished work when the remote changed",
    ),
) -> None:
    """Validate a repository configuration by cloning or pulling it, then save it."""
    options: CLIContext = ctx.obj
    output = _output(ctx)

    with _handle_errors(output, "Configure"):
        if not remote:
            raise MissingOptionError(["--remote"])

        service = _build_service(options.config_path)
        raw = {
            'remote_url': remote,
            'branch': branch,
            'content_dir': content_dir,
            'committer_name': committer_name,
            'committer_email': committer_email,
        }
        if credential_env:
            raw['credential_env'] = credential_env
        config = ProjectConfigLoader.parse_project(project_id, raw)

        with output.spinner(f"Connecting to {remote}..."):
            result = service.configure(
                project_id, config, discard_local_changes=discard_local_changes
            )

        # Persist only after connectivity was proven
        ProjectConfigLoader.save(options.config_path, project_id, config, credential_env)
        output.success(f"Project {project_id} configured ({result.state})")
        output.info(f"  Config file: {options.config_path}")


@app.command("list")
def list_posts(
    ctx: typer.Context,
    project_id: str = typer.Argument(..., help="Project identifier"),
) -> None:
    """List posts, newest first."""
    options: CLIContext = ctx.obj
    output = _output(ctx)

    with _handle_errors(output, "List"):
        service = _build_service(options.config_path)
        with output.spinner("Pulling latest changes..."):
            entries = service.list_posts(project_id)
        output.print_listing(entries)


@app.command()
def create(
    ctx: typer.Context,
    project_id: str = typer.Argument(..., help="Project identifier"),
    title: Optional[str] = typer.Argument(None, help="Post title"),
) -> None:
    """Create a post from the frontmatter template and publish it."""
    options: CLIContext = ctx.obj
    output = _output(ctx)

    with _handle_errors(output, "Create"):
        service = _build_service(options.config_path)
        with output.spinner("Creating post..."):
            result = service.create_post(project_id, title)
        output.success(f"Created {result.filename}")
        if not result.published:
            output.warning("Post was not published; run 'gitcms publish' to retry")


@app.command()
def show(
    ctx: typer.Context,
    project_id: str = typer.Argument(..., help="Project identifier"),
    filename: str = typer.Argument(..., help="Post filename"),
    raw: bool = typer.Option(False, "--raw", help="Print the file exactly as stored"),
) -> None:
    """Show a post's metadata and body."""
    options: CLIContext = ctx.obj
    output = _output(ctx)

    with _handle_errors(output, "Show"):
        service = _build_service(options.config_path)
        document = service.read_post(project_id, filename)
        output.print_post(document, raw=raw)


@app.command()
def update(
    ctx: typer.Context,
    project_id: str = typer.Argument(..., help="Project identifier"),
    filename: str = typer.Argument(..., help="Post filename"),
    body_file: Optional[str] = typer.Option(
        None,
        "--body-file",
        help="File with the new markdown ('-' reads stdin); keeps the current body if omitted",
        metavar="PATH",
    ),
    assignments: Optional[List[str]] = typer.Option(
        None,
        "--set",
        help="Metadata change key=value (can be used multiple times)",
        metavar="KEY=VALUE",
    ),
    rename: Optional[str] = typer.Option(None, "--rename", help="New file name", metavar="NAME"),
) -> None:
    """Save a post's body and metadata, optionally renaming it. Does not publish."""
    options: CLIContext = ctx.obj
    output = _output(ctx)

    with _handle_errors(output, "Update"):
        changes = parse_assignments(assignments)
        service = _build_service(options.config_path)

        if body_file == "-":
            body = sys.stdin.read()
        elif body_file:
            body = Path(body_file).read_text(encoding="utf-8")
        else:
            body = service.read_post(project_id, filename).body

        result = service.update_post(
            project_id,
            filename,
            body,
            metadata_changes=changes,
            desired_new_name=rename,
        )
        if result.renamed:
            output.success(f"Saved and renamed {filename} -> {result.redirect_filename}")
        else:
            output.success(f"Saved {result.filename}")
        output.info("Run 'gitcms publish' to push the change")


@app.command()
def delete(
    ctx: typer.Context,
    project_id: str = typer.Argument(..., help="Project identifier"),
    filename: str = typer.Argument(..., help="Post filename"),
) -> None:
    """Delete a post and publish the deletion."""
    options: CLIContext = ctx.obj
    output = _output(ctx)

    with _handle_errors(output, "Delete"):
        service = _build_service(options.config_path)
        with output.spinner(f"Deleting {filename}..."):
            result = service.delete_post(project_id, filename)
        output.success(f"Deleted {filename}")
        if not result.published:
            output.warning(f"Deletion not published: {result.detail}")


@app.command()
def publish(
    ctx: typer.Context,
    project_id: str = typer.Argument(..., help="Project identifier"),
    message: Optional[str] = typer.Option(None, "--message", "-m", help="Commit message"),
) -> None:
    """Commit and push every pending change."""
    options: CLIContext = ctx.obj
    output = _output(ctx)

    with _handle_errors(output, "Publish"):
        service = _build_service(options.config_path)
        with output.spinner("Publishing..."):
            outcome = service.publish(project_id, message)
        output.print_publish_outcome(outcome)
        if outcome.status == "push_rejected":
            raise typer.Exit(ExitCode.CONFLICT)


def main() -> None:
    """Main entry point for the CLI application."""
    app()


# Allow running as: python -m src.cli.main
if __name__ == "__main__":
    main()
