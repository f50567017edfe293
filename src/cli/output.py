"""Terminal output handling using Rich library.

This module provides the OutputHandler class for all CLI terminal output:
colored status lines, spinners around network operations, and tables for
post listings. Supports verbosity levels and the --no-color flag.
"""

from contextlib import contextmanager
from typing import Iterator, List, Mapping

from rich.console import Console
from rich.live import Live
from rich.spinner import Spinner
from rich.table import Table

from src.content_service.models import PostDocument, PublishOutcome
from src.file_store.frontmatter_codec import FrontmatterCodec
from src.file_store.models import ListingEntry


class OutputHandler:
    """Handles all terminal output using Rich library.

    Attributes:
        verbosity: Verbosity level (0=summary, 1=info, 2=debug)
        console: Rich Console instance for output

    Example:
        >>> handler = OutputHandler(verbosity=1, no_color=False)
        >>> handler.success("Post created")
        >>> with handler.spinner("Publishing..."):
        ...     pass
    """

    def __init__(self, verbosity: int = 0, no_color: bool = False):
        """Initialize output handler.

        Args:
            verbosity: Verbosity level (0=summary, 1=info, 2=debug)
            no_color: Disable color output if True
        """
        self.verbosity = verbosity
        self.console = Console(
            no_color=no_color,
            highlight=False,
        )

    def success(self, message: str) -> None:
        self.console.print(f"[green]✓[/green] {message}")

    def error(self, message: str) -> None:
        self.console.print(f"[red]✗[/red] {message}", style="red")

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow]⚠[/yellow] {message}", style="yellow")

    def info(self, message: str) -> None:
        """Display info message (only if verbosity >= 1)."""
        if self.verbosity >= 1:
            self.console.print(message)

    def debug(self, message: str) -> None:
        """Display debug message (only if verbosity >= 2)."""
        if self.verbosity >= 2:
            self.console.print(f"[dim]{message}[/dim]")

    def print(self, message: str) -> None:
        """Display message without markup processing."""
        self.console.print(message, markup=False)

    @contextmanager
    def spinner(self, message: str) -> Iterator[None]:
        """Display spinner while a network operation runs.

        Example:
            >>> with handler.spinner("Cloning repository..."):
            ...     service.configure(project_id, config)
        """
        spinner = Spinner("dots", text=message)
        with Live(spinner, console=self.console, refresh_per_second=10, transient=True):
            yield

    def print_listing(self, entries: List[ListingEntry]) -> None:
        """Display posts newest first as a table.

        Args:
            entries: Listing returned by ContentService.list_posts()
        """
        if not entries:
            self.console.print("[yellow]No posts yet[/yellow]")
            return

        table = Table(show_header=True, header_style="bold")
        table.add_column("Filename")
        table.add_column("Modified")
        table.add_column("Size", justify="right")
        for entry in entries:
            table.add_row(
                entry.filename,
                FrontmatterCodec.format_timestamp(entry.modified),
                str(entry.size),
            )
        self.console.print(table)

    def print_metadata(self, metadata: Mapping[str, object]) -> None:
        for key, value in metadata.items():
            self.console.print(f"[bold]{key}[/bold]: {value}")

    def print_post(self, document: PostDocument, raw: bool = False) -> None:
        """Display a post.

        Args:
            document: Post returned by ContentService.read_post()
            raw: Print the file text as-is instead of metadata + body
        """
        if raw:
            self.print(document.raw_text)
            return

        self.console.print(f"\n[bold]{document.filename}[/bold]")
        if document.has_frontmatter:
            self.print_metadata(document.metadata)
        else:
            self.console.print("[dim](no frontmatter)[/dim]")
        self.console.print("")
        self.print(document.body)

    def print_publish_outcome(self, outcome: PublishOutcome) -> None:
        """Display the result of a publish with color coding."""
        if outcome.published:
            sha = f" ({outcome.commit_sha[:8]})" if outcome.commit_sha else ""
            self.success(f"{outcome.detail}{sha}")
        elif outcome.status == "no_changes":
            self.console.print(f"[dim]─[/dim] {outcome.detail}")
        else:
            self.error(f"Push rejected: {outcome.detail}")
            if outcome.hint:
                self.console.print(f"  [yellow]Hint:[/yellow] {outcome.hint}")
