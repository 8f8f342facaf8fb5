"""CLI interface for SOP discovery, search and context assembly."""

import json
import os
from datetime import datetime
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ....common.exception_handler import format_exception_json
from ....common.utils import clean_text, ensure_utc
from ....composition import container
from ....config import settings, setup_logging
from ....core.domain import Category, CustomerQuery, Priority, ProcedureDocument

app = typer.Typer(
    name="sopdesk",
    help="SOP Desk - find the right procedure for every customer issue",
    add_completion=False,
)

console = Console(force_terminal=True, legacy_windows=False)

# Determine if we're in debug mode (shows full stack traces)
DEBUG_MODE = os.getenv("DEBUG", "false").lower() == "true"


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level"),
) -> None:
    """Configure logging before any command runs."""
    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        json_format=settings.log_json,
    )


def handle_cli_error(exc: Exception) -> None:
    """Handle and display errors in CLI with structured format.

    In debug mode, shows full JSON error details.
    In normal mode, shows a user-friendly message with error code.

    Args:
        exc: The exception to handle.
    """
    error_data = format_exception_json(exc, include_trace=DEBUG_MODE)

    if DEBUG_MODE:
        console.print(
            Panel(
                json.dumps(error_data, indent=2, default=str),
                title="[bold red]Error Details[/]",
                border_style="red",
            )
        )
    else:
        error_type = error_data["error"]["type"]
        error_msg = error_data["error"]["message"]
        error_code = error_data["error"].get("code", "UNKNOWN")
        location = error_data.get("location", {})

        console.print(f"\n[red]Error [{error_code}]:[/] {error_msg}")
        console.print(f"[dim]Type: {error_type}[/]")

        if location:
            loc_str = (
                f"{location.get('file', '?')}:{location.get('line', '?')} "
                f"in {location.get('method', '?')}"
            )
            console.print(f"[dim]Location: {loc_str}[/]")

        console.print("[dim]Set DEBUG=true for full details[/]")


def _require_credentials() -> None:
    if not settings.has_confluence_credentials:
        console.print(
            "[red]Error:[/] Confluence credentials not set.\n"
            "Set CONFLUENCE_BASE_URL, CONFLUENCE_USERNAME and CONFLUENCE_API_TOKEN in .env"
        )
        raise typer.Exit(1)


def _require_index() -> None:
    if not len(container.get_index().snapshot):
        console.print("[yellow]The SOP index is empty. Run 'sopdesk discover' first.[/]")
        raise typer.Exit(1)


def _freshness_line(freshness: dict[str, int]) -> str:
    return ", ".join(f"{count} {bucket}" for bucket, count in freshness.items())


def _documents_table(documents: list[ProcedureDocument], title: str) -> Table:
    table = Table(title=title)
    table.add_column("Category", style="cyan")
    table.add_column("Title")
    table.add_column("Version", justify="right")
    table.add_column("Sections", justify="right")
    table.add_column("Last modified", style="dim")
    for doc in documents:
        table.add_row(
            doc.category.value,
            doc.title,
            str(doc.version),
            str(len(doc.sections)),
            doc.last_modified.strftime("%Y-%m-%d"),
        )
    return table


@app.command()
def discover() -> None:
    """Crawl the Confluence space and rebuild the SOP index."""
    _require_credentials()
    try:
        discovery = container.get_discovery_service()
        space = settings.confluence_space_key
        with console.status(f"[bold blue]Discovering SOPs in space {space}..."):
            documents = discovery.rebuild_index()
    except Exception as exc:
        handle_cli_error(exc)
        raise typer.Exit(1)

    console.print(_documents_table(documents, f"Discovered {len(documents)} SOPs"))


@app.command()
def sync(
    since: str | None = typer.Option(
        None, help="ISO timestamp; defaults to the last successful sync"
    ),
) -> None:
    """Re-index pages changed since the last sync."""
    _require_credentials()
    try:
        last_sync = ensure_utc(datetime.fromisoformat(since)) if since else None
    except ValueError:
        console.print(f"[red]Error:[/] '{since}' is not an ISO timestamp")
        raise typer.Exit(1)

    try:
        with console.status("[bold blue]Syncing changed pages..."):
            result = container.get_discovery_service().incremental_sync(last_sync)
    except Exception as exc:
        handle_cli_error(exc)
        raise typer.Exit(1)

    console.print(
        f"[green]Sync complete:[/] {result.total} pages checked, "
        f"{result.added} added, {result.updated} updated, {result.removed} removed"
    )
    for error in result.errors:
        console.print(f"  [yellow]⚠ {error.page_id}:[/] {error.error}")


@app.command()
def search(
    issue: str = typer.Argument(..., help="Customer issue text"),
    notes: str = typer.Option("", help="Additional agent notes"),
    priority: Priority | None = typer.Option(None, help="Ticket priority"),
    category: Category | None = typer.Option(None, help="Category hint"),
) -> None:
    """Rank indexed SOPs against a customer issue."""
    _require_index()
    results = container.get_search_service().find_relevant(
        clean_text(issue), clean_text(notes), priority, category_hint=category
    )
    if not results:
        console.print("[yellow]No relevant SOPs found.[/]")
        return

    table = Table(title=f"Top {len(results)} SOPs")
    table.add_column("Score", justify="right", style="green")
    table.add_column("Title")
    table.add_column("Category", style="cyan")
    table.add_column("Why", style="dim")
    for result in results:
        table.add_row(
            f"{result.relevance_score:.2f}",
            result.document.title,
            result.document.category.value,
            result.reasoning,
        )
    console.print(table)


@app.command()
def context(
    issue: str = typer.Argument(..., help="Customer issue text"),
    notes: str = typer.Option("", help="Additional agent notes"),
    ticket: str = typer.Option("", help="Ticket id"),
    customer: str | None = typer.Option(None, help="Customer id"),
    priority: Priority | None = typer.Option(None, help="Ticket priority"),
    category: Category | None = typer.Option(None, help="Category hint"),
) -> None:
    """Build confidence-scored context for a customer issue."""
    _require_credentials()
    _require_index()
    query = CustomerQuery(
        issue=clean_text(issue),
        agent_notes=clean_text(notes),
        ticket_id=ticket,
        customer_id=customer,
        priority=priority,
        category=category,
    )
    try:
        builder = container.get_context_builder()
        with console.status("[bold blue]Checking SOP freshness..."):
            enhanced = builder.build_context_with_confidence(query)
        validation = builder.validate_context_quality(enhanced)
    except Exception as exc:
        handle_cli_error(exc)
        raise typer.Exit(1)

    console.print(Panel(builder.generate_summary(enhanced), title="Context summary"))
    if enhanced.confidence:
        confidence = enhanced.confidence
        console.print(
            f"Confidence: [bold]{confidence.overall:.2f}[/] "
            f"(relevance {confidence.sop_relevance:.2f}, "
            f"freshness {confidence.content_freshness:.2f}, "
            f"clarity {confidence.query_clarity:.2f})"
        )
    if validation.is_valid:
        console.print("[green]✅ Context is ready for answer generation[/]")
    else:
        for issue_text, recommendation in zip(validation.issues, validation.recommendations):
            console.print(f"[yellow]⚠ {issue_text}[/] [dim]- {recommendation}[/]")


@app.command()
def quality(
    min_score: int = typer.Option(0, help="Only show SOPs scoring below this value"),
) -> None:
    """Score every indexed SOP with the quality rubric."""
    _require_index()
    validator = container.get_quality_validator()

    table = Table(title="SOP quality")
    table.add_column("Score", justify="right")
    table.add_column("Title")
    table.add_column("Issues", style="yellow")
    table.add_column("Suggestions", style="dim")
    for doc in container.get_index().snapshot.ordered():
        report = validator.validate(doc)
        if min_score and report.score >= min_score:
            continue
        style = "green" if report.is_valid else "red"
        table.add_row(
            f"[{style}]{report.score}[/]",
            doc.title,
            "\n".join(report.issues),
            "\n".join(report.suggestions),
        )
    console.print(table)


@app.command()
def report() -> None:
    """Summarize the index by category, keyword, freshness and quality."""
    _require_index()
    index_report = container.get_index_reporter().generate_report()
    last_sync = index_report.last_sync.isoformat() if index_report.last_sync else "never"

    console.print(f"\n[bold]Total SOPs:[/] {index_report.total_sops}")
    console.print(f"[bold]Last sync:[/] {last_sync}")
    console.print(f"[bold]Average quality:[/] {index_report.avg_quality_score:.1f}")
    console.print(f"[bold]Freshness:[/] {_freshness_line(index_report.freshness)}")

    table = Table(title="By category")
    table.add_column("Category", style="cyan")
    table.add_column("SOPs", justify="right")
    for category, count in sorted(index_report.categories.items()):
        table.add_row(category, str(count))
    console.print(table)

    top_keywords = sorted(index_report.keywords.items(), key=lambda item: -item[1])[:15]
    console.print("[bold]Top keywords:[/] " + ", ".join(f"{k} ({n})" for k, n in top_keywords))


@app.command()
def export(
    output: Path | None = typer.Option(None, help="Write JSON here instead of stdout"),
) -> None:
    """Export the index as JSON."""
    payload = container.get_index_reporter().export_json()
    if output is None:
        console.print_json(payload)
        return
    output.write_text(payload, encoding="utf-8")
    console.print(f"[green]Exported index to {output}[/]")


@app.command()
def status() -> None:
    """Check configuration, Confluence access and index state."""
    console.print("\n[bold]Configuration:[/]")
    if settings.has_confluence_credentials:
        console.print(f"✅ Confluence credentials configured ({settings.confluence_base_url})")
    else:
        console.print("❌ Confluence credentials not set")

    if settings.has_confluence_credentials:
        try:
            space_name = container.get_source().verify_access()
            console.print(f"✅ Space {settings.confluence_space_key}: {space_name}")
        except Exception as exc:
            handle_cli_error(exc)

    console.print("\n[bold]SOP index:[/]")
    index_report = container.get_index_reporter().generate_report()
    if not index_report.total_sops:
        console.print("[yellow]Index is empty. Run 'sopdesk discover' to build it.[/]")
        return
    last_sync = index_report.last_sync.isoformat() if index_report.last_sync else "never"
    console.print(f"  {index_report.total_sops} SOPs, last sync {last_sync}")
    console.print(f"  Freshness: {_freshness_line(index_report.freshness)}")
    console.print(f"  Stored at {settings.snapshot_db_path}")


if __name__ == "__main__":
    app()
