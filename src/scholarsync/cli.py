"""Command-line interface for the ScholarSync project."""

from __future__ import annotations

import asyncio
from datetime import date
from typing import Optional

import httpx
import typer
from rich.console import Console
from rich.table import Table

from scholarsync.identifiers import InvalidIdentifier
from scholarsync.models import BibliometricSnapshot, ReconciledPaper
from scholarsync.services import (
    CitationUnavailable,
    DuplicatePaperError,
    ImportFailure,
    LibraryService,
    LocalPaperStore,
    MetadataUnavailable,
    PaperNotFound,
    build_library,
    compute_snapshot,
)
from scholarsync.settings import Settings, configure_logging, get_settings

console = Console()
app = typer.Typer(help="ScholarSync - bibliometric aggregation for researcher libraries")
RESEARCHER_OPTION = typer.Option("local", "--researcher", "-r", help="Researcher id owning the library")


@app.callback()
def main() -> None:
    """Configure logging before any command runs."""
    configure_logging(Settings.load().log_level)


async def _with_library(settings: Settings, action):
    async with httpx.AsyncClient(timeout=settings.request_timeout) as client:
        library = build_library(client, settings, LocalPaperStore(settings))
        return await action(library)


@app.command()
def config(
    json_output: bool = typer.Option(False, "--json", help="Output settings as JSON"),
) -> None:
    """Display the resolved settings."""
    settings = get_settings()
    if json_output:
        typer.echo(settings.model_dump_json(indent=2))
        return
    table = Table(title="ScholarSync Settings")
    table.add_column("Key")
    table.add_column("Value", overflow="fold")
    for key, value in settings.model_dump().items():
        table.add_row(key, str(value))
    table.add_row("user_agent", settings.user_agent)
    console.print(table)


@app.command("import-orcid")
def import_orcid(
    orcid: str = typer.Argument(..., help="ORCID iD or https://orcid.org/ URL"),
    researcher: str = RESEARCHER_OPTION,
) -> None:
    """Import declared works from an ORCID record."""
    settings = get_settings()

    async def action(library: LibraryService):
        return await library.import_from_orcid(researcher, orcid)

    try:
        summary = asyncio.run(_with_library(settings, action))
    except ImportFailure as exc:
        console.print(f"[red]{exc.code.value}[/red]: {exc}")
        raise typer.Exit(code=1) from exc
    console.print(
        f"[green]Imported {summary.imported}[/green] of {summary.total} works "
        f"({summary.skipped} skipped, {summary.enriched} enriched)"
    )


@app.command("refresh-citations")
def refresh_citations(researcher: str = RESEARCHER_OPTION) -> None:
    """Refresh citation counts for every paper in the library."""
    settings = get_settings()

    async def action(library: LibraryService):
        return await library.refresh_all_citations(researcher)

    summary = asyncio.run(_with_library(settings, action))
    console.print(f"[green]Updated {summary.updated}[/green], failed {summary.failed}")


@app.command("refresh-paper")
def refresh_paper(
    paper_id: int = typer.Argument(..., help="Stored paper id"),
    researcher: Optional[str] = typer.Option(None, "--researcher", "-r", help="Restrict to this researcher"),
) -> None:
    """Refresh the citation count of a single paper."""
    settings = get_settings()

    async def action(library: LibraryService):
        return await library.refresh_paper_citations(paper_id, researcher)

    try:
        count = asyncio.run(_with_library(settings, action))
    except (PaperNotFound, CitationUnavailable) as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc
    console.print(f"[green]Citations:[/green] {count}")


@app.command()
def enrich(researcher: str = RESEARCHER_OPTION) -> None:
    """Fill in authors for papers that have none."""
    settings = get_settings()

    async def action(library: LibraryService):
        return await library.enrich_missing_metadata(researcher)

    summary = asyncio.run(_with_library(settings, action))
    console.print(f"[green]Enriched {summary.enriched}[/green], failed {summary.failed}")


@app.command()
def lookup(doi: str = typer.Argument(..., help="DOI or https://doi.org/ URL")) -> None:
    """Preview reconciled metadata for a DOI without storing it."""
    settings = get_settings()

    async def action(library: LibraryService):
        return await library.lookup_doi(doi)

    try:
        paper = asyncio.run(_with_library(settings, action))
    except (InvalidIdentifier, MetadataUnavailable) as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc
    _print_paper(paper)


@app.command()
def add(
    title: str = typer.Option(..., help="Paper title"),
    doi: Optional[str] = typer.Option(None, help="DOI; omitted papers get a manual identifier"),
    journal: Optional[str] = typer.Option(None, help="Journal name"),
    published: Optional[str] = typer.Option(None, help="Publication date (YYYY-MM-DD)"),
    author: Optional[list[str]] = typer.Option(None, "--author", "-a", help="Author display name"),
    researcher: str = RESEARCHER_OPTION,
) -> None:
    """Add a single paper to the library."""
    settings = get_settings()
    published_date = None
    if published:
        try:
            published_date = date.fromisoformat(published)
        except ValueError as exc:
            raise typer.BadParameter("Use YYYY-MM-DD for --published.") from exc

    async def action(library: LibraryService):
        return await library.add_paper(
            researcher,
            title=title,
            doi=doi,
            journal=journal,
            published_date=published_date,
            authors=author or [],
        )

    try:
        stored = asyncio.run(_with_library(settings, action))
    except (DuplicatePaperError, ValueError) as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc
    console.print(f"[green]Stored[/green] #{stored.id}: {stored.title}")


@app.command()
def remove(
    paper_id: int = typer.Argument(..., help="Stored paper id"),
    researcher: str = RESEARCHER_OPTION,
) -> None:
    """Delete a paper from the library."""
    settings = get_settings()

    async def action(library: LibraryService):
        await library.remove_paper(researcher, paper_id)

    try:
        asyncio.run(_with_library(settings, action))
    except PaperNotFound as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc
    console.print(f"[green]Removed[/green] #{paper_id}")


@app.command("list")
def list_papers(researcher: str = RESEARCHER_OPTION) -> None:
    """List stored papers."""

    async def runner() -> None:
        settings = get_settings()
        items = await LocalPaperStore(settings).list_papers(researcher)
        if not items:
            console.print("[yellow]Library is empty. Use `scholarsync import-orcid` to add works.")
            return
        table = Table(title="Stored Papers")
        table.add_column("ID")
        table.add_column("DOI")
        table.add_column("Title")
        table.add_column("Authors")
        table.add_column("Citations", justify="right")
        for paper in items:
            table.add_row(
                str(paper.id),
                paper.doi,
                paper.title,
                ", ".join(paper.authors) or "—",
                str(paper.citation_count),
            )
        console.print(table)

    asyncio.run(runner())


@app.command()
def metrics(
    researcher: str = RESEARCHER_OPTION,
    json_output: bool = typer.Option(False, "--json", help="Output the snapshot as JSON"),
) -> None:
    """Show h-index, i10-index and percentile bands."""

    async def runner() -> BibliometricSnapshot:
        settings = get_settings()
        store = LocalPaperStore(settings)
        return compute_snapshot(await store.list_papers(researcher))

    snapshot = asyncio.run(runner())
    if json_output:
        typer.echo(snapshot.model_dump_json(indent=2))
        return
    _print_snapshot(snapshot)


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8000, help="Port to bind"),
    reload: bool = typer.Option(False, help="Enable auto-reload"),
) -> None:
    """Launch the JSON API."""
    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover
        console.print("[red]uvicorn is not installed.[/red]")
        raise typer.Exit(code=1) from exc

    uvicorn.run(
        "scholarsync.web.app:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
    )


def _print_paper(paper: ReconciledPaper) -> None:
    table = Table(title="Paper Preview")
    table.add_column("Field")
    table.add_column("Value", overflow="fold")
    table.add_row("DOI", paper.doi)
    table.add_row("Title", paper.title)
    table.add_row("Journal", paper.journal or "—")
    table.add_row("Published", paper.published_date.isoformat() if paper.published_date else "—")
    table.add_row("Authors", ", ".join(paper.authors) or "—")
    console.print(table)


def _print_snapshot(snapshot: BibliometricSnapshot) -> None:
    ranks = snapshot.percentiles
    table = Table(title="Research Metrics")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_column("Rank", justify="right")
    table.add_row("h-index", str(snapshot.h_index), f"Top {ranks.h_index}%")
    table.add_row("Citations", f"{snapshot.total_citations:,}", f"Top {ranks.citations}%")
    table.add_row("Papers", str(snapshot.total_papers), f"Top {ranks.publications}%")
    table.add_row("i10-index", str(snapshot.i10_index), f"Top {ranks.i10}%")
    console.print(table)
    if ranks.overall is not None:
        console.print(f"[bold]Overall:[/bold] Top {ranks.overall}%")
    else:
        console.print("[yellow]Add papers to see an overall ranking.")
