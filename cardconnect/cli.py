"""CardConnect CLI - scan, browse and sync business cards."""

from __future__ import annotations

import asyncio
import mimetypes
import uuid
from pathlib import Path

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from .app import CardConnectApp
from .errors import ModelFailure
from .log import configure_logging
from .services import card_svc

app = typer.Typer(
    name="cardconnect",
    help="Business card scanner - AI extraction, enrichment and cloud sync",
    no_args_is_help=True,
)
console = Console()


def _make_app() -> CardConnectApp:
    return CardConnectApp()


def _parse_id(card_id: str) -> uuid.UUID:
    try:
        return uuid.UUID(card_id)
    except ValueError:
        console.print(f"[red]Invalid card id: {card_id}[/red]")
        raise typer.Exit(1)


@app.callback()
def main(
    log_level: str = typer.Option(None, "--log-level", "-l", help="Logging level (default from settings)"),
):
    configure_logging(log_level)


# ============================================================================
# Local store
# ============================================================================


@app.command("init-db")
def init_db():
    """Create the local card database."""

    async def _init():
        async with _make_app():
            pass

    asyncio.run(_init())
    console.print("[green]Database ready[/green]")


@app.command("list")
def list_cards(
    search: str = typer.Option(None, "--search", "-s", help="Filter by name, company or title"),
):
    """List stored cards, newest first."""

    async def _list():
        async with _make_app() as cc:
            async with cc.store.read() as db:
                return await card_svc.list_cards(db, search=search), await card_svc.count_cards(db)

    cards, total = asyncio.run(_list())
    if not cards:
        console.print("[yellow]No cards found[/yellow]")
        return

    title = f"Cards ({len(cards)})" if len(cards) == total else f"Cards ({len(cards)} of {total})"
    table = Table(title=title)
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Company")
    table.add_column("Title")
    table.add_column("Industry")
    table.add_column("Cloud", justify="center")
    for card in cards:
        table.add_row(
            str(card.id),
            card.display_name,
            card.company_name,
            card.title,
            card.industry,
            "[green]yes[/green]" if card.is_synced_to_cloud else "[dim]no[/dim]",
        )
    console.print(table)


@app.command("show")
def show_card(card_id: str = typer.Argument(..., help="Card id")):
    """Show every field of one card."""
    from .ingestion.pipeline import linkedin_search_url

    cid = _parse_id(card_id)

    async def _show():
        async with _make_app() as cc:
            async with cc.store.read() as db:
                return await card_svc.get_card(db, cid)

    card = asyncio.run(_show())
    if card is None:
        console.print(f"[red]Card not found: {card_id}[/red]")
        raise typer.Exit(1)

    lines = [
        f"[bold]{card.display_name}[/bold]  {card.title}",
        f"Company: {card.company_name}  {card.department}",
        f"Phone: {card.phone}",
        f"Email: {card.email}",
        f"Website: {card.website}",
        f"Address: {card.address}",
        f"Industry: {card.industry}",
        f"Synced: {'yes' if card.is_synced_to_cloud else 'no'}",
        f"LinkedIn: {linkedin_search_url(card)}",
    ]
    if card.company_description:
        lines += ["", "[bold]About the company[/bold]", card.company_description]
    if card.person_role_description:
        lines += ["", "[bold]Sales analysis[/bold]", card.person_role_description]
    console.print(Panel("\n".join(lines), title=str(card.id)))


@app.command("stats")
def stats():
    """Card counts per industry, most common first."""

    async def _stats():
        async with _make_app() as cc:
            async with cc.store.read() as db:
                return await card_svc.count_cards(db), await card_svc.industry_counts(db)

    total, industries = asyncio.run(_stats())
    if not total:
        console.print("[yellow]No cards yet. Ingest a photo to add one.[/yellow]")
        return

    table = Table(title=f"Industries ({total} card(s))")
    table.add_column("Industry", style="cyan")
    table.add_column("Cards", justify="right")
    table.add_column("Share", justify="right", style="dim")
    for industry, count in industries:
        table.add_row(industry, str(count), f"{count / total:.0%}")
    console.print(table)


@app.command("ask")
def ask(question: str = typer.Argument(..., help="Question about your contacts")):
    """Ask the AI consultant a question, using your cards as context."""

    async def _ask():
        async with _make_app() as cc:
            async with cc.store.read() as db:
                cards = await card_svc.list_cards(db)
            return await cc.analyst.analyze(question, cards)

    try:
        answer = asyncio.run(_ask())
    except ModelFailure as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise typer.Exit(1)
    console.print(Panel(Markdown(answer), title="Analysis"))


# ============================================================================
# Ingestion
# ============================================================================


@app.command("ingest")
def ingest(image: Path = typer.Argument(..., exists=True, dir_okay=False, help="Photo of one or more cards")):
    """Extract cards from a photo, enrich them and store the new ones."""
    mime_type = mimetypes.guess_type(image.name)[0] or "image/jpeg"
    data = image.read_bytes()

    async def _ingest():
        async with _make_app() as cc:
            cc.on_login_state_changed(cc.identity.is_logged_in)
            report = await cc.pipeline.process_image(data, mime_type)
            await cc.pipeline.drain()
            return report

    report = asyncio.run(_ingest())
    if report.error:
        console.print(f"[red]{report.error}[/red]")
        raise typer.Exit(1)
    for notice in report.notices:
        console.print(f"[yellow]{notice}[/yellow]")
    console.print(f"[green]Added {len(report.added)} of {report.drafts} card(s)[/green]")


@app.command("enrich")
def enrich(card_id: str = typer.Argument(..., help="Card id")):
    """Re-run AI enrichment for a stored card."""
    cid = _parse_id(card_id)

    async def _enrich():
        async with _make_app() as cc:
            return await cc.pipeline.enrich_card(cid)

    card = asyncio.run(_enrich())
    if card is None:
        console.print(f"[red]Card not found: {card_id}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Enriched {card.display_name}[/green] ({card.industry})")


@app.command("delete")
def delete(card_id: str = typer.Argument(..., help="Card id")):
    """Delete a card locally and, when signed in, from the cloud."""
    cid = _parse_id(card_id)

    async def _delete():
        async with _make_app() as cc:
            return await cc.sync_engine.delete_card(cid)

    if not asyncio.run(_delete()):
        console.print(f"[red]Card not found: {card_id}[/red]")
        raise typer.Exit(1)
    console.print("[green]Card deleted[/green]")


# ============================================================================
# Sync
# ============================================================================


@app.command("push")
def push():
    """Upload every local card to the cloud."""

    async def _push():
        async with _make_app() as cc:
            return await cc.sync_engine.push_all()

    result = asyncio.run(_push())
    if result.failed:
        for error in result.errors:
            console.print(f"[red]{error}[/red]")
    if not result.ok:
        console.print(f"[red]{result.message}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]{result.message}[/green]")


@app.command("pull")
def pull():
    """Import cloud cards that are missing locally."""

    async def _pull():
        async with _make_app() as cc:
            return await cc.sync_engine.pull_merge()

    result = asyncio.run(_pull())
    if not result.ok:
        console.print(f"[red]{result.message}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]{result.message}[/green]")


@app.command("delete-account")
def delete_account(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete every cloud and local card of the signed-in user."""
    if not yes and not typer.confirm("Delete all your cards from the cloud and this device?"):
        console.print("[yellow]Cancelled[/yellow]")
        raise typer.Exit(0)

    async def _wipe():
        async with _make_app() as cc:
            return await cc.sync_engine.delete_all_user_data()

    try:
        removed = asyncio.run(_wipe())
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Account data deleted ({removed} cloud card(s))[/green]")


if __name__ == "__main__":
    app()
