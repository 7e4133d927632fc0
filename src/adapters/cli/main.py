"""
adapters.cli.main - CLI adapter for the agentic product search service.

Talks to a running API over HTTP for searches (through the same
SearchStreamClient any other client would use) and uses the
ServiceFactory directly for local setup tasks.

Commands
--------
  search          Stream a search, rendering status, categories and summary live
  conversations   List your conversations
  guest-token     Mint a guest token (optionally saving it for later commands)
  logout          Forget the saved token
  init-db         Create the SQLite schema

Usage
-----
  python run_cli.py init-db
  python run_cli.py guest-token --save
  python run_cli.py search "wireless earbuds"
"""

from __future__ import annotations

import asyncio
import os
import sys
from pathlib import Path
from typing import Any, Optional

# ── Ensure src/ is on the path ──
_SRC = Path(__file__).resolve().parent.parent.parent
sys.path.insert(0, str(_SRC))

import requests
import typer
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from adapters.cli.session import Session, clear_session, load_session, save_session
from adapters.client.stream_client import (
    RateLimitSearchError,
    SearchCallbacks,
    SearchError,
    SearchStreamClient,
)
from factory import ServiceFactory
from infrastructure.config import Settings

__version__ = "0.1.0"

DEFAULT_API_URL = "http://localhost:8000"

console = Console()
app = typer.Typer(
    help="Agentic product search CLI",
    add_completion=False,
    no_args_is_help=True,
)


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

def _api_url(api_url: Optional[str]) -> str:
    return api_url or os.getenv("SEARCH_API_URL", DEFAULT_API_URL)


def _require_session() -> Session:
    """Return the stored session or exit with a user-friendly error."""
    session = load_session()
    if session is None:
        console.print(
            "[bold red]No saved token.[/bold red] "
            "Run [bold]guest-token --save[/bold] first."
        )
        raise typer.Exit(code=1)
    return session


def _auth_kwargs(session: Session) -> dict[str, str]:
    if session.is_guest:
        return {"anon_token": session.token}
    return {"bearer_token": session.token}


def _auth_headers(session: Session) -> dict[str, str]:
    if session.is_guest:
        return {"X-Anon-Token": session.token}
    return {"Authorization": f"Bearer {session.token}"}


def _category_table(category: dict[str, Any]) -> Table:
    t = Table(box=box.SIMPLE, title=f"[bold]{category.get('label', '')}[/bold]")
    t.add_column("#", justify="right", style="dim")
    t.add_column("Product")
    t.add_column("Price", justify="right")
    t.add_column("Rating", justify="right")
    for i, p in enumerate(category.get("products") or [], start=1):
        rating = p.get("rating")
        t.add_row(
            str(i),
            p.get("title", ""),
            p.get("price") or "[dim]n/a[/dim]",
            f"{rating:.1f}" if isinstance(rating, (int, float)) else "[dim]-[/dim]",
        )
    return t


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"product-search v{__version__}")
        raise typer.Exit()


# ---------------------------------------------------------------------------
# Commands: Search
# ---------------------------------------------------------------------------

@app.command()
def search(
    query: str = typer.Argument(..., help="What are you shopping for?"),
    conversation: Optional[str] = typer.Option(
        None, "--conversation", "-c", help="Continue an existing conversation.",
    ),
    country: Optional[str] = typer.Option(
        None, "--country", help="Marketplace country code, e.g. US, GB, DE.",
    ),
    api_url: Optional[str] = typer.Option(None, "--api-url", help="API base URL."),
) -> None:
    """Run an agentic product search and stream the results."""
    session = _require_session()

    def on_summary(data: dict[str, Any]) -> None:
        console.print(Panel(data.get("content", ""), title="Summary", border_style="green"))
        question = data.get("followUpQuestion")
        if question:
            options = " / ".join(data.get("followUpOptions") or [])
            console.print(f"[bold]{question}[/bold] [dim]{options}[/dim]")

    callbacks = SearchCallbacks(
        on_status=lambda text: console.print(f"[cyan]…[/cyan] {text}"),
        on_category=lambda category: console.print(_category_table(category)),
        on_summary=on_summary,
        on_error=lambda message: console.print(f"[bold red]{message}[/bold red]"),
    )
    client = SearchStreamClient(_api_url(api_url))

    try:
        result = client.search(
            query,
            conversation_id=conversation,
            country=country,
            callbacks=callbacks,
            **_auth_kwargs(session),
        )
    except RateLimitSearchError as e:
        console.print(Panel(
            f"[bold yellow]{e}[/bold yellow]\n"
            f"Remaining: {e.remaining}/{e.limit}. Resets at {e.reset_at or 'unknown'}.",
            border_style="yellow",
        ))
        raise typer.Exit(code=2)
    except SearchError as e:
        console.print(f"[bold red]Search failed:[/bold red] {e}")
        raise typer.Exit(code=1)

    rate = result.rate_limit or {}
    console.print(
        f"[dim]conversation {result.conversation_id} · "
        f"{len(result.categories)} categories · "
        f"{rate.get('remaining', '?')}/{rate.get('limit', '?')} searches left[/dim]"
    )


@app.command()
def conversations(
    api_url: Optional[str] = typer.Option(None, "--api-url", help="API base URL."),
) -> None:
    """List your conversations, most recent first."""
    session = _require_session()
    try:
        response = requests.get(
            _api_url(api_url) + "/conversations",
            headers=_auth_headers(session),
            timeout=30,
        )
    except requests.RequestException as e:
        console.print(f"[bold red]Network error:[/bold red] {e}")
        raise typer.Exit(code=1)
    if response.status_code != 200:
        console.print(f"[bold red]Request failed ({response.status_code}).[/bold red]")
        raise typer.Exit(code=1)

    items = response.json()
    if not items:
        console.print("[dim]No conversations yet.[/dim]")
        return
    t = Table(box=box.SIMPLE)
    t.add_column("ID", style="dim")
    t.add_column("Title", style="bold")
    t.add_column("Status")
    t.add_column("Categories", justify="right")
    t.add_column("Products", justify="right")
    t.add_column("Updated")
    for c in items:
        t.add_row(
            c["id"], c["title"], c["status"],
            str(c["total_categories"]), str(c["total_products"]), c["updated_at"],
        )
    console.print(t)


# ---------------------------------------------------------------------------
# Commands: Credentials and setup (local, no API needed)
# ---------------------------------------------------------------------------

@app.command("guest-token")
def guest_token(
    save: bool = typer.Option(False, "--save", "-s", help="Save for later commands."),
) -> None:
    """Mint a guest token signed with ANON_JWT_SECRET."""
    factory = ServiceFactory(Settings.from_env())
    token = factory.create_identity_resolver().create_anon_token()
    if save:
        save_session(Session(token=token, token_type="anon"))
        console.print("[green]Guest token saved.[/green]")
    else:
        console.print(token)


@app.command()
def logout() -> None:
    """Forget the saved token."""
    clear_session()
    console.print("[green]Saved token cleared.[/green]")


@app.command("init-db")
def init_db() -> None:
    """Create or update the SQLite schema."""
    async def _run() -> None:
        config = Settings.from_env()
        factory = ServiceFactory(config)
        await factory.initialize()
        console.print(Panel(
            f"[bold green]Database ready[/bold green] at {config.db_path}",
            border_style="green",
        ))

    asyncio.run(_run())


# ---------------------------------------------------------------------------
# Global version option
# ---------------------------------------------------------------------------

@app.callback()
def _callback(
    version: bool = typer.Option(
        False, "--version", "-v",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Agentic product search CLI"""


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    app()
