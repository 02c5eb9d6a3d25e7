"""CLI commands for per-space API keys: issue, list, reconcile."""

from __future__ import annotations

from typing import Callable, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from spacegate.config import Config
from spacegate.errors import SpacegateError
from spacegate.stores import build_stores, reconcile_owner
from spacegate.upstream import FileSearchClient
from spacegate.utils import run_async

console = Console()


def register(keys_app: typer.Typer, get_config: Callable[[], Config]) -> None:
    """Register key subcommands onto keys_app typer group."""

    @keys_app.command("issue")
    def issue(
        space_id: str = typer.Argument(..., help="Upstream store name, e.g. fileSearchStores/abc-123"),
        owner: str = typer.Option(..., "--owner", "-o", help="Owning username"),
        name: str = typer.Option("", "--name", "-n", help="Display name (defaults to the space id)"),
        credential: Optional[str] = typer.Option(
            None, "--credential", "-c", envvar="GEMINI_API_KEY",
            help="Upstream API key (defaults to the owner's key in users.json)",
        ),
    ):
        """Mint a new bearer token for SPACE_ID and print it."""
        cfg = get_config()
        creds, _, users = build_stores(cfg)
        upstream_credential = credential or users.upstream_credential_for(owner)
        if not upstream_credential:
            console.print(f"[red]No upstream API key for '{owner}'. Pass --credential.[/red]")
            raise typer.Exit(1)
        try:
            token = creds.issue(owner, space_id, name or space_id, upstream_credential)
        except SpacegateError as exc:
            console.print(f"[red]{exc.message}[/red]")
            raise typer.Exit(1)
        console.print(f"\n[green]API key created for '{name or space_id}'[/green]")
        console.print(f"  Owner:     {owner}")
        console.print(f"  Endpoint:  {cfg.serve.endpoint_base()}/v1/chat/completions")
        console.print(f"\n  {token}\n")

    @keys_app.command("list")
    def list_keys(
        owner: str = typer.Option(..., "--owner", "-o", help="Owning username"),
    ):
        """List an owner's issued keys."""
        creds, _, _ = build_stores(get_config())
        records = creds.list_for_owner(owner)
        if not records:
            console.print("[dim]No API keys found.[/dim]")
            return

        table = Table(title=f"API keys for {owner}", show_lines=True)
        table.add_column("Display name", style="cyan")
        table.add_column("Space", style="blue")
        table.add_column("Created", style="magenta")
        table.add_column("Key (prefix)", style="dim")
        for rec in records:
            table.add_row(rec.display_name, rec.target_space_id, rec.created_at, rec.token[:12] + "...")
        console.print(table)

    @keys_app.command("reconcile")
    def reconcile(
        owner: str = typer.Option(..., "--owner", "-o", help="Owning username"),
        live: Optional[List[str]] = typer.Option(
            None, "--live", "-l",
            help="Space ids that still exist; omit to ask the upstream service",
        ),
    ):
        """Remove keys and configs of spaces that no longer exist upstream."""
        creds, configs, users = build_stores(get_config())

        if not live:
            owned = creds.list_for_owner(owner)
            credential = users.upstream_credential_for(owner) or (owned[-1].upstream_credential if owned else None)
            if not credential:
                console.print(f"[red]No upstream API key known for '{owner}'. Pass --live.[/red]")
                raise typer.Exit(1)
            try:
                stores = run_async(FileSearchClient(credential).list_stores())
            except SpacegateError as exc:
                console.print(f"[red]Upstream listing failed: {exc.message}[/red]")
                raise typer.Exit(1)
            live = [s.name for s in stores]

        removed, _ = reconcile_owner(creds, configs, owner, live)
        if removed:
            console.print(f"[green]Removed {len(removed)} key(s) for deleted spaces.[/green]")
        else:
            console.print("[dim]Nothing to remove.[/dim]")
