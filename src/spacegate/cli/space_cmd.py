"""CLI commands for per-space settings: list, show, set, remove."""

from __future__ import annotations

from typing import Callable, Optional

import typer
from rich.console import Console
from rich.table import Table

from spacegate.config import Config
from spacegate.stores import build_stores

console = Console()


def register(space_app: typer.Typer, get_config: Callable[[], Config]) -> None:
    """Register space subcommands onto space_app typer group."""

    def _configs():
        _, configs, _ = build_stores(get_config())
        return configs

    @space_app.command("list")
    def space_list():
        """List spaces that have stored settings or usage."""
        configs = _configs()
        space_ids = configs.list_space_ids()
        if not space_ids:
            console.print("[dim]No space settings stored.[/dim]")
            return
        table = Table(title="Spaces")
        table.add_column("Space", style="cyan")
        table.add_column("Model", style="magenta")
        table.add_column("Chats", justify="right")
        table.add_column("Last active", style="dim")
        for space_id in space_ids:
            cfg = configs.get(space_id)
            table.add_row(space_id, cfg.model, str(cfg.usage_count), cfg.last_active or "-")
        console.print(table)

    @space_app.command("show")
    def space_show(space_id: str = typer.Argument(...)):
        """Show effective settings for SPACE_ID."""
        console.print_json(data=_configs().get(space_id).to_json_dict())

    @space_app.command("set")
    def space_set(
        space_id: str = typer.Argument(...),
        model: Optional[str] = typer.Option(None, "--model", "-m"),
        instruction: Optional[str] = typer.Option(None, "--instruction", "-i", help="System instruction"),
    ):
        """Update model and/or system instruction; other fields are kept."""
        if model is None and instruction is None:
            console.print("[yellow]Nothing to set: pass --model and/or --instruction.[/yellow]")
            raise typer.Exit(1)
        updated = _configs().put(space_id, model=model, system_instruction=instruction)
        console.print_json(data=updated.to_json_dict())

    @space_app.command("remove")
    def space_remove(space_id: str = typer.Argument(...)):
        """Delete stored settings and usage for SPACE_ID."""
        if _configs().remove(space_id):
            console.print(f"[green]Removed settings for {space_id}.[/green]")
        else:
            console.print(f"[dim]No settings stored for {space_id}.[/dim]")
