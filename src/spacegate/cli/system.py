"""CLI commands for running the server."""

from __future__ import annotations

from typing import Callable, Optional

import typer
from rich.console import Console

from spacegate.config import Config

console = Console()


def register(app: typer.Typer, get_config: Callable[[], Config]) -> None:
    """Register system commands on the main Typer app."""

    @app.command()
    def serve(
        port: Optional[int] = typer.Option(None, "--port", "-p"),
        host: Optional[str] = typer.Option(None, "--host"),
    ):
        """Start the HTTP gateway."""
        from spacegate.server.app import run_server

        cfg = get_config()
        if port:
            cfg.serve.port = port
        if host:
            cfg.serve.host = host

        console.print(f"[green]spacegate[/green] on http://{cfg.serve.host}:{cfg.serve.port}")
        console.print(f"  Endpoint: [cyan]{cfg.serve.endpoint_base()}/v1/chat/completions[/cyan]")
        console.print("[dim]Example:[/dim]")
        console.print(
            f"[dim]  curl -X POST {cfg.serve.endpoint_base()}/v1/chat/completions "
            "-H 'Authorization: Bearer YOUR_API_KEY' -H 'Content-Type: application/json' "
            "-d '{\"messages\":[{\"role\":\"user\",\"content\":\"Hello\"}]}'[/dim]"
        )
        run_server(cfg)
