"""CLI command: piiscan server — start the HTTP API."""

from __future__ import annotations

import click
from rich.console import Console

from piiscan.cli.scan import fail
from piiscan.config import PiiScanConfig
from piiscan.errors import ScanError

console = Console(stderr=True)


@click.command()
@click.option(
    "--port",
    type=int,
    default=None,
    help="Port to listen on (default: 3000).",
)
@click.pass_context
def server(ctx: click.Context, port: int | None) -> None:
    """Start the piiscan HTTP API."""
    try:
        import uvicorn
    except ImportError:
        console.print(
            "[red]Web dependencies not installed.[/red]\n"
            "Install with: pip install piiscan[web]"
        )
        raise SystemExit(1)

    try:
        config = PiiScanConfig.load()
    except ScanError as e:
        fail(e)
        return
    if port is not None:
        config.web_port = port

    console.print(
        f"[bold]piiscan[/bold] API starting on "
        f"[cyan]http://{config.web_host}:{config.web_port}/api[/cyan]"
    )
    if not config.github_token:
        console.print("  [dim]No GITHUB_TOKEN set; GitHub scans use the anonymous quota[/dim]\n")

    from piiscan.web.app import create_app

    app = create_app(config)
    uvicorn.run(
        app,
        host=config.web_host,
        port=config.web_port,
        log_level="debug" if ctx.obj.get("verbose") else "info",
    )
