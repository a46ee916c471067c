"""CLI command: piiscan languages — byte share per language."""

from __future__ import annotations

import asyncio
import json

import click
from rich.console import Console
from rich.table import Table

from piiscan.cli.scan import fail, split_repo
from piiscan.config import PiiScanConfig
from piiscan.errors import ScanError
from piiscan.scanner.engine import ScanEngine

console = Console(stderr=True)


@click.command()
@click.argument("directory", required=False, type=click.Path(exists=True, file_okay=False))
@click.option("--github", "repository", help="Analyze OWNER/REPO on GitHub instead.")
@click.option("--json", "as_json", is_flag=True, help="Print the breakdown as JSON.")
def languages(directory: str | None, repository: str | None, as_json: bool) -> None:
    """Show which languages make up a directory or GitHub repository."""
    if bool(directory) == bool(repository):
        raise click.UsageError("Give either DIRECTORY or --github OWNER/REPO")

    try:
        engine = ScanEngine(PiiScanConfig.load())
        if repository:
            owner, repo = split_repo(repository)
            stats = asyncio.run(engine.analyze_remote(owner, repo))
            source = repository
        else:
            stats = engine.analyze_local(directory)
            source = directory
    except ScanError as e:
        fail(e)
        return

    if as_json:
        click.echo(json.dumps(stats, indent=2))
        return

    if not stats:
        console.print(f"[yellow]No recognised source files in {source}.[/yellow]")
        return

    table = Table(title=f"Languages in {source}")
    table.add_column("Language", style="cyan")
    table.add_column("Share", justify="right")
    for language, share in stats.items():
        table.add_row(language, f"{share:.1f}%")
    console.print(table)
