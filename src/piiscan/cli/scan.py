"""CLI commands: piiscan scan <directory> / piiscan scan-github <owner/repo>."""

from __future__ import annotations

import asyncio
import json
import sys

import click
from rich.console import Console
from rich.table import Table

from piiscan.config import PiiScanConfig
from piiscan.errors import ScanError, ValidationError
from piiscan.scanner.engine import ScanEngine
from piiscan.scanner.models import ScanOutcome
from piiscan.scanner.patterns import PatternSet, default_patterns, load_patterns

console = Console(stderr=True)

_EXIT_FINDINGS = 1
_EXIT_ERROR = 2


def resolve_patterns(ctx: click.Context, config: PiiScanConfig) -> PatternSet:
    """Explicit --patterns file, then the config dir's patterns.yaml, then built-ins."""
    path = ctx.obj.get("patterns_path") if ctx.obj else None
    if path:
        return load_patterns(path)
    if config.patterns_file.is_file():
        return load_patterns(config.patterns_file)
    return default_patterns()


def split_repo(value: str) -> tuple[str, str]:
    owner, _, repo = value.partition("/")
    if not owner or not repo or "/" in repo:
        raise click.BadParameter("expected OWNER/REPO", param_hint="REPOSITORY")
    return owner, repo


def fail(error: ScanError) -> None:
    console.print(f"[red]{type(error).__name__}:[/red] {error.message}")
    sys.exit(_EXIT_ERROR)


@click.command()
@click.argument("directory", type=click.Path(exists=True, file_okay=False))
@click.option(
    "--ext",
    "-x",
    "extensions",
    multiple=True,
    help="Only scan files with this extension (repeatable).",
)
@click.option(
    "--exclude",
    "-e",
    multiple=True,
    help="File or directory names to skip.",
)
@click.option("--json", "as_json", is_flag=True, help="Print the outcome as JSON.")
@click.option("--timeout", type=float, default=None, help="Give up after this many seconds.")
@click.pass_context
def scan(
    ctx: click.Context,
    directory: str,
    extensions: tuple[str, ...],
    exclude: tuple[str, ...],
    as_json: bool,
    timeout: float | None,
) -> None:
    """Scan a local directory for personal data and secrets."""
    try:
        config = PiiScanConfig.load()
        patterns = resolve_patterns(ctx, config)
        engine = ScanEngine(config, exclude=exclude)
        if not as_json:
            console.print(
                f"[bold]piiscan[/bold] scanning [cyan]{directory}[/cyan] "
                f"for [cyan]{', '.join(patterns)}[/cyan]\n"
            )
        outcome = engine.scan_local(directory, extensions or None, patterns, timeout=timeout)
    except ScanError as e:
        fail(e)
        return

    _report(outcome, as_json)


@click.command("scan-github")
@click.argument("repository")
@click.option(
    "--ext",
    "-x",
    "extensions",
    multiple=True,
    help="Only scan files with this extension (repeatable).",
)
@click.option("--budget", type=int, default=None, help="Maximum number of API calls.")
@click.option("--json", "as_json", is_flag=True, help="Print the outcome as JSON.")
@click.option("--timeout", type=float, default=None, help="Give up after this many seconds.")
@click.pass_context
def scan_github(
    ctx: click.Context,
    repository: str,
    extensions: tuple[str, ...],
    budget: int | None,
    as_json: bool,
    timeout: float | None,
) -> None:
    """Scan a GitHub repository (OWNER/REPO) for personal data and secrets."""
    owner, repo = split_repo(repository)
    try:
        config = PiiScanConfig.load()
        if budget is not None and budget < 0:
            raise ValidationError("--budget must not be negative")
        patterns = resolve_patterns(ctx, config)
        engine = ScanEngine(config)
        if not as_json:
            console.print(
                f"[bold]piiscan[/bold] scanning [cyan]{owner}/{repo}[/cyan] "
                f"for [cyan]{', '.join(patterns)}[/cyan]\n"
            )
        outcome = asyncio.run(
            engine.scan_remote(
                owner,
                repo,
                extensions or None,
                patterns,
                timeout=timeout,
                budget=budget,
            )
        )
    except ScanError as e:
        fail(e)
        return

    _report(outcome, as_json)


def _report(outcome: ScanOutcome, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps(outcome.to_dict(), indent=2))
    elif not outcome.vulnerabilities:
        console.print("[green]No findings.[/green]")
    else:
        table = Table(title="Findings", show_lines=False)
        table.add_column("Category", style="bold")
        table.add_column("File", style="cyan")
        table.add_column("Count", justify="right")
        table.add_column("Lines", max_width=20)
        table.add_column("First match", max_width=50)

        for match in outcome.vulnerabilities:
            table.add_row(
                match.category,
                match.file,
                str(match.count),
                ", ".join(str(n) for n in match.lines[:5]),
                match.occurrences[0][:50],
            )
        console.print(table)

    if not as_json:
        _print_summary(outcome)

    if outcome.vulnerabilities:
        sys.exit(_EXIT_FINDINGS)


def _print_summary(outcome: ScanOutcome) -> None:
    console.print(
        f"\nScanned {outcome.files_scanned} files "
        f"({outcome.files_skipped} skipped) "
        f"in {outcome.duration:.2f}s"
    )
    total = sum(m.count for m in outcome.vulnerabilities)
    console.print(f"Total matches: {total}")
    if outcome.remaining_budget is not None:
        console.print(f"API budget left: {outcome.remaining_budget}")
