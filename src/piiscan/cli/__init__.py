"""CLI entry point — Click group with global options."""

from __future__ import annotations

import logging

import click

from piiscan import __version__


@click.group()
@click.version_option(version=__version__, prog_name="piiscan")
@click.option(
    "--patterns",
    "-p",
    type=click.Path(exists=True, dir_okay=False),
    help="Path to a YAML file of category: regex pairs.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.pass_context
def main(ctx: click.Context, patterns: str | None, verbose: bool) -> None:
    """piiscan — find personal data and secrets in source trees and GitHub repos."""
    ctx.ensure_object(dict)
    ctx.obj["patterns_path"] = patterns
    ctx.obj["verbose"] = verbose

    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _register_commands() -> None:
    from piiscan.cli.languages import languages  # noqa: F811
    from piiscan.cli.scan import scan, scan_github  # noqa: F811
    from piiscan.cli.server import server  # noqa: F811

    main.add_command(scan)
    main.add_command(scan_github)
    main.add_command(languages)
    main.add_command(server)


_register_commands()
