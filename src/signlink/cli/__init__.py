"""Command-line interface for signlink."""

import click

from signlink.cli.commands import detect_cmd, url_cmd, version_cmd


@click.group()
@click.version_option(package_name="signlink")
def cli() -> None:
    """Detect and diagnose the local signing agent."""


cli.add_command(detect_cmd)
cli.add_command(url_cmd)
cli.add_command(version_cmd)


def main() -> None:
    cli()


__all__ = ["cli", "main"]
