"""CLI commands."""

from signlink.cli.commands.detect import detect_cmd, url_cmd
from signlink.cli.commands.version import version_cmd

__all__ = [
    "detect_cmd",
    "url_cmd",
    "version_cmd",
]
