"""Agent detection commands.

`signlink detect` probes the loopback endpoint for the chosen security
context and exits 0 when the agent replies, 1 when it does not.
"""

import asyncio
from typing import Optional

import click

from signlink.cli.output import emit_error, emit_success
from signlink.config import get_config, load_config
from signlink.core.detection import (
    ConnectionProbe,
    PageContext,
    get_agent_download_url,
    get_agent_websocket_url,
)


@click.command("detect")
@click.option(
    "--secure/--insecure",
    default=None,
    help="Probe the wss endpoint (64443) or the ws endpoint (64646).",
)
@click.option(
    "--timeout-ms",
    type=int,
    default=None,
    help="Probe window in milliseconds (default from config, 2000).",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to a signlink TOML config file.",
)
def detect_cmd(secure: Optional[bool], timeout_ms: Optional[int], config_path: Optional[str]) -> None:
    """Check whether the signing agent is running on this machine."""
    load_config(config_path)
    config = get_config()
    probe_timeout = timeout_ms if timeout_ms is not None else config.probe_timeout_ms
    if probe_timeout <= 0:
        emit_error(
            f"Invalid probe timeout: {probe_timeout}",
            code="VALIDATION_ERROR",
            error_type="validation",
            remediation="Pass a positive --timeout-ms",
        )

    context = PageContext(secure=config.probe_secure if secure is None else secure)
    probe = ConnectionProbe(context, timeout_ms=probe_timeout)
    status = asyncio.run(probe.detect())

    data = status.to_dict()
    data["url"] = probe.endpoint.url
    if not status.is_running:
        data["download_url"] = get_agent_download_url()
    emit_success(data, exit_code=0 if status.is_running else 1)


@click.command("url")
@click.option(
    "--secure/--insecure",
    default=False,
    show_default=True,
    help="Show the wss endpoint instead of the ws endpoint.",
)
def url_cmd(secure: bool) -> None:
    """Print the endpoint URL a probe would use."""
    emit_success({"url": get_agent_websocket_url(PageContext(secure=secure))})
