"""Agent version command.

`signlink version` asks the agent for its version through the configured
retry and timeout policy and reports the connection state it ended in.
"""

import asyncio
from typing import Any, Dict, Optional

import click

from signlink.cli.output import emit_error, emit_success
from signlink.config import get_config, load_config
from signlink.core.connection_state import ConnectionStateTracker
from signlink.core.detection import (
    PageContext,
    fetch_agent_version,
    get_agent_download_url,
    get_agent_websocket_url,
)
from signlink.core.errors import AgentRequestError
from signlink.core.resilience import is_transient_error


def _is_retryable(failure: object) -> bool:
    # An explicit rejection from the agent is final
    if isinstance(failure, AgentRequestError):
        return False
    return is_transient_error(failure)


def _state_details(tracker: ConnectionStateTracker) -> Dict[str, Any]:
    return {
        "state": tracker.state.value,
        "last_error": tracker.last_error,
        "failure_count": tracker.failure_count,
    }


@click.command("version")
@click.option(
    "--secure/--insecure",
    default=None,
    help="Talk to the wss endpoint (64443) or the ws endpoint (64646).",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to a signlink TOML config file.",
)
def version_cmd(secure: Optional[bool], config_path: Optional[str]) -> None:
    """Ask the running signing agent for its version."""
    load_config(config_path)
    config = get_config()
    try:
        resilience = config.to_resilience_config(
            cancel_on_timeout=True, is_retryable=_is_retryable
        )
    except ValueError as e:
        emit_error(
            f"Invalid resilience settings: {e}",
            code="VALIDATION_ERROR",
            error_type="validation",
            remediation="Fix the [resilience] values in the config file or SIGNLINK_* variables",
        )

    context = PageContext(secure=config.probe_secure if secure is None else secure)
    url = get_agent_websocket_url(context)
    tracker = ConnectionStateTracker()

    try:
        reply = asyncio.run(
            tracker.run(
                lambda: fetch_agent_version(context),
                name="version",
                config=resilience,
            )
        )
    except AgentRequestError as e:
        emit_error(
            f"Agent rejected the version request: {e.message}",
            code="AGENT_REJECTED",
            error_type="agent",
            details={"url": url, **_state_details(tracker)},
        )
    except Exception as e:
        emit_error(
            f"Signing agent unavailable at {url}: {e}",
            code="AGENT_UNAVAILABLE",
            error_type="unavailable",
            remediation=f"Install or start the agent: {get_agent_download_url()}",
            details={"url": url, **_state_details(tracker)},
        )

    emit_success({"url": url, "version": reply, **_state_details(tracker)})
