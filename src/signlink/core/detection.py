"""Signing agent detection.

Detects whether the signing agent is running on the local machine. The
agent listens on two loopback WebSocket endpoints provisioned as a pair:

- secure pages must use ``wss://127.0.0.1:64443/service/cryptapi``
- insecure pages must use ``ws://127.0.0.1:64646/service/cryptapi``

A probe opens the endpoint matching the page context, sends a version
request and waits up to 2000 ms for any reply. There is no fallback to the
other endpoint within one probe.

Example:
    >>> status = await detect_agent(PageContext(origin="https://example.uz"))
    >>> if status.is_running:
    ...     print(f"Agent is running on port {status.port}")
    >>> elif not status.transport_supported:
    ...     print("WebSocket transport is not available")
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncContextManager, AsyncIterator, Dict, Optional, Protocol
from urllib.parse import urlsplit

import aiohttp

from signlink.core.errors.agent import AgentRequestError
from signlink.core.errors.resilience import OperationTimeoutError
from signlink.core.observability import audit_log, truncate_message
from signlink.core.resilience import ResilienceConfig, with_resilience

logger = logging.getLogger(__name__)

AGENT_HOST = "127.0.0.1"
AGENT_PATH = "/service/cryptapi"
SECURE_PORT = 64443
INSECURE_PORT = 64646
PROBE_TIMEOUT_MS = 2000
LIVENESS_REQUEST: Dict[str, str] = {"name": "version"}
AGENT_DOWNLOAD_URL = "https://e-imzo.soliq.uz/download/"

# Bound on the graceful close handshake once a probe is finished
CLOSE_TIMEOUT_SECONDS = 0.5


@dataclass(frozen=True)
class PageContext:
    """Security context of the page hosting the caller.

    Attributes:
        origin: Page origin or URL, e.g. ``https://example.uz``. Only the
            scheme is inspected.
        secure: Explicit override; takes precedence over ``origin``.
        websocket_supported: Whether the runtime can open WebSockets at all.
    """

    origin: Optional[str] = None
    secure: Optional[bool] = None
    websocket_supported: bool = True

    @property
    def is_secure(self) -> bool:
        if self.secure is not None:
            return self.secure
        if not self.origin:
            return False
        return urlsplit(self.origin).scheme.lower() == "https"


@dataclass(frozen=True)
class AgentEndpoint:
    """Loopback endpoint selected for a page context."""

    scheme: str
    port: int
    host: str = AGENT_HOST
    path: str = AGENT_PATH

    @property
    def url(self) -> str:
        return f"{self.scheme}://{self.host}:{self.port}{self.path}"


@dataclass(frozen=True)
class ConnectionStatus:
    """Result of a single detection probe."""

    is_running: bool
    port: Optional[int]
    transport_supported: bool

    @property
    def is_installed(self) -> bool:
        """A responding agent is necessarily installed."""
        return self.is_running

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_installed": self.is_installed,
            "is_running": self.is_running,
            "port": self.port,
            "transport_supported": self.transport_supported,
        }


def select_endpoint(context: Optional[PageContext] = None) -> AgentEndpoint:
    """Pick the endpoint the agent provisions for this page's security context."""
    ctx = context or PageContext()
    if ctx.is_secure:
        return AgentEndpoint(scheme="wss", port=SECURE_PORT)
    return AgentEndpoint(scheme="ws", port=INSECURE_PORT)


class AgentChannel(Protocol):
    """An open WebSocket connection to the agent."""

    async def send_str(self, data: str) -> None: ...

    async def receive_text(self) -> Optional[str]:
        """Next message as text, or None if the socket closed or errored first."""
        ...


class WebSocketTransport(Protocol):
    """Opens agent channels. The context manager must release the socket on exit."""

    def connect(self, url: str) -> AsyncContextManager[AgentChannel]: ...


class _AiohttpChannel:
    def __init__(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        self._ws = ws

    async def send_str(self, data: str) -> None:
        await self._ws.send_str(data)

    async def receive_text(self) -> Optional[str]:
        msg = await self._ws.receive()
        if msg.type == aiohttp.WSMsgType.TEXT:
            return msg.data
        if msg.type == aiohttp.WSMsgType.BINARY:
            return msg.data.decode("utf-8", errors="replace")
        # CLOSE, CLOSING, CLOSED or ERROR before any payload
        logger.debug("Agent socket ended without a message: %s", msg.type)
        return None


class AiohttpWebSocketTransport:
    """WebSocket transport backed by aiohttp's client.

    Args:
        ssl: Passed through to ``ws_connect`` for ``wss`` endpoints. None
            keeps aiohttp's default verification.
    """

    def __init__(self, ssl: Any = None) -> None:
        self._ssl = ssl

    @asynccontextmanager
    async def connect(self, url: str) -> AsyncIterator[AgentChannel]:
        kwargs: Dict[str, Any] = {"autoclose": True}
        if self._ssl is not None:
            kwargs["ssl"] = self._ssl

        async with aiohttp.ClientSession() as session:
            ws = await session.ws_connect(url, **kwargs)
            try:
                yield _AiohttpChannel(ws)
            finally:
                try:
                    await asyncio.wait_for(ws.close(), CLOSE_TIMEOUT_SECONDS)
                except asyncio.TimeoutError:
                    logger.debug("Close handshake with %s timed out", url)


def _parse_reply(message: str) -> Any:
    """Decode a JSON reply, returning the raw text when it does not parse."""
    try:
        return json.loads(message)
    except (ValueError, RecursionError):
        return message


def _liveness_failure(message: Optional[str]) -> Optional[str]:
    """Why a reply does not prove liveness, or None if it does.

    Any reply counts unless it is a JSON object with ``success: false``.
    """
    if message is None:
        return "closed"
    data = _parse_reply(message)
    if isinstance(data, dict) and data.get("success") is False:
        return "rejected"
    return None


class ConnectionProbe:
    """Probe the agent's loopback endpoint for the given page context.

    Each detect() call produces a fresh ConnectionStatus and exactly one
    outcome. The socket is released on success, failure and timeout.
    """

    def __init__(
        self,
        context: Optional[PageContext] = None,
        transport: Optional[WebSocketTransport] = None,
        timeout_ms: int = PROBE_TIMEOUT_MS,
    ) -> None:
        self.context = context or PageContext()
        self.transport = transport or AiohttpWebSocketTransport()
        self.timeout_ms = timeout_ms

    @property
    def endpoint(self) -> AgentEndpoint:
        return select_endpoint(self.context)

    async def _round_trip(self, url: str) -> Optional[str]:
        async with self.transport.connect(url) as channel:
            await channel.send_str(json.dumps(LIVENESS_REQUEST))
            message = await channel.receive_text()
        return _liveness_failure(message)

    async def detect(self) -> ConnectionStatus:
        """Detect whether the agent is reachable.

        Returns:
            ConnectionStatus with the responding port, or ``is_running=False``
            and ``port=None`` when the runtime has no WebSocket support, the
            window expires, or the socket errors or closes before replying.
        """
        if not self.context.websocket_supported:
            audit_log("probe_result", is_running=False, transport_supported=False)
            return ConnectionStatus(is_running=False, port=None, transport_supported=False)

        endpoint = self.endpoint
        try:
            failure = await with_resilience(
                lambda: self._round_trip(endpoint.url),
                ResilienceConfig(
                    timeout_ms=self.timeout_ms,
                    timeout_message=f"No reply from {endpoint.url} within {self.timeout_ms}ms",
                    cancel_on_timeout=True,
                    enable_retry=False,
                ),
            )
        except OperationTimeoutError:
            failure = "timeout"
        except Exception as e:
            logger.debug("Agent probe of %s failed: %r", endpoint.url, e)
            failure = truncate_message(e) or type(e).__name__

        alive = failure is None
        audit_log(
            "probe_result",
            url=endpoint.url,
            is_running=alive,
            transport_supported=True,
            reason=failure,
        )
        if alive:
            return ConnectionStatus(is_running=True, port=endpoint.port, transport_supported=True)
        return ConnectionStatus(is_running=False, port=None, transport_supported=True)


async def detect_agent(
    context: Optional[PageContext] = None,
    *,
    transport: Optional[WebSocketTransport] = None,
    timeout_ms: int = PROBE_TIMEOUT_MS,
) -> ConnectionStatus:
    """Detect agent installation and connection status for a page context."""
    probe = ConnectionProbe(context, transport=transport, timeout_ms=timeout_ms)
    return await probe.detect()


async def is_agent_available(
    context: Optional[PageContext] = None,
    *,
    transport: Optional[WebSocketTransport] = None,
    timeout_ms: int = PROBE_TIMEOUT_MS,
) -> bool:
    """Boolean convenience wrapper around detect_agent."""
    status = await detect_agent(context, transport=transport, timeout_ms=timeout_ms)
    return status.is_running


async def fetch_agent_version(
    context: Optional[PageContext] = None,
    *,
    transport: Optional[WebSocketTransport] = None,
) -> Any:
    """Send one version request and return the agent's decoded reply.

    Unlike a probe this raises on failure, so it can be wrapped with
    with_resilience or ConnectionStateTracker.run.

    Raises:
        ConnectionError: If the socket closes before the agent replies.
        AgentRequestError: If the agent answers with ``success: false``.
    """
    url = select_endpoint(context).url
    _transport = transport or AiohttpWebSocketTransport()
    async with _transport.connect(url) as channel:
        await channel.send_str(json.dumps(LIVENESS_REQUEST))
        message = await channel.receive_text()

    if message is None:
        raise ConnectionError(f"Agent socket {url} closed before replying")
    data = _parse_reply(message)
    if isinstance(data, dict) and data.get("success") is False:
        raise AgentRequestError(str(data.get("reason") or "Agent rejected the version request"))
    return data


def get_agent_websocket_url(context: Optional[PageContext] = None) -> str:
    """The URL a probe would use for this page context. Useful for debugging."""
    return select_endpoint(context).url


def get_agent_download_url() -> str:
    """Where users can download the signing agent."""
    return AGENT_DOWNLOAD_URL
