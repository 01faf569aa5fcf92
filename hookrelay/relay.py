"""Event relay: decode inspector frames and replay them against the local endpoint."""

import asyncio
import enum
import json
import logging
import re
from typing import TYPE_CHECKING, Optional, Union

import httpx
from websockets.exceptions import WebSocketException

from .config import IdentityConfig
from .events import InboundEvent
from .exceptions import ForwardError, FrameDecodeError
from .logger import EventPrinter
from .utils import frame_preview

if TYPE_CHECKING:
    from websockets.asyncio.client import ClientConnection

    from .supervisor import ShutdownSignal

# Computed by the HTTP transport; copying them from the captured request would
# describe the original message rather than the replay.
TRANSPORT_MANAGED_HEADERS = frozenset({
    "host",
    "content-length",
    "transfer-encoding",
    "connection",
})

_METHOD_TOKEN = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")


class RelayOutcome(enum.Enum):
    """Terminal state of one relay iteration."""

    MALFORMED = "malformed"
    DISCARDED = "discarded"
    FORWARDED = "forwarded"
    FORWARD_FAILED = "forward_failed"


def build_request(
    client: httpx.AsyncClient,
    endpoint: str,
    event: InboundEvent
) -> httpx.Request:
    """Reconstruct the HTTP request described by an event.

    Args:
        client: Client whose defaults seed the request
        endpoint: Local endpoint URL, possibly with its own query string
        event: Decoded inbound event

    Returns:
        Request ready to be sent

    Raises:
        ForwardError: If the endpoint, method or body cannot be used
    """
    try:
        url = httpx.URL(endpoint)
    except (httpx.InvalidURL, TypeError) as e:
        raise ForwardError(f"Error parsing URL: {e}") from e

    if event.query:
        url = url.copy_merge_params(event.query)

    try:
        body = json.dumps(event.body, separators=(",", ":"), allow_nan=False).encode('utf-8')
    except (TypeError, ValueError) as e:
        raise ForwardError(f"Error converting body to JSON: {e}") from e

    method = event.method or "GET"
    if not _METHOD_TOKEN.match(method):
        raise ForwardError(f"Error creating request: invalid method {method!r}")

    try:
        request = client.build_request(method, url, content=body)

        for key, value in event.headers.items():
            if key.lower() in TRANSPORT_MANAGED_HEADERS:
                continue
            request.headers[key] = value
    except (httpx.HTTPError, TypeError, ValueError) as e:
        raise ForwardError(f"Error creating request: {e}") from e

    # The body is JSON by construction, whatever the original content type was.
    request.headers["Content-Type"] = "application/json"
    return request


class EventRelay:
    """Turns inspector frames into at most one local HTTP request each.

    Events are handled strictly one at a time: the next frame is not read
    until the current replay has completed.
    """

    def __init__(
        self,
        config: IdentityConfig,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        printer: Optional[EventPrinter] = None,
        exit_after: Optional[int] = None
    ):
        """Initialize the EventRelay.

        Args:
            config: Identity to filter on and endpoint to replay against
            timeout: Replay request timeout in seconds (None waits indefinitely)
            transport: Custom httpx transport, mainly for tests
            printer: Console printer for accepted events
            exit_after: Arm shutdown after this many accepted events
        """
        self.config = config
        self.timeout = timeout
        self.transport = transport
        self.printer = printer or EventPrinter(quiet=True)
        self.exit_after = exit_after
        self.accepted = 0
        self.logger = logging.getLogger("hookrelay.relay")
        self._http_client: Optional[httpx.AsyncClient] = None

    def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client used for replays."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self.transport,
            )
        return self._http_client

    async def aclose(self) -> None:
        """Close the HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def read_loop(self, session: 'ClientConnection', shutdown: 'ShutdownSignal') -> None:
        """Relay frames from ``session`` until it closes or shutdown fires.

        Args:
            session: Live duplex connection, borrowed for the loop's duration
            shutdown: Process-wide shutdown signal
        """
        while not shutdown.is_set():
            try:
                frame = await self._next_frame(session, shutdown)
            except (WebSocketException, OSError) as e:
                self.logger.warning(f"Error reading message: {e}")
                return

            if frame is None:
                return

            await self.handle_frame(frame)

            if self.exit_after is not None and self.accepted >= self.exit_after:
                self.logger.info(f"Relayed {self.accepted} events, initiating shutdown")
                shutdown.trigger("exit-after")

    async def _next_frame(
        self,
        session: 'ClientConnection',
        shutdown: 'ShutdownSignal'
    ) -> Optional[Union[str, bytes]]:
        """Wait for the next frame, or return None once shutdown fires."""
        receive = asyncio.ensure_future(session.recv())
        stop = asyncio.ensure_future(shutdown.wait())
        try:
            done, _ = await asyncio.wait({receive, stop}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (receive, stop):
                if not task.done():
                    task.cancel()

        if receive in done:
            return receive.result()
        return None

    async def handle_frame(self, frame: Union[str, bytes]) -> RelayOutcome:
        """Decode, filter and replay a single frame."""
        try:
            event = InboundEvent.from_frame(frame)
        except FrameDecodeError as e:
            self.logger.error(f"Error decoding JSON: {e} (frame: {frame_preview(frame)})")
            return RelayOutcome.MALFORMED

        if event.id != self.config.inspector_id:
            self.logger.info("Webhook received with different id. Ignoring.")
            return RelayOutcome.DISCARDED

        self.accepted += 1
        self.printer.show(event, self.config.local_endpoint)
        self.logger.info(f"Forwarding webhook to: {self.config.local_endpoint}")
        return await self.forward(self.config.local_endpoint, event)

    async def forward(self, endpoint: str, event: InboundEvent) -> RelayOutcome:
        """Replay an event once. Failures are logged, never raised or retried.

        Args:
            endpoint: Local endpoint URL
            event: Event accepted by the identity filter

        Returns:
            FORWARDED when a response was received, FORWARD_FAILED otherwise
        """
        client = self._get_http_client()

        try:
            request = build_request(client, endpoint, event)
        except ForwardError as e:
            self.logger.error(str(e))
            return RelayOutcome.FORWARD_FAILED

        try:
            response = await client.send(request)
        except httpx.HTTPError as e:
            self.logger.error(f"Error forwarding webhook: {e!r}")
            return RelayOutcome.FORWARD_FAILED

        self.logger.info(
            f"Webhook successfully forwarded. Status: {response.status_code} {response.reason_phrase}"
        )
        return RelayOutcome.FORWARDED
