"""
Connection supervisor.

Keeps a WebSocket subscription to the inspector open until shutdown, handing
each live session to the event relay and redialling after a fixed delay
whenever the connection cannot be opened or is lost.
"""

import asyncio
import enum
import logging
from typing import Any, Awaitable, Callable, Optional

from websockets.asyncio.client import connect
from websockets.exceptions import WebSocketException

from .heartbeat import DEFAULT_HEARTBEAT_INTERVAL, DEFAULT_HEARTBEAT_TIMEOUT, HeartbeatMonitor
from .relay import EventRelay

DEFAULT_SERVER_URL = "ws://webhookinspector.com/ws"
DEFAULT_RECONNECT_DELAY = 5.0
SHUTDOWN_GRACE = 1.0
CLOSE_TIMEOUT = 10.0

logger = logging.getLogger("hookrelay.supervisor")

Connector = Callable[[str], Awaitable[Any]]


class ShutdownSignal:
    """A one-shot shutdown trigger shared by the supervisor, relay and heartbeat."""

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    def trigger(self, reason: str = "requested") -> bool:
        """Arm the signal. Returns True only for the call that armed it."""
        if self._event.is_set():
            return False
        self.reason = reason
        self._event.set()
        return True

    def is_set(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()

    async def sleep(self, delay: float) -> bool:
        """Sleep for ``delay`` seconds, waking early on shutdown.

        Returns:
            True if shutdown fired before the delay elapsed
        """
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return False
        return True


class SessionState(enum.Enum):
    CONNECTING = "connecting"
    LIVE = "live"
    CLOSING = "closing"
    CLOSED = "closed"


async def _dial(server_url: str):
    return await connect(
        server_url,
        ping_interval=None,
        close_timeout=CLOSE_TIMEOUT,
        max_size=None,
    )


class ConnectionSupervisor:
    """
    Owns the lifetime of the inspector connection.

    Dials, runs the relay read loop and heartbeat for each live session,
    and reconnects after a fixed delay, forever, until shutdown.
    """

    def __init__(
        self,
        server_url: str,
        relay: EventRelay,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
        heartbeat_interval: float = DEFAULT_HEARTBEAT_INTERVAL,
        heartbeat_timeout: float = DEFAULT_HEARTBEAT_TIMEOUT,
        connector: Optional[Connector] = None,
        shutdown_signal: Optional[ShutdownSignal] = None,
    ):
        """
        Initialize the supervisor.

        Args:
            server_url: Inspector WebSocket URL
            relay: Relay that consumes each live session
            reconnect_delay: Fixed seconds between connection attempts
            heartbeat_interval: Seconds between heartbeat pings
            heartbeat_timeout: Seconds to wait for a heartbeat pong
            connector: Coroutine function opening a session (default: websockets)
            shutdown_signal: Shared shutdown signal (default: a new one)
        """
        self.server_url = server_url
        self.relay = relay
        self.reconnect_delay = reconnect_delay
        self.heartbeat_interval = heartbeat_interval
        self.heartbeat_timeout = heartbeat_timeout
        self.shutdown_signal = shutdown_signal or ShutdownSignal()
        self.state = SessionState.CLOSED
        self.attempts = 0

        self._connect = connector or _dial
        self._task: Optional[asyncio.Task] = None
        self._closed = asyncio.Event()

    def start(self) -> asyncio.Task:
        """Run the supervisor loop in a background task."""
        if self._task is None:
            self._task = asyncio.create_task(self.run())
        return self._task

    def shutdown(self, reason: str = "requested") -> bool:
        """Arm the shutdown signal. Repeated calls are coalesced."""
        armed = self.shutdown_signal.trigger(reason)
        if armed:
            logger.info(f"Shutdown requested ({reason})")
        return armed

    async def wait_closed(self, grace: float = SHUTDOWN_GRACE) -> bool:
        """
        Wait for the loop to unwind after shutdown.

        Best effort: if the loop has not finished within ``grace`` seconds
        its task is cancelled.

        Returns:
            True if the loop finished within the grace period
        """
        try:
            await asyncio.wait_for(self._closed.wait(), timeout=grace)
            return True
        except asyncio.TimeoutError:
            logger.warning(f"Shutdown grace period ({grace}s) exceeded, abandoning connection")
            if self._task and not self._task.done():
                self._task.cancel()
            return False

    async def run(self) -> None:
        """Main supervisor loop. Returns only after shutdown."""
        try:
            while True:
                session = await self._open_session()

                if session is not None:
                    await self._serve(session)
                    if self.shutdown_signal.is_set():
                        return
                    logger.warning("Connection lost")
                elif self.shutdown_signal.is_set():
                    return

                logger.info(f"Reconnecting in {self.reconnect_delay} seconds")
                if await self.shutdown_signal.sleep(self.reconnect_delay):
                    return
        finally:
            self.state = SessionState.CLOSED
            self._closed.set()

    async def _open_session(self) -> Optional[Any]:
        """Dial the inspector once. Returns None on failure."""
        self.state = SessionState.CONNECTING
        self.attempts += 1
        logger.info(f"Connecting to WebSocket: {self.server_url} (attempt {self.attempts})")

        try:
            session = await self._connect(self.server_url)
        except (WebSocketException, OSError, asyncio.TimeoutError) as e:
            self.state = SessionState.CLOSED
            logger.error(f"Error connecting to WebSocket: {e}")
            return None

        self.state = SessionState.LIVE
        logger.info("Connected! Listening for events...")
        return session

    async def _serve(self, session: Any) -> None:
        """Run the relay and heartbeat against one live session until either ends."""
        heartbeat = HeartbeatMonitor(
            session,
            interval=self.heartbeat_interval,
            timeout=self.heartbeat_timeout,
        )
        relay_task = asyncio.create_task(self.relay.read_loop(session, self.shutdown_signal))
        heartbeat_task = asyncio.create_task(heartbeat.run(self.shutdown_signal))

        try:
            await asyncio.wait({relay_task, heartbeat_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            self.state = SessionState.CLOSING
            declared_dead = (
                heartbeat_task.done()
                and not heartbeat_task.cancelled()
                and heartbeat_task.exception() is None
                and heartbeat_task.result() is True
            )
            heartbeat_task.cancel()
            # Both paths unblock a read still pending on the connection.
            if declared_dead:
                await self._abort_session(session)
            else:
                await self._close_session(session)
            await asyncio.gather(relay_task, heartbeat_task, return_exceptions=True)
            self.state = SessionState.CLOSED

        if not relay_task.cancelled() and relay_task.exception() is not None:
            logger.error(f"Relay loop failed: {relay_task.exception()!r}")

    async def _abort_session(self, session: Any) -> None:
        """Drop a dead connection without waiting for a closing handshake."""
        try:
            session.transport.abort()
        except Exception as e:
            logger.warning(f"Error aborting WebSocket: {e}")
            await self._close_session(session)

    async def _close_session(self, session: Any) -> None:
        try:
            await session.close()
        except Exception as e:
            logger.warning(f"Error closing WebSocket: {e}")
