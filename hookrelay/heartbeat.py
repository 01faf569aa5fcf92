"""Heartbeat monitor for the inspector connection.

Sends a protocol-level ping every ``interval`` seconds and expects the pong
within ``timeout`` seconds. Pings initiated by the server are answered by the
websockets protocol layer as soon as they are read, so the monitor only has
to take care of the probes going the other way.
"""

import asyncio
import logging
from typing import TYPE_CHECKING

from websockets.exceptions import WebSocketException

if TYPE_CHECKING:
    from websockets.asyncio.client import ClientConnection

    from .supervisor import ShutdownSignal

DEFAULT_HEARTBEAT_INTERVAL = 30.0
DEFAULT_HEARTBEAT_TIMEOUT = 10.0

logger = logging.getLogger("hookrelay.heartbeat")


class HeartbeatMonitor:
    """Detects a silently dead connection.

    One monitor runs per live session and never outlives it.
    """

    def __init__(
        self,
        session: 'ClientConnection',
        interval: float = DEFAULT_HEARTBEAT_INTERVAL,
        timeout: float = DEFAULT_HEARTBEAT_TIMEOUT,
    ):
        """
        Initialize heartbeat monitor.

        Args:
            session: Live WebSocket connection
            interval: Seconds between pings (default: 30)
            timeout: Seconds to wait for each pong (default: 10)
        """
        self.session = session
        self.interval = interval
        self.timeout = timeout
        self.probes_sent = 0

    async def run(self, shutdown: 'ShutdownSignal') -> bool:
        """
        Ping the peer until the session dies or shutdown fires.

        Returns:
            True if the session was declared dead, False on shutdown
        """
        logger.debug(f"Heartbeat monitor started (interval: {self.interval}s)")

        while True:
            if await shutdown.sleep(self.interval):
                logger.debug("Heartbeat monitor stopped")
                return False

            try:
                pong_waiter = await self.session.ping()
                self.probes_sent += 1
            except (WebSocketException, OSError) as e:
                logger.warning(f"Heartbeat ping failed: {e}")
                return True

            try:
                await asyncio.wait_for(pong_waiter, timeout=self.timeout)
            except asyncio.TimeoutError:
                logger.warning(f"No heartbeat pong within {self.timeout}s, connection considered dead")
                return True
            except (WebSocketException, OSError) as e:
                logger.warning(f"Heartbeat failed: {e}")
                return True
