"""Tests for heartbeat module."""

import asyncio

import pytest
from websockets.exceptions import ConnectionClosedError

from hookrelay.heartbeat import HeartbeatMonitor
from hookrelay.supervisor import ShutdownSignal


class TestHeartbeatMonitor:
    """Tests for HeartbeatMonitor.run."""

    def test_init_defaults(self, fake_session):
        """Test default interval and pong deadline."""
        monitor = HeartbeatMonitor(fake_session())
        assert monitor.interval == 30.0
        assert monitor.timeout == 10.0
        assert monitor.probes_sent == 0

    @pytest.mark.asyncio
    async def test_pings_every_interval(self, fake_session, wait_until):
        """Test a healthy session is probed repeatedly."""
        session = fake_session()
        monitor = HeartbeatMonitor(session, interval=0.02, timeout=0.5)
        shutdown = ShutdownSignal()

        task = asyncio.create_task(monitor.run(shutdown))
        await wait_until(lambda: session.pings >= 3)
        shutdown.trigger()

        assert await asyncio.wait_for(task, timeout=1.0) is False
        assert monitor.probes_sent == session.pings

    @pytest.mark.asyncio
    async def test_first_ping_waits_for_interval(self, fake_session):
        """Test no probe is sent before the first interval elapses."""
        session = fake_session()
        monitor = HeartbeatMonitor(session, interval=0.2, timeout=0.5)
        shutdown = ShutdownSignal()

        task = asyncio.create_task(monitor.run(shutdown))
        await asyncio.sleep(0.05)
        assert session.pings == 0

        shutdown.trigger()
        assert await asyncio.wait_for(task, timeout=1.0) is False

    @pytest.mark.asyncio
    async def test_missing_pong_declares_dead(self, fake_session):
        """Test a pong not received within the deadline ends the monitor."""
        session = fake_session(answer_pings=False)
        monitor = HeartbeatMonitor(session, interval=0.01, timeout=0.05)

        assert await asyncio.wait_for(monitor.run(ShutdownSignal()), timeout=1.0) is True
        assert session.pings == 1

    @pytest.mark.asyncio
    async def test_ping_send_failure_declares_dead(self, fake_session, caplog):
        """Test a failed ping send ends the monitor."""
        session = fake_session()
        session.drop()
        monitor = HeartbeatMonitor(session, interval=0.01, timeout=0.05)

        assert await asyncio.wait_for(monitor.run(ShutdownSignal()), timeout=1.0) is True
        assert "Heartbeat ping failed" in caplog.text

    @pytest.mark.asyncio
    async def test_pong_interrupted_by_close(self):
        """Test a connection closing while awaiting the pong ends the monitor."""
        class ClosingSession:
            async def ping(self):
                waiter = asyncio.get_running_loop().create_future()
                waiter.set_exception(ConnectionClosedError(None, None))
                return waiter

        monitor = HeartbeatMonitor(ClosingSession(), interval=0.01, timeout=1.0)
        assert await asyncio.wait_for(monitor.run(ShutdownSignal()), timeout=1.0) is True

    @pytest.mark.asyncio
    async def test_shutdown_stops_without_probe(self, fake_session):
        """Test an armed signal stops the monitor before any probe."""
        session = fake_session()
        shutdown = ShutdownSignal()
        shutdown.trigger()

        monitor = HeartbeatMonitor(session, interval=0.01)
        assert await monitor.run(shutdown) is False
        assert session.pings == 0
