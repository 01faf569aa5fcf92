"""Command-line interface."""

import asyncio
import signal
import sys
from pathlib import Path
from typing import Optional

import click
import uvicorn

from . import __version__
from .config import DEFAULT_CONFIG_FILE, IdentityConfig, load_or_prompt
from .exceptions import ConfigError
from .heartbeat import DEFAULT_HEARTBEAT_INTERVAL, DEFAULT_HEARTBEAT_TIMEOUT
from .logger import EventPrinter, configure_logging
from .mock import MockTarget
from .relay import EventRelay
from .supervisor import (
    DEFAULT_RECONNECT_DELAY,
    DEFAULT_SERVER_URL,
    SHUTDOWN_GRACE,
    ConnectionSupervisor,
)


@click.group()
@click.version_option(version=__version__, prog_name="hookrelay")
def main():
    """hookrelay - Relay webhooks captured by Webhook Inspector to a local endpoint."""
    pass


def _install_signal_handlers(supervisor: ConnectionSupervisor) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, supervisor.shutdown, sig.name)
        except (NotImplementedError, RuntimeError, ValueError):
            # Windows or non-main thread: Ctrl+C surfaces as KeyboardInterrupt instead
            pass


async def _run_relay(
    config: IdentityConfig,
    server: str,
    reconnect_delay: float,
    heartbeat_interval: float,
    heartbeat_timeout: float,
    forward_timeout: Optional[float],
    printer: EventPrinter,
    exit_after: Optional[int],
) -> None:
    """Run the supervisor until shutdown, then wait out the grace period."""
    relay = EventRelay(
        config,
        timeout=forward_timeout,
        printer=printer,
        exit_after=exit_after,
    )
    supervisor = ConnectionSupervisor(
        server,
        relay,
        reconnect_delay=reconnect_delay,
        heartbeat_interval=heartbeat_interval,
        heartbeat_timeout=heartbeat_timeout,
    )
    _install_signal_handlers(supervisor)

    runner = supervisor.start()
    waiter = asyncio.create_task(supervisor.shutdown_signal.wait())
    try:
        done, _ = await asyncio.wait({runner, waiter}, return_when=asyncio.FIRST_COMPLETED)
        if runner in done:
            # run() only returns after shutdown; surface anything else.
            runner.result()

        click.echo("\nClosing connection...")
        await supervisor.wait_closed(grace=SHUTDOWN_GRACE)
    finally:
        waiter.cancel()
        await relay.aclose()


@main.command()
@click.option("--config", "config_path", type=click.Path(dir_okay=False), default=DEFAULT_CONFIG_FILE,
              show_default=True, help="Identity configuration file (created on first run)")
@click.option("--server", type=str, default=DEFAULT_SERVER_URL, envvar="HOOKRELAY_SERVER_URL",
              show_default=True, help="Webhook Inspector WebSocket URL")
@click.option("--reconnect-delay", type=float, default=DEFAULT_RECONNECT_DELAY, show_default=True,
              help="Seconds to wait between connection attempts")
@click.option("--heartbeat-interval", type=float, default=DEFAULT_HEARTBEAT_INTERVAL, show_default=True,
              help="Seconds between heartbeat pings")
@click.option("--heartbeat-timeout", type=float, default=DEFAULT_HEARTBEAT_TIMEOUT, show_default=True,
              help="Seconds to wait for a heartbeat pong")
@click.option("--forward-timeout", type=float, default=None,
              help="Timeout for forwarded requests in seconds (default: wait indefinitely)")
@click.option("--pretty", is_flag=True, help="Pretty-print JSON bodies to console")
@click.option("--quiet", is_flag=True, help="Suppress console output except errors")
@click.option("--log-file", type=str, default=None, help="Log application logs to file")
@click.option("--log-level", type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
              default='INFO', help="Set logging level")
@click.option("--log-rotate", is_flag=True, help="Enable log file rotation")
@click.option("--exit-after", type=int, default=None, help="Exit after relaying N events (useful for CI)")
def connect(
    config_path: str,
    server: str,
    reconnect_delay: float,
    heartbeat_interval: float,
    heartbeat_timeout: float,
    forward_timeout: Optional[float],
    pretty: bool,
    quiet: bool,
    log_file: Optional[str],
    log_level: str,
    log_rotate: bool,
    exit_after: Optional[int]
):
    """Subscribe to Webhook Inspector and replay webhooks locally.

    On first run the inspector id and local endpoint are asked for and saved
    to the configuration file.

    Examples:
        hookrelay connect
        hookrelay connect --config ~/.hookrelay.json --pretty
        hookrelay connect --forward-timeout 10 --log-file relay.log --log-rotate
        hookrelay connect --exit-after 1 --quiet
    """
    for name, value in (
        ("--reconnect-delay", reconnect_delay),
        ("--heartbeat-interval", heartbeat_interval),
        ("--heartbeat-timeout", heartbeat_timeout),
        ("--forward-timeout", forward_timeout),
        ("--exit-after", exit_after),
    ):
        if value is not None and value <= 0:
            click.echo(f"Error: {name} must be positive", err=True)
            return

    configure_logging(
        quiet=quiet,
        log_file=log_file,
        log_level=log_level,
        log_rotate=log_rotate
    )

    click.echo("=== Webhook Inspector Client ===")

    try:
        config, created = load_or_prompt(Path(config_path))
    except ConfigError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    if created:
        click.echo(f"Configuration saved in {config_path}")
    else:
        click.echo("Using configured WebhookInspectorId and endpoint:")
    click.echo(f"  WebhookInspectorId: {config.inspector_id}")
    click.echo(f"  Local Endpoint: {config.local_endpoint}")

    if not quiet:
        click.echo(f"🔌 Inspector: {server}")
        if forward_timeout:
            click.echo(f"⏱️  Forward timeout: {forward_timeout}s")
        if exit_after:
            click.echo(f"ℹ️  Will exit after {exit_after} events")
        click.echo()
        click.echo("Press Ctrl+C to stop")

    try:
        asyncio.run(_run_relay(
            config,
            server,
            reconnect_delay=reconnect_delay,
            heartbeat_interval=heartbeat_interval,
            heartbeat_timeout=heartbeat_timeout,
            forward_timeout=forward_timeout,
            printer=EventPrinter(pretty=pretty, quiet=quiet),
            exit_after=exit_after,
        ))
    except KeyboardInterrupt:
        click.echo("\n\n👋 Closing connection...")


@main.command()
@click.argument("port", type=int)
@click.option("--spec", type=click.Path(exists=True), default=None, help="Mock response specification file")
@click.option("--host", type=str, default="127.0.0.1", help="Host to bind to")
@click.option("--quiet", is_flag=True, help="Suppress console output")
def mock(port: int, spec: Optional[str], host: str, quiet: bool):
    """Run a mock local endpoint that records relayed webhooks.

    Examples:
        hookrelay mock 9000
        hookrelay mock 9000 --spec responses.json

    Spec file format (JSON or YAML):
    {
        "defaults": {
            "status": 200,
            "delay": 0
        },
        "routes": {
            "/hook": {
                "POST": {
                    "status": 201,
                    "body": {"success": true},
                    "delay": 0.5
                }
            }
        }
    }
    """
    if not (1 <= port <= 65535):
        click.echo(f"Error: Port must be between 1 and 65535, got {port}", err=True)
        return

    try:
        mock_target = MockTarget.from_file(Path(spec)) if spec else MockTarget()
    except (ValueError, ImportError) as e:
        click.echo(f"❌ Error loading mock spec: {e}", err=True)
        return

    app = mock_target.create_app()

    if not quiet:
        click.echo(f"🎭 Mock endpoint running on http://{host}:{port}")
        if spec:
            click.echo(f"📋 Using spec: {spec}")
        click.echo(f"📥 Received: http://{host}:{port}/__mock__/requests")
        click.echo(f"📊 Stats: http://{host}:{port}/__mock__/stats")
        click.echo(f"🔄 Reset: http://{host}:{port}/__mock__/reset")
        click.echo()
        click.echo("Press Ctrl+C to stop")

    try:
        uvicorn.run(
            app,
            host=host,
            port=port,
            log_level="error" if quiet else "info",
            access_log=not quiet,
            timeout_keep_alive=5
        )
    except KeyboardInterrupt:
        if not quiet:
            click.echo("\n\n👋 Mock endpoint stopped")


if __name__ == "__main__":
    main()
