"""hookrelay - Relay webhooks captured by Webhook Inspector to a local endpoint.

Features:
- Persistent WebSocket subscription with heartbeat and fixed-delay reconnect
- Identity filtering of inspector events
- Faithful replay of each event as an HTTP request against a local endpoint
- Mock local endpoint for trying the relay without a real service

License: MIT
"""

__version__ = "1.0.0"
__license__ = "MIT"

# Public API
from .config import IdentityConfig, load_config, load_or_prompt, save_config
from .events import InboundEvent
from .exceptions import ConfigError, ForwardError, FrameDecodeError, HookRelayError
from .heartbeat import HeartbeatMonitor
from .logger import EventPrinter, configure_logging
from .mock import MockTarget
from .relay import EventRelay, RelayOutcome, build_request
from .supervisor import ConnectionSupervisor, SessionState, ShutdownSignal

__all__ = [
    # Version info
    "__version__",
    "__license__",

    # Core components
    "ConnectionSupervisor",
    "EventRelay",
    "HeartbeatMonitor",
    "ShutdownSignal",
    "SessionState",
    "RelayOutcome",
    "InboundEvent",
    "build_request",

    # Configuration
    "IdentityConfig",
    "load_config",
    "load_or_prompt",
    "save_config",

    # Output and tooling
    "EventPrinter",
    "configure_logging",
    "MockTarget",

    # Errors
    "HookRelayError",
    "ConfigError",
    "FrameDecodeError",
    "ForwardError",
]
