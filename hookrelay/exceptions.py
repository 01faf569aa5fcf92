"""Exceptions raised by hookrelay."""


class HookRelayError(Exception):
    """Base class for hookrelay errors."""


class ConfigError(HookRelayError):
    """The identity configuration could not be loaded or saved.

    Only raised during startup, before the relay is running.
    """


class FrameDecodeError(HookRelayError, ValueError):
    """An inbound frame is not a well-formed webhook event."""


class ForwardError(HookRelayError):
    """A replay request could not be built from an event."""
