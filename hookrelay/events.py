"""Inbound webhook events received from the inspector stream."""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Union

from .exceptions import FrameDecodeError

# Arbitrary JSON as produced by json.loads.
JSONValue = Union[None, bool, int, float, str, List[Any], Dict[str, Any]]


def _string_field(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise FrameDecodeError(f"'{key}' must be a string, got {type(value).__name__}")
    return value


def _string_map(data: Dict[str, Any], key: str) -> Dict[str, str]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise FrameDecodeError(f"'{key}' must be an object, got {type(value).__name__}")

    for name, item in value.items():
        if not isinstance(item, str):
            raise FrameDecodeError(
                f"'{key}.{name}' must be a string, got {type(item).__name__}"
            )
    return dict(value)


@dataclass
class InboundEvent:
    """One webhook captured by the inspector.

    Exists only for the duration of a single relay iteration.
    """

    id: str
    method: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    query: Dict[str, str] = field(default_factory=dict)
    body: JSONValue = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'InboundEvent':
        """Build an event from a decoded frame object.

        Missing fields take empty values; extra keys are ignored.

        Raises:
            FrameDecodeError: If a field has the wrong type
        """
        return cls(
            id=_string_field(data, "id"),
            method=_string_field(data, "method"),
            headers=_string_map(data, "headers"),
            query=_string_map(data, "query"),
            body=data.get("body"),
        )

    @classmethod
    def from_frame(cls, frame: Union[str, bytes]) -> 'InboundEvent':
        """Decode one text or binary frame.

        Args:
            frame: Raw message from the duplex connection

        Returns:
            InboundEvent instance

        Raises:
            FrameDecodeError: If the frame is not a JSON event object
        """
        if isinstance(frame, (bytes, bytearray)):
            try:
                frame = frame.decode('utf-8')
            except UnicodeDecodeError as e:
                raise FrameDecodeError(f"Frame is not valid UTF-8: {e}") from e

        try:
            data = json.loads(frame)
        except json.JSONDecodeError as e:
            raise FrameDecodeError(str(e)) from e

        if not isinstance(data, dict):
            raise FrameDecodeError(f"Expected a JSON object, got {type(data).__name__}")

        return cls.from_dict(data)
