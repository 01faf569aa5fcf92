"""Utility functions."""

import json
from datetime import datetime, timezone
from typing import Any, Union


def get_timestamp() -> str:
    """Get current UTC timestamp in ISO 8601 format.

    Returns:
        ISO 8601 formatted timestamp string with milliseconds
    """
    return datetime.now(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def frame_preview(frame: Union[str, bytes], limit: int = 100) -> str:
    """Return a printable prefix of a raw frame for diagnostics.

    Args:
        frame: Text or binary frame as read from the connection
        limit: Maximum number of characters to keep

    Returns:
        The first ``limit`` characters, with an ellipsis when truncated
    """
    if isinstance(frame, bytes):
        text = frame.decode('utf-8', errors='replace')
    else:
        text = frame

    if len(text) > limit:
        return text[:limit] + '...'
    return text


def pretty_print(obj: Any) -> None:
    """Pretty print a JSON-serializable object."""
    try:
        if isinstance(obj, (dict, list)):
            str_repr = str(obj)
            if len(str_repr) > 100000:  # > 100KB
                print(f"<large object: {len(str_repr)} chars>")
                if isinstance(obj, dict):
                    print(f"Keys: {list(obj.keys())[:10]}...")
                else:
                    print(f"Length: {len(obj)}, first items: {obj[:5]}...")
                return

        print(json.dumps(obj, indent=2, ensure_ascii=False))
    except (TypeError, ValueError, RecursionError) as e:
        print(f"Error pretty printing: {e}")
        print(str(obj)[:1000])
