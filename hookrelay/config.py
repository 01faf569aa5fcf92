"""Persisted identity configuration."""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Tuple, Union

import click

from .exceptions import ConfigError

DEFAULT_CONFIG_FILE = "config.json"

logger = logging.getLogger("hookrelay.config")


@dataclass(frozen=True)
class IdentityConfig:
    """Which inspector to follow and where to replay its webhooks.

    Loaded once at startup and never mutated afterwards.
    """

    inspector_id: str
    local_endpoint: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'IdentityConfig':
        """Build a config from the persisted JSON object.

        Raises:
            ConfigError: If a field is missing, empty or not a string
        """
        values = {}
        for key in ("inspectorId", "localEndpoint"):
            value = data.get(key)
            if not isinstance(value, str) or not value.strip():
                raise ConfigError(f"Missing or empty '{key}' in configuration")
            values[key] = value.strip()

        return cls(
            inspector_id=values["inspectorId"],
            local_endpoint=values["localEndpoint"],
        )

    def to_dict(self) -> Dict[str, str]:
        return {
            "inspectorId": self.inspector_id,
            "localEndpoint": self.local_endpoint,
        }


def load_config(path: Union[str, Path]) -> IdentityConfig:
    """Load the identity configuration from a JSON file.

    Args:
        path: Path to the configuration file

    Returns:
        IdentityConfig instance

    Raises:
        ConfigError: If the file cannot be read or parsed
    """
    path = Path(path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Error parsing configuration file {path}: {e}") from e
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Error reading configuration file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Configuration file {path} must contain a JSON object")

    return IdentityConfig.from_dict(data)


def save_config(config: IdentityConfig, path: Union[str, Path]) -> None:
    """Write the configuration as JSON with 2-space indentation.

    Raises:
        ConfigError: If the file cannot be written
    """
    path = Path(path)
    try:
        with open(path, 'w', encoding='utf-8') as f:
            f.write(json.dumps(config.to_dict(), indent=2))
    except OSError as e:
        raise ConfigError(f"Error saving configuration file {path}: {e}") from e

    logger.debug(f"Configuration written to {path}")


def _prompt_value(text: str) -> str:
    while True:
        value = click.prompt(text, type=str).strip()
        if value:
            return value
        click.echo("A value is required.", err=True)


def prompt_config() -> IdentityConfig:
    """Interactively ask for the inspector id and local endpoint."""
    inspector_id = _prompt_value("Enter WebhookInspectorId")
    local_endpoint = _prompt_value("Enter the local endpoint URL to forward webhooks")
    return IdentityConfig(inspector_id=inspector_id, local_endpoint=local_endpoint)


def load_or_prompt(path: Union[str, Path] = DEFAULT_CONFIG_FILE) -> Tuple[IdentityConfig, bool]:
    """Load the configuration file, or collect and save it on first run.

    Args:
        path: Path to the configuration file

    Returns:
        Tuple of the configuration and whether it was newly created

    Raises:
        ConfigError: If the existing file is invalid or a new one cannot be written
    """
    path = Path(path)
    if path.exists():
        return load_config(path), False

    config = prompt_config()
    save_config(config, path)
    return config, True
