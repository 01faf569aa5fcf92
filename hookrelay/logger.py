"""Logging setup and console output of relayed events."""

import json
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

from .events import InboundEvent
from .utils import get_timestamp, pretty_print

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(
    quiet: bool = False,
    log_file: Optional[Union[str, Path]] = None,
    log_level: str = "INFO",
    log_rotate: bool = False
) -> logging.Logger:
    """Configure the ``hookrelay`` logger.

    Calling it again replaces the handlers installed by a previous call.

    Args:
        quiet: Suppress console logging below ERROR
        log_file: Also write logs to this file
        log_level: Name of the logger level
        log_rotate: Rotate the log file at 10MB, keeping 5 backups

    Returns:
        The configured ``hookrelay`` logger
    """
    logger = logging.getLogger("hookrelay")
    logger.setLevel(getattr(logging, log_level.upper()))

    for handler in list(logger.handlers):
        if getattr(handler, '_hookrelay', False):
            logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.ERROR if quiet else logging.INFO)
    console_handler.setFormatter(formatter)
    console_handler._hookrelay = True
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        if log_rotate:
            file_handler = RotatingFileHandler(
                log_path,
                maxBytes=10*1024*1024,  # 10MB
                backupCount=5
            )
        else:
            file_handler = logging.FileHandler(log_path)

        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        file_handler._hookrelay = True
        logger.addHandler(file_handler)

    return logger


class EventPrinter:
    """Prints accepted webhook events to the console."""

    def __init__(self, pretty: bool = False, quiet: bool = False):
        self.pretty = pretty
        self.quiet = quiet
        self.logger = logging.getLogger("hookrelay.printer")

    def show(self, event: InboundEvent, target: str) -> None:
        """Print an event about to be replayed against ``target``."""
        if self.quiet:
            return

        try:
            print("\n" + "="*60)
            print(f"[{get_timestamp()}] {event.method or 'GET'} {target}")

            if event.query:
                print(f"Query: {event.query}")

            if event.headers:
                print("Headers:")
                for key, value in event.headers.items():
                    print(f"  {key}: {value}")

            if event.body is not None:
                print("JSON Body:")
                if self.pretty:
                    pretty_print(event.body)
                else:
                    print(f"  {json.dumps(event.body)}")

            print("="*60)
        except (TypeError, ValueError) as e:
            self.logger.error(f"Error printing event: {e}")
