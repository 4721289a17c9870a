"""Logging setup for applications embedding the cache client."""

import logging
import sys
from typing import Optional

from .settings import settings


def setup_logging(debug: Optional[bool] = None) -> None:
    """Configure logging based on debug flag (defaults to settings)."""
    if debug is None:
        debug = settings.DEBUG
    level = logging.DEBUG if debug else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
        ]
    )

    # One line per request attempt is already logged by the transport
    for noisy_logger in ("httpx", "httpcore"):
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)
