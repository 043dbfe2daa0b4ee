"""
Dicekeeper - Logging Configuration

Modules log through ``logging.getLogger(__name__)``; this sets the root
handler and level once from settings.
"""

import logging

from src.config.settings import Settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(settings: Settings) -> None:
    """Configure the root logger from settings. Safe to call more than once."""
    level = logging.DEBUG if settings.debug else getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger().setLevel(level)
