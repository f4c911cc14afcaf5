"""
Logging setup shared by the API and scripts.
"""
import logging
from typing import Optional

from docchat.core.config import Settings, get_settings

# Libraries that are chatty at INFO
_NOISY_LOGGERS = ("httpx", "httpcore", "openai", "pdfminer")


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Configure root logging from settings. Safe to call more than once."""
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    logging.basicConfig(level=level, format=settings.log_format)
    logging.getLogger().setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
