"""
Logging configuration
"""
import logging
import sys
from cafeteria.config import get_settings

settings = get_settings()

ROOT_LOGGER = "cafeteria"


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the cafeteria hierarchy.

    The stdout handler lives on the package logger so every module logger
    shares one handler and format, whichever entry point imports it first.
    """
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        ))
        root.addHandler(handler)
        root.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)

    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
