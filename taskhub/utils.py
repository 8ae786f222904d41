"""
Logging helpers shared across the application.
"""
import logging
import sys

from taskhub.core import config


_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_configured = False


def _configure_root() -> None:
    global _configured
    if _configured:
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT))
    root = logging.getLogger("taskhub")
    root.addHandler(handler)
    root.setLevel(config.LOG_LEVEL.upper())
    root.propagate = False
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger under the application namespace.

    Usage:
        from taskhub.utils import get_logger

        log = get_logger(__name__)
        log.info("Running server")
    """
    _configure_root()
    if not name.startswith("taskhub"):
        name = f"taskhub.{name}"
    return logging.getLogger(name)
