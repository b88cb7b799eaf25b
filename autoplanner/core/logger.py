"""
Logging setup.

Every module gets its logger through ``setup_logger(__name__)`` so that the
format and level are configured in one place.
"""

import logging
import sys

from autoplanner.core.config import get_settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

_ROOT_LOGGER_NAME = "autoplanner"


def _configure_root() -> logging.Logger:
    root = logging.getLogger(_ROOT_LOGGER_NAME)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    settings = get_settings()
    root.setLevel(logging.DEBUG if settings.DEBUG else settings.LOG_LEVEL)
    return root


def setup_logger(name: str) -> logging.Logger:
    """
    Get a logger attached to the package's configured root logger.

    Args:
        name: Logger name, usually ``__name__``

    Returns:
        logging.Logger: Logger that writes through the shared handler
    """
    root = _configure_root()
    if name == _ROOT_LOGGER_NAME or name.startswith(f"{_ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return root.getChild(name)


logger = setup_logger(_ROOT_LOGGER_NAME)
