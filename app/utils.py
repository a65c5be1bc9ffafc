import logging

from app.core import config

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOGGER_NAME = "access_core"


def _root_logger() -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)

    # Avoid duplicate handlers on reload
    if logger.handlers:
        return logger

    logger.setLevel(config.LOG_LEVEL)
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a child of the application logger for ``name``."""
    root = _root_logger()
    if name.startswith(LOGGER_NAME):
        return logging.getLogger(name)
    return root.getChild(name)
