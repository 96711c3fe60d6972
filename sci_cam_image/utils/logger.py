"""Logging helpers for the science camera publisher.

Provides a ``get_logger`` function returning a logger with the package's
standard console format. ROS nodes log through ``Node.get_logger()`` instead;
this is for the plain-Python layers that must work without a ROS runtime.
"""

from __future__ import annotations

import logging

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """Return a configured :class:`logging.Logger` instance.

    Parameters
    ----------
    name:
        Name of the logger, typically ``__name__`` of the caller.
    level:
        Threshold applied the first time the logger is configured.

    Returns
    -------
    logging.Logger
        Logger with a single console handler attached.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(handler)
        logger.setLevel(level)
    return logger


__all__ = ["get_logger"]
