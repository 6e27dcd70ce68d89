"""Logging helpers shared by chunklift modules."""

import logging


def get_logger(name: str) -> logging.Logger:
    """
    Return the ``chunklift.*`` logger called ``name``.

    Records propagate to the root logger, so ``logging.basicConfig()`` is
    enough to see them. Until the root logger has a handler, a logger with
    no level of its own is capped at WARNING; ``chunklift.setup_logging``
    sets explicit levels.
    """
    logger = logging.getLogger(name)
    logger.propagate = True

    if logger.level == logging.NOTSET and not logging.getLogger().handlers:
        logger.setLevel(logging.WARNING)

    return logger


def format_size(num_bytes: float) -> str:
    """Format a byte count as MB with two decimals, as used in log lines."""
    return f"{num_bytes / (1024 * 1024):.2f} MB"
