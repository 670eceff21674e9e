"""
Structured logging setup.

Usage:
    from ca_assistant.utils.logging import get_logger
    logger = get_logger("ca_assistant.pipeline.retrieval")
    logger.info("Retrieved %d chunks", len(chunks))
"""

from __future__ import annotations

import logging
import sys

ROOT_LOGGER = "ca_assistant"

_configured = False


def setup_logging(level: int | str = logging.INFO) -> None:
    """Configure structured logging for the ``ca_assistant`` namespace."""
    global _configured
    if _configured:
        logging.getLogger(ROOT_LOGGER).setLevel(level)
        return

    handler = logging.StreamHandler(sys.stderr)

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)

    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(level)
    root.addHandler(handler)
    root.propagate = False

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """
    Return a logger under the ``ca_assistant`` namespace.

    Automatically calls ``setup_logging()`` on first use to ensure
    the root handler is attached.
    """
    setup_logging()
    return logging.getLogger(name)
