"""
Logging helpers.

Library modules log through logging.getLogger("plexaccess.<module>") and
never configure handlers themselves. configure() is for entry points and
examples that want output on the console.
"""

import logging
import sys

LOGGER_NAME = "plexaccess"
FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def get_logger(name: str) -> logging.Logger:
    """Child logger under the package namespace."""
    if name == LOGGER_NAME or name.startswith(LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")


def configure(verbose: bool = False, stream=None) -> logging.Logger:
    """
    Attach one stream handler to the package logger.

    Args:
        verbose: INFO and above when True, WARNING and above otherwise.
        stream: Defaults to stderr.

    Returns:
        The package logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if getattr(handler, "_plexaccess", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(FORMAT))
    handler._plexaccess = True
    logger.addHandler(handler)
    logger.setLevel(logging.INFO if verbose else logging.WARNING)
    return logger
