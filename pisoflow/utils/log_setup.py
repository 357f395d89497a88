"""Opt-in logging setup for scripts driving pisoflow."""

import logging

DEFAULT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def setup_logging(level=logging.INFO, fmt=DEFAULT_FORMAT):
    """
    Attach a stream handler to the ``pisoflow`` logger.

    The library itself never configures handlers; call this from scripts that
    want progress and solver warnings printed to the console.
    """
    logger = logging.getLogger("pisoflow")
    if not any(getattr(h, "_pisoflow", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt))
        handler._pisoflow = True
        logger.addHandler(handler)
    logger.setLevel(level)
    return logger
