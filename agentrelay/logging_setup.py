"""Logging configuration shared by the library and its callers."""

import logging
import sys
from typing import Union

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: Union[str, int] = "INFO") -> None:
    """Configure root logging on stderr and set the package level."""
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stderr)],
    )
    logging.getLogger("agentrelay").setLevel(level)


def debug_log(logger: logging.Logger, debug: bool, msg: str, *args) -> None:
    """Log at INFO when the run asked for debug output, DEBUG otherwise."""
    logger.log(logging.INFO if debug else logging.DEBUG, msg, *args)
