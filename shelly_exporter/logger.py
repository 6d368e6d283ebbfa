from __future__ import annotations

import logging
import sys
from typing import Union

DEFAULT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOGGER_NAME = "shelly_exporter"


def configure(level: Union[int, str] = "INFO", log_format: str = DEFAULT_FORMAT) -> logging.Logger:
    """(Re)configure the package logger with a single stderr handler."""
    lg = logging.getLogger(LOGGER_NAME)
    lg.setLevel(level)
    lg.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(log_format))
    lg.addHandler(handler)
    lg.propagate = False
    return lg
