"""Console logging setup, called once at startup by the CLI.

Every module does ``logger = logging.getLogger(__name__)`` and inherits
the handler installed here. Timestamp and line format come from the
``RunConfig`` the run was built with.
"""
from __future__ import annotations

import logging
import sys
from typing import TextIO

from gaming_repair.constants import RunConfig


def setup_logging(config: RunConfig, *, stream: TextIO | None = None) -> None:
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(config.log_level)
    handler.setFormatter(logging.Formatter(config.log_format, datefmt=config.date_format))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(config.log_level)

    # Don't propagate exceptions from logging itself
    logging.raiseExceptions = False
