"""Admin privilege helpers for Windows."""
from __future__ import annotations

import ctypes
import logging
from typing import Callable

from services.errors import ElevationError

logger = logging.getLogger(__name__)

ElevationCheck = Callable[[], bool]


def is_admin() -> bool:
    try:
        return bool(ctypes.windll.shell32.IsUserAnAdmin())  # type: ignore[attr-defined]
    except (AttributeError, OSError):
        return False


def ensure_elevated(check: ElevationCheck = is_admin) -> None:
    if not check():
        raise ElevationError(
            "Administrator rights are required. Re-run this tool from an elevated prompt."
        )
    logger.debug("Running with administrator rights")
