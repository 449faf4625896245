#!/usr/bin/env python3
"""Repair the Windows gaming stack (Store, Xbox app, Gaming Services, runtimes)."""

from __future__ import annotations

import argparse
import logging
from typing import Sequence

from gaming_repair.constants import build_run_config
from gaming_repair.logging_config import setup_logging
from services.errors import ElevationError, WingetUnavailableError
from services.reconciler import ReconciliationEngine

logger = logging.getLogger("repair_gaming_stack")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Install, re-register and start the Microsoft Store, Xbox and Gaming Services components."
    )
    parser.add_argument(
        "--include-legacy-console-companion",
        action="store_true",
        help="Also repair the legacy Xbox Console Companion app",
    )
    return parser


def main(argv: Sequence[str] | None = None, *, engine: ReconciliationEngine | None = None) -> int:
    args = build_parser().parse_args(argv)
    config = build_run_config(include_legacy_console_companion=args.include_legacy_console_companion)
    setup_logging(config)
    engine = engine or ReconciliationEngine(config)
    try:
        engine.run()
    except (ElevationError, WingetUnavailableError) as exc:
        logger.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
