"""Takeoff forecasting engine – CLI dispatcher.

All subcommands live in ``takeoff/commands/*.py`` and expose a
``register(subparsers)`` function that adds themselves to argparse.
"""
from __future__ import annotations

import argparse
import logging
import sys

from backend.app.core.errors import ForecastEngineError
from backend.llm_client import LLMClientError
from shared.config import LOG_LEVEL


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="takeoff",
        description="Takeoff: event-sourced AI forecasting game engine CLI",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command")

    from takeoff.commands.registry import register_all

    register_all(sub)

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else getattr(logging, LOG_LEVEL, logging.INFO),
        format="%(levelname)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        sys.exit(0)

    # Each command stores a ``func`` on the namespace
    try:
        rc = args.func(args)
    except (ForecastEngineError, LLMClientError, FileNotFoundError, ValueError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        sys.exit(1)
    sys.exit(rc or 0)
