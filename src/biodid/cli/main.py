#!/usr/bin/env python3
"""
biodid CLI - operator tooling for the identity and capability services.

Commands:
  biodid init-db              Create the identity and token tables
  biodid keygen               Generate an Ed25519 verification key
  biodid token decode <tok>   Show the fields carried by a token
  biodid token validate <tok> Check a token against the database
"""

from __future__ import annotations

import argparse
import logging
import sys

from ..core.logging import configure_logging
from .commands import COMMAND_MODULES

logger = logging.getLogger(__name__)


def app() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="biodid",
        description="Identity documents and capability tokens for biological research data",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  biodid init-db                          Initialize database
  biodid init-db --print-sql              Show the schema DDL
  biodid keygen --output json             New verification key as JSON
  biodid token decode "ucan:demo:..."     Inspect a token offline
        """,
    )
    parser.add_argument(
        "--output",
        "-o",
        choices=["text", "json"],
        default="text",
        help="Output format (default: text)",
    )
    parser.add_argument("--log-level", default=None, help="Override BIODID_LOG_LEVEL")

    subparsers = parser.add_subparsers(dest="command", required=True)
    for module in COMMAND_MODULES:
        module.register(subparsers)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = app()
    args = parser.parse_args(argv)

    configure_logging(level=args.log_level, json_format=False)

    handler = getattr(args, "func", None)
    if handler is None:
        parser.print_help()
        return 1
    return handler(args)


if __name__ == "__main__":
    sys.exit(main())
