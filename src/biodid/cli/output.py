# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Output formatting for CLI commands."""

from __future__ import annotations

import json
import sys
from typing import Any


def output_result(data: dict[str, Any], output_format: str = "text") -> None:
    """Print a command result.

    ``json`` pretty-prints the whole result; ``text`` prints one
    ``key: value`` line per top-level field.
    """
    if output_format == "json":
        print(json.dumps(data, indent=2, default=str))
        return

    for key, value in data.items():
        if isinstance(value, (dict, list)):
            value = json.dumps(value, default=str)
        print(f"{key}: {value}")


def output_error(message: str) -> None:
    """Print error message to stderr."""
    print(f"Error: {message}", file=sys.stderr)
