"""CLI command modules for biodid.

Each module exposes a ``register(subparsers)`` function that wires up
its argparse sub-commands and sets ``parser.set_defaults(func=handler)``.
"""

from . import database, keys, tokens
from .database import cmd_init_db
from .keys import cmd_keygen
from .tokens import cmd_token_decode

# All command modules with register() functions, in registration order.
COMMAND_MODULES = [
    database,
    keys,
    tokens,
]

__all__ = [
    "COMMAND_MODULES",
    "cmd_init_db",
    "cmd_keygen",
    "cmd_token_decode",
]
