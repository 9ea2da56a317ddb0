"""Key generation for verification methods.

Usage:
    biodid keygen
    biodid keygen --include-private
"""

from __future__ import annotations

import argparse

from ...identity.keys import generate_keypair
from ..output import output_result


def register(subparsers: argparse._SubParsersAction) -> None:
    """Register the keygen command on the CLI parser."""
    keygen_parser = subparsers.add_parser("keygen", help="Generate an Ed25519 key for a verification method")
    keygen_parser.add_argument(
        "--include-private",
        action="store_true",
        help="Also print the private key (hex)",
    )
    keygen_parser.set_defaults(func=cmd_keygen)


def cmd_keygen(args: argparse.Namespace) -> int:
    """Generate a key pair and print its public forms."""
    keypair = generate_keypair()
    result = {
        "type": "Ed25519VerificationKey2020",
        "public_key_multibase": keypair.public_key_multibase,
        "public_key_jwk": keypair.public_key_jwk,
    }
    if args.include_private:
        result["private_key_hex"] = keypair.private_key_hex

    output_result(result, args.output)
    return 0
