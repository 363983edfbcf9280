"""Command line access to a tree store.

Usage:
    # Read a subtree (prints JSON, null when absent)
    python -m canopy --url sqlite:///fleet.db get ships

    # Overwrite, append and remove
    python -m canopy --url sqlite:///fleet.db set ships/enterprise '{"name": "Enterprise"}'
    python -m canopy --url sqlite:///fleet.db push ships '{"name": "Defiant"}'
    python -m canopy --url sqlite:///fleet.db remove ships/enterprise

    # REST endpoint, credentials from the environment
    CANOPY_URL=https://fleet-1234.firebaseio.com CANOPY_AUTH=secret python -m canopy get /

Environment:
    CANOPY_URL   Default for --url (memory:// when unset)
    CANOPY_AUTH  Default for --auth
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import Any, List, Optional

from .store import connect
from .store.exceptions import StoreError

DEFAULT_URL = "memory://"


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the canopy command."""
    parser = argparse.ArgumentParser(
        prog="canopy",
        description="Read and write a hierarchical tree store",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--url",
        default=os.environ.get("CANOPY_URL", DEFAULT_URL),
        help="Store URL (memory://, sqlite:///path.db, https://...)",
    )
    parser.add_argument(
        "--auth",
        default=os.environ.get("CANOPY_AUTH"),
        help="Auth token for REST stores",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    get = commands.add_parser("get", help="Print the JSON value at a path")
    get.add_argument("path")

    set_ = commands.add_parser("set", help="Overwrite the value at a path")
    set_.add_argument("path")
    set_.add_argument("value", help="JSON value")

    push = commands.add_parser("push", help="Append a child and print its key")
    push.add_argument("path")
    push.add_argument("value", help="JSON value")

    remove = commands.add_parser("remove", help="Remove the subtree at a path")
    remove.add_argument("path")

    return parser


async def run_command(args: argparse.Namespace) -> Any:
    """Execute one parsed command against the configured store.

    Returns:
        The value to print as JSON
    """
    options = {}
    if args.auth and args.url.startswith(("http:", "https:")):
        options["auth"] = args.auth

    db = await connect(args.url, **options)
    async with db:
        if args.command == "get":
            return await db.read(args.path)
        if args.command == "set":
            await db.overwrite(args.path, json.loads(args.value))
            return None
        if args.command == "push":
            return await db.append(args.path, json.loads(args.value))
        if args.command == "remove":
            return await db.remove(args.path)
    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the canopy command line."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        result = asyncio.run(run_command(args))
    except json.JSONDecodeError as e:
        print(f"canopy: invalid JSON value: {e}", file=sys.stderr)
        return 1
    except StoreError as e:
        print(f"canopy: {e}", file=sys.stderr)
        return 1

    if args.command != "set":
        print(json.dumps(result))
    return 0
