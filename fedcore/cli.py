#!/usr/bin/env python3
"""
fedcore CLI

Command-line access to keys, signing, fetching and delivery:
  fedcore keys - Print (generating if needed) an identity's public key
  fedcore sign - Print the signature headers for a request
  fedcore fetch - Authenticated GET of a remote document
  fedcore fetch-key - Fetch the public key published at a keyId
  fedcore send - Deliver an activity to remote actors

Usage:
  fedcore --base-url https://forum.example keys 42
  fedcore --config fed.yaml sign 42 https://remote.example/inbox --payload note.json
  fedcore --config fed.yaml fetch https://remote.example/users/alice --uid 42
  fedcore --config fed.yaml fetch-key https://remote.example/users/alice#main-key
  fedcore --config fed.yaml send 42 https://remote.example/users/alice --payload follow.json
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict

from .config import FederationConfig, load_yaml_mapping
from .errors import FederationError
from .federation import Federation
from .keystore import FileObjectStore


def load_config(args) -> FederationConfig:
    """Config file first, then command-line overrides."""
    data: Dict[str, Any] = {}
    if args.config:
        with open(args.config) as f:
            data = load_yaml_mapping(f.read())
    if args.base_url:
        data["base_url"] = args.base_url
    if "base_url" not in data:
        raise ValueError("A base URL is required (--base-url or base_url in --config)")
    return FederationConfig.from_dict(data)


def load_payload(path: str) -> Dict[str, Any]:
    """Read a JSON payload from a file, or stdin for '-'."""
    if path == "-":
        return json.load(sys.stdin)
    with open(path) as f:
        return json.load(f)


def make_federation(args) -> Federation:
    config = load_config(args)
    store_dir = Path(args.store_dir) if args.store_dir else Path("./fedcore_keys")
    return Federation(config, FileObjectStore(store_dir))


async def cmd_keys(args):
    """Print the public key document for an identity."""
    async with make_federation(args) as fed:
        document = await fed.public_key_document(args.uid)
    print(json.dumps(document, indent=2))


async def cmd_sign(args):
    """Print signature headers for a GET, or a POST when --payload is given."""
    payload = load_payload(args.payload) if args.payload else None
    async with make_federation(args) as fed:
        header = await fed.sign(args.uid, args.url, payload)
    for name, value in header.to_headers().items():
        print(f"{name}: {value}")


async def cmd_fetch(args):
    """Fetch a remote document as --uid (unsigned if omitted)."""
    async with make_federation(args) as fed:
        body = await fed.get(args.uid, args.uri)
    print(json.dumps(body, indent=2))


async def cmd_fetch_key(args):
    """Fetch and print a remote public key."""
    async with make_federation(args) as fed:
        pem = await fed.fetch_public_key(args.key_id)
    print(pem)


async def cmd_send(args):
    """Send an activity to one or more remote actors."""
    payload = load_payload(args.payload)
    async with make_federation(args) as fed:
        delivered = await fed.send(args.uid, args.targets, payload)

    print(f"Delivered to {len(delivered)} inbox(es)")
    for inbox in sorted(delivered):
        print(f"  {inbox}")


COMMANDS = {
    "keys": cmd_keys,
    "sign": cmd_sign,
    "fetch": cmd_fetch,
    "fetch-key": cmd_fetch_key,
    "send": cmd_send,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fedcore",
        description="fedcore - ActivityPub HTTP signatures and delivery",
    )
    parser.add_argument("--config", help="Config YAML file")
    parser.add_argument("--base-url", help="Instance base URL (overrides config)")
    parser.add_argument("--store-dir", help="Key store directory (default: ./fedcore_keys)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # keys command
    keys_parser = subparsers.add_parser("keys", help="Show an identity's public key")
    keys_parser.add_argument("uid", type=int, help="Local identity")

    # sign command
    sign_parser = subparsers.add_parser("sign", help="Sign a request")
    sign_parser.add_argument("uid", type=int, help="Signing identity")
    sign_parser.add_argument("url", help="Request URL")
    sign_parser.add_argument("--payload", help="JSON body file ('-' for stdin); signs a POST")

    # fetch command
    fetch_parser = subparsers.add_parser("fetch", help="Fetch a remote document")
    fetch_parser.add_argument("uri", help="Document URI")
    fetch_parser.add_argument("--uid", type=int, help="Fetch as this identity (signed)")

    # fetch-key command
    key_parser = subparsers.add_parser("fetch-key", help="Fetch a remote public key")
    key_parser.add_argument("key_id", help="keyId URI")

    # send command
    send_parser = subparsers.add_parser("send", help="Deliver an activity")
    send_parser.add_argument("uid", type=int, help="Sending identity")
    send_parser.add_argument("targets", nargs="+", help="Recipient actor URIs")
    send_parser.add_argument("--payload", required=True, help="Activity JSON file ('-' for stdin)")

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    command = COMMANDS.get(args.command)
    if command is None:
        parser.print_help()
        sys.exit(1)

    try:
        asyncio.run(command(args))
    except (FederationError, ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
