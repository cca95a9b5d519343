"""
consentid -- Command line

Usage:
    consentid isgranted <identity>     exit 0 if in grant status, 1 if revoked
    consentid revoke <filename>        revoke using a disclosure document

Ledger settings come from --config (YAML) and CONSENTID_* environment
variables; see config/default.yaml.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any

import structlog

from consentid import __version__
from consentid.clients.ledger import create_ledger_client
from consentid.config import load_config
from consentid.primitives.common import format_unix
from consentid.systems.identity.disclosure import extract_disclosure
from consentid.systems.identity.ssi import SelfSovereignIdentity
from consentid.systems.identity.status import StatusQuery
from consentid.telemetry.logging import setup_logging

logger = structlog.get_logger("consentid.cli")

EXIT_GRANTED = 0
EXIT_REVOKED = 1
EXIT_ERROR = 2


async def is_granted(identity: str, config_path: str | None, overrides: dict[str, Any]) -> int:
    config = load_config(config_path, overrides)
    ledger = create_ledger_client(config.ledger)
    try:
        status = StatusQuery(identity, ledger)
        revoked_at = await status.is_revoked_at()
        if revoked_at > 0:
            print(f"Revoked at {format_unix(revoked_at)}")
            return EXIT_REVOKED
        published_at = await status.is_published_at()
        if published_at > 0:
            print(f"Granted at {format_unix(published_at)}")
        else:
            print("Not published, not revoked")
        return EXIT_GRANTED
    finally:
        await ledger.close()


async def revoke(filename: str, config_path: str | None, overrides: dict[str, Any]) -> int:
    config = load_config(config_path, overrides)
    snapshot = extract_disclosure(Path(filename).read_bytes())
    ledger = create_ledger_client(config.ledger)
    try:
        ssi = SelfSovereignIdentity.from_disclosure(snapshot, ledger=ledger)
        receipt = await ssi.revoke()
        print(f"revoke({ssi.identity})@{receipt.block_number}")
        return EXIT_GRANTED
    finally:
        await ledger.close()


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="consentid",
        description="Check and revoke decentralized consent identities.",
    )
    parser.add_argument("-v", "--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", default=None, help="YAML config file")
    parser.add_argument("--rpc-url", default=None, help="Override ledger.rpc_url")

    commands = parser.add_subparsers(dest="command", required=True)

    granted = commands.add_parser(
        "isgranted",
        help="Checks if a data grant is revoked. Exit code 0 if in grant status, 1 if revoked.",
    )
    granted.add_argument("identity")

    revoker = commands.add_parser(
        "revoke",
        help="Revokes a data grant using the given disclosure document.",
    )
    revoker.add_argument("filename")

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    overrides: dict[str, Any] = {}
    if args.rpc_url:
        overrides["ledger"] = {"rpc_url": args.rpc_url}

    setup_logging(load_config(args.config, overrides).logging)

    try:
        if args.command == "isgranted":
            return asyncio.run(is_granted(args.identity, args.config, overrides))
        return asyncio.run(revoke(args.filename, args.config, overrides))
    except Exception as exc:
        logger.error("command_failed", command=args.command, error=str(exc))
        print(f"Exception in {args.command}(): {exc}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
