#!/usr/bin/env python3
"""
discord-stamp CLI — Run the credential check from a terminal.

Commands:
    check          - Evaluate the four criteria for an access token
    authorize-url  - Print the OAuth2 authorization URL
    exchange       - Exchange an authorization code for an access token
    serve          - Run the HTTP API

Exit codes for ``check``: 0 all criteria met, 1 not met, 2 error.
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Optional

from .config import Settings
from .errors import StampError

logger = logging.getLogger(__name__)


def _output(data: dict, args: argparse.Namespace, human_fn=None):
    """Output data as JSON or pretty-printed."""
    if getattr(args, "json", False) or human_fn is None:
        print(json.dumps(data, indent=2, default=str))
    else:
        human_fn(data)


# ─── Commands ──────────────────────────────────────────────────────

def cmd_check(args, settings: Settings):
    """Run the credential pipeline and print the report."""
    from .pipeline import check_credentials

    if args.record and not settings.id_salt:
        logger.warning("STAMP_ID_SALT is not set; the stored id is an unsalted hash")
    report = asyncio.run(check_credentials(args.token, settings))
    result = report.to_record(settings.id_salt) if args.record else report.to_dict()

    def human(_):
        mark = {True: "✅", False: "❌"}
        for c in report.criteria:
            print(f"{mark[c.passed]} {c.message}")
        if report.partial:
            print("⚠️  Some server lookups did not finish; role count may be low")
        print()
        print("✅ All requirements met" if report.overall_passed
              else "❌ Requirements not met")

    _output(result, args, human)
    if not report.overall_passed:
        sys.exit(1)
    return result


def cmd_authorize_url(args, settings: Settings):
    from .oauth import authorize_url

    url = authorize_url(settings, state=args.state)
    print(url)
    return {"url": url}


def cmd_exchange(args, settings: Settings):
    from .oauth import exchange_code

    token = asyncio.run(exchange_code(args.code, settings))
    print(token)
    return {"access_token": token}


def cmd_serve(args, settings: Settings):
    import uvicorn

    from .api import create_app

    uvicorn.run(create_app(settings), host=args.host, port=args.port)
    return {}


# ─── Parser ────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="discord-stamp",
        description="discord-stamp — Discord engagement credential check",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--json", action="store_true", help="Machine-readable JSON output")

    sub = parser.add_subparsers(dest="command", help="Available commands")

    p = sub.add_parser("check", help="Evaluate the four criteria for an access token")
    p.add_argument("-t", "--token", required=True, help="OAuth2 access token")
    p.add_argument("--record", action="store_true",
                   help="Print the storage record (hashed id, counts only)")

    p = sub.add_parser("authorize-url", help="Print the OAuth2 authorization URL")
    p.add_argument("--state", help="Opaque state value to round-trip")

    p = sub.add_parser("exchange", help="Exchange an authorization code for a token")
    p.add_argument("-c", "--code", required=True, help="Authorization code")

    p = sub.add_parser("serve", help="Run the HTTP API")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=8000)

    return parser


def main(argv: Optional[list[str]] = None) -> Optional[dict]:
    """CLI entry point. Returns result dict for testing."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(2)

    commands = {
        "check": cmd_check,
        "authorize-url": cmd_authorize_url,
        "exchange": cmd_exchange,
        "serve": cmd_serve,
    }

    try:
        settings = Settings.from_env()
        return commands[args.command](args, settings)
    except StampError as e:
        print(f"❌ {e.public_message}: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
