"""Pharmacy API client CLI.

Drive the session lifecycle from a terminal: log in, inspect the stored
session, refresh or verify the token, issue ad-hoc requests, log out.
Every command prints the outcome envelope as JSON on stdout.
"""

import argparse
import asyncio
import getpass
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from pharmacy_client.auth.operations import AuthApi
from pharmacy_client.config import load_config
from pharmacy_client.http.client import ApiClient
from pharmacy_client.logging.setup import setup_logging

# Project root directory (where .env file is located)
# __main__.py is at src/pharmacy_client/__main__.py, so root is 3 levels up
PROJECT_ROOT = Path(__file__).parent.parent.parent

logger = logging.getLogger(__name__)


def _print(data) -> None:
    print(json.dumps(data, indent=2, default=str))


def _exit_code(envelope: dict) -> int:
    return 0 if envelope.get("success") else 1


def _build_client(args: argparse.Namespace) -> ApiClient:
    overrides = {}
    if args.base_url:
        overrides["base_url"] = args.base_url
    if args.storage_path:
        overrides["storage_path"] = args.storage_path
    config = load_config(
        Path(args.config) if args.config else None,
        overrides=overrides or None,
    )
    return ApiClient(config)


async def cmd_login(args: argparse.Namespace) -> int:
    password = args.password or getpass.getpass("Password: ")
    async with _build_client(args) as client:
        result = await AuthApi(client).login(args.email, password)
    _print(result)
    return _exit_code(result)


async def cmd_logout(args: argparse.Namespace) -> int:
    async with _build_client(args) as client:
        await AuthApi(client).logout()
    _print({"success": True})
    return 0


async def cmd_refresh(args: argparse.Namespace) -> int:
    async with _build_client(args) as client:
        result = await AuthApi(client).refresh_token()
    _print(result)
    return _exit_code(result)


async def cmd_verify(args: argparse.Namespace) -> int:
    async with _build_client(args) as client:
        result = await AuthApi(client).verify_token()
    _print(result)
    return _exit_code(result)


async def cmd_whoami(args: argparse.Namespace) -> int:
    async with _build_client(args) as client:
        auth = AuthApi(client)
        session = await auth.restore_session() if args.check else auth.current_user()
    if session is None:
        _print({"success": False, "message": "Not logged in"})
        return 1
    _print({"success": True, **session.to_dict()})
    return 0


async def cmd_request(args: argparse.Namespace) -> int:
    body = json.loads(args.data) if args.data else None
    async with _build_client(args) as client:
        result = await client.call(
            args.endpoint,
            method=args.method,
            body=body,
            skip_auth=args.no_auth,
        )
    _print(result)
    return _exit_code(result)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    # Load environment variables from .env file before any config access
    load_dotenv(PROJECT_ROOT / ".env")

    parser = argparse.ArgumentParser(
        prog="pharmacy_client",
        description="Pharmacy API client CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Log in (prompts for the password)
    python -m pharmacy_client login jane@pharmacy.test

    # Show the stored session, validating it against the server
    python -m pharmacy_client whoami --check

    # Ad-hoc authenticated request
    python -m pharmacy_client request /inventory

    # POST with a JSON body
    python -m pharmacy_client request /sales -X POST -d '{"items": []}'
        """,
    )
    parser.add_argument("--config", help="Path to config.yaml")
    parser.add_argument("--base-url", help="Override api.base_url")
    parser.add_argument("--storage-path", help="Override the session file location")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    parser_login = subparsers.add_parser("login", help="Log in and store the session")
    parser_login.add_argument("email", help="Account email")
    parser_login.add_argument(
        "--password", help="Account password (prompted when omitted)"
    )
    parser_login.set_defaults(func=cmd_login)

    parser_logout = subparsers.add_parser("logout", help="Log out and clear the session")
    parser_logout.set_defaults(func=cmd_logout)

    parser_refresh = subparsers.add_parser("refresh", help="Refresh the access token")
    parser_refresh.set_defaults(func=cmd_refresh)

    parser_verify = subparsers.add_parser("verify", help="Verify the access token")
    parser_verify.set_defaults(func=cmd_verify)

    parser_whoami = subparsers.add_parser("whoami", help="Show the stored session")
    parser_whoami.add_argument(
        "--check",
        action="store_true",
        help="Validate against the server, clearing the session if rejected",
    )
    parser_whoami.set_defaults(func=cmd_whoami)

    parser_request = subparsers.add_parser("request", help="Issue an API request")
    parser_request.add_argument("endpoint", help="Endpoint path, e.g. /inventory")
    parser_request.add_argument(
        "-X", "--method", default="GET", help="HTTP method (default: GET)"
    )
    parser_request.add_argument("-d", "--data", help="JSON request body")
    parser_request.add_argument(
        "--no-auth", action="store_true", help="Do not send the bearer token"
    )
    parser_request.set_defaults(func=cmd_request)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    setup_logging(console_level=logging.DEBUG if args.verbose else logging.WARNING)

    try:
        return asyncio.run(args.func(args))
    except KeyboardInterrupt:
        print("\n\nOperation cancelled by user.")
        return 130
    except Exception as e:
        logger.error("Error: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
