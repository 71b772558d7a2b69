"""CLI entry point: parses arguments, loads settings and runs a session command."""

from __future__ import annotations

import argparse
import logging
import sys

from museum_auth.config import DEFAULT_CONFIG_PATH, ConfigError, load_settings


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="museum-auth",
        description="Museum app session management: sign in, sign out, refresh",
    )
    parser.add_argument(
        "--config",
        default=str(DEFAULT_CONFIG_PATH),
        help="Path to settings.yaml",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )
    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("status", help="Show the current session")
    login = commands.add_parser("login", help="Exchange an authorization code for a session")
    login.add_argument("--code", required=True, help="Authorization code from the provider")
    login.add_argument("--redirect-uri", default=None, help="Redirect URI used for the code")
    commands.add_parser("logout", help="Sign out locally and remotely")
    commands.add_parser("refresh", help="Renew tokens without changing the session")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    try:
        settings = load_settings(args.config)
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1

    from museum_auth.prompt.cli import run_cli

    options: dict[str, str] = {}
    if args.command == "login":
        options["code"] = args.code
        if args.redirect_uri:
            options["redirect_uri"] = args.redirect_uri
    return run_cli(settings, args.command, **options)


if __name__ == "__main__":
    sys.exit(main())
