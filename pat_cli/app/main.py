#!/usr/bin/env python3
"""
Command line tool for Logto personal access tokens.

    logto-playground pat add <token>     store the PAT in the config file
    logto-playground deploy test         exchange the PAT for an access token
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional, TextIO

from shared.errors import ConfigurationError, ExchangeError, ExchangeStatusError
from shared.logging import LOG_LEVELS, configure_logging
from .adapters.token_exchange_client import TokenExchangeClient
from .config_store import DEFAULT_CONFIG_FILE_NAME, DEFAULT_CONFIG_TYPE, default_config_path, load_cli_config, save_pat


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="logto-playground",
        description="Manage a Logto personal access token and exchange it for access tokens.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help=f"config file (default is $HOME/{DEFAULT_CONFIG_FILE_NAME}.{DEFAULT_CONFIG_TYPE})",
    )
    parser.add_argument(
        "--log-level",
        default="warning",
        type=str.lower,
        choices=LOG_LEVELS,
        help="Log level for diagnostic output",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    pat = commands.add_parser("pat", help="Manage Personal Access Tokens (PAT)")
    pat_commands = pat.add_subparsers(dest="pat_command", required=True)
    add = pat_commands.add_parser("add", help="Add or update your Personal Access Token (PAT)")
    add.add_argument("token", help="The personal access token to store under 'pat'")

    deploy = commands.add_parser("deploy", help="Deployment commands and Logto integration")
    deploy_commands = deploy.add_subparsers(dest="deploy_command", required=True)
    deploy_commands.add_parser("test", help="Fetch and print a Logto access token using the configured PAT")
    return parser


def add_pat(token: str, config_path: Optional[Path], out: Optional[TextIO] = None, err: Optional[TextIO] = None) -> int:
    out, err = out or sys.stdout, err or sys.stderr
    try:
        written = save_pat(token, config_path)
    except ConfigurationError as exc:
        print(f"Error: {exc.message}", file=err)
        return 1

    print(f"PAT successfully set in {written}", file=out)
    print("The key 'pat' now holds your token.", file=out)
    return 0


def deploy_test(
    config_path: Optional[Path],
    client: Optional[TokenExchangeClient] = None,
    out: Optional[TextIO] = None,
    err: Optional[TextIO] = None,
) -> int:
    out, err = out or sys.stdout, err or sys.stderr
    try:
        request = load_cli_config(config_path).to_exchange_request()
    except ConfigurationError as exc:
        print(f"Error: {exc.message}", file=err)
        print(
            f"Add the PAT with 'logto-playground pat add <TOKEN>' and the 'logto:' settings "
            f"to {config_path or default_config_path()}.",
            file=err,
        )
        return 1

    client = client or TokenExchangeClient()
    print(f"Requesting access token from Logto at: {request.token_endpoint}", file=err)
    try:
        token_response = asyncio.run(client.exchange(request))
    except ExchangeStatusError as exc:
        print(f"Error: Logto token exchange failed with status code {exc.response_status}", file=err)
        print(f"Response from Logto: {exc.body}", file=err)
        return 1
    except ExchangeError as exc:
        print(f"Error: {exc.message}", file=err)
        body = exc.details.get("body")
        if body is not None:
            print(f"Raw response: {body}", file=err)
        return 1

    print("Successfully obtained Logto access token:", file=out)
    print(token_response.model_dump_json(indent=2), file=out)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    configure_logging("cli", args.log_level)

    if args.command == "pat":
        return add_pat(args.token, args.config)
    return deploy_test(args.config)


if __name__ == "__main__":
    raise SystemExit(main())
