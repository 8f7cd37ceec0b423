"""Command line entry point.

Usage:
    # Start a browser with remote debugging on the Intacct login page
    intacct-billpay launch

    # Sign in using INTACCT_COMPANY / INTACCT_LOGIN / INTACCT_PASSWORD
    intacct-billpay login

    # Pay bills on the open "Pay bills" page
    intacct-billpay run --ledger bills.csv
"""

import argparse
import asyncio
import sys

import structlog
from playwright.async_api import async_playwright

from intacct_billpay.browser import launch_browser, login
from intacct_billpay.config import configure_logging, get_settings
from intacct_billpay.controller import ExitCode, run_session
from intacct_billpay.errors import FatalError
from intacct_billpay.prompts import Prompter

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="intacct-billpay",
        description="Record ledger payments against open bills in Sage Intacct",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  run     Reconcile the ledger and pay matching bills (default)
  launch  Open a browser with remote debugging on the login page
  login   Sign in to Intacct in the already launched browser
        """,
    )
    parser.add_argument(
        "command",
        nargs="?",
        choices=["run", "launch", "login"],
        default="run",
        help="Command to run (default: run)",
    )
    parser.add_argument("--ledger", type=str, default=None, help="Ledger CSV path")
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Log level (default: from LOG_LEVEL)",
    )
    parser.add_argument(
        "--log-format",
        type=str,
        choices=["console", "json"],
        default=None,
        help="Log output format (default: from LOG_FORMAT)",
    )
    return parser


async def _run_browser_command(command: str) -> ExitCode:
    settings = get_settings()
    async with async_playwright() as playwright:
        try:
            if command == "launch":
                await launch_browser(playwright, settings)
            else:
                await login(playwright, settings)
        except FatalError as e:
            logger.error("command_failed", command=command, error=str(e))
            return ExitCode.FATAL
    return ExitCode.OK


async def async_main(argv: list[str] | None = None) -> ExitCode:
    args = build_parser().parse_args(argv)
    configure_logging(level=args.log_level, format=args.log_format)
    logger.info("starting_intacct_billpay", command=args.command)

    if args.command == "run":
        return await run_session(get_settings(), Prompter(), ledger_path=args.ledger)
    return await _run_browser_command(args.command)


def main(argv: list[str] | None = None) -> None:
    try:
        code = asyncio.run(async_main(argv))
    except KeyboardInterrupt:
        logger.info("interrupted")
        code = ExitCode.OK
    except Exception as e:
        logger.exception("unhandled_error", error=str(e))
        code = ExitCode.FATAL
    sys.exit(int(code))


if __name__ == "__main__":
    main()
