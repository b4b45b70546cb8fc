"""twitchplays entry point.

Listens for chat messages in the authenticated user's channel and converts
them into key presses for the target game (Dark Souls by default).
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version

from twitchplays.app import run
from twitchplays.config import DEFAULT_TARGET, get_config_dir, get_settings
from twitchplays.errors import TwitchPlaysError
from twitchplays.logging_setup import setup_logging

logger = logging.getLogger(__name__)

# Single-dash spellings accepted by earlier releases.
_LEGACY_FLAGS = {
    "-help": "--help",
    "?": "--help",
    "/?": "--help",
    "-client": "--client",
    "-auth": "--auth",
    "-target": "--target",
}


def normalize_args(argv: list[str]) -> list[str]:
    normalized = []
    for arg in argv:
        flag, sep, value = arg.partition("=")
        if flag in _LEGACY_FLAGS:
            arg = _LEGACY_FLAGS[flag] + sep + value
        normalized.append(arg)
    return normalized


def _package_version() -> str:
    try:
        return get_version("twitchplays")
    except PackageNotFoundError:
        return "unknown"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="twitchplays",
        description=(
            "Twitch Plays Dark Souls - listens for chat messages in the authenticated "
            "user's channel and converts them into inputs for the game"
        ),
    )
    parser.add_argument("--client", "-c", action="store_true", help="reset client data")
    parser.add_argument(
        "--auth",
        "-a",
        action="store_true",
        help="reset credentials and force authentication",
    )
    parser.add_argument(
        "--target",
        "-t",
        default=None,
        metavar="NAME",
        help=f"name of the process to send commands to (default is {DEFAULT_TARGET})",
    )
    parser.add_argument(
        "--version",
        "-v",
        action="version",
        version=f"%(prog)s {_package_version()}",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(normalize_args(sys.argv[1:] if argv is None else argv))

    settings = get_settings()
    if args.target:
        settings = settings.model_copy(update={"target_process": args.target})

    setup_logging(settings.log_level, get_config_dir(settings) / settings.log_file)

    try:
        started = asyncio.run(run(settings, reset_client=args.client, reset_auth=args.auth))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 0
    except TwitchPlaysError as e:
        logger.error("%s", e)
        return 1
    except OSError as e:
        logger.error("Startup failed: %s", e)
        return 1

    if not started:
        logger.error("Application terminating")
        return 1
    logger.info("Application terminated")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
