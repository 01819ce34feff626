from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Callable, Mapping, Sequence

from kbc_tools.common import KbcToolError, configure_logging, optional_env


CommandFunc = Callable[[Sequence[str]], None]

LOG_LEVELS = ("debug", "info", "warning", "error")

logger = logging.getLogger(__name__)


def command_map() -> dict[str, CommandFunc]:
    """
    Map CLI command names to Python entry functions.

    Each value is a `main(argv)` function from one command module.
    """
    from kbc_tools.image_build import main as image_build

    return {
        "image-build": image_build,
    }


def build_parser(commands: Mapping[str, CommandFunc]) -> argparse.ArgumentParser:
    """Build argument parser with global options and one positional command choice."""
    parser = argparse.ArgumentParser(
        prog="kbc-tools",
        description="Run one container build command. Options after the command belong to it.",
    )
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        default=optional_env("KBC_LOG_LEVEL", "info").lower(),
        help="Log verbosity; logs go to stderr. [env: KBC_LOG_LEVEL]",
    )
    parser.add_argument("command", choices=sorted(commands.keys()))
    return parser


def split_command_args(
    argv: Sequence[str], commands: Mapping[str, CommandFunc]
) -> tuple[list[str], list[str]]:
    """
    Split argv at the command name.

    Everything after the command (including `--` and what follows) is handed
    to the command untouched, so argparse here never rewrites it.
    """
    argv = list(argv)
    for index, arg in enumerate(argv):
        if arg in commands:
            return argv[: index + 1], argv[index + 1 :]
    return argv, []


def run_command(
    command: str,
    command_args: Sequence[str],
    commands: Mapping[str, CommandFunc],
) -> None:
    """
    Run one registered command.

    `commands` is passed in to keep this function easy to test.
    """
    commands[command](command_args)


def main(argv: Sequence[str] | None = None) -> None:
    # Build command registry once so parser and dispatcher use the same keys.
    commands = command_map()
    parser = build_parser(commands)
    head, command_args = split_command_args(sys.argv[1:] if argv is None else argv, commands)
    args = parser.parse_args(head)

    try:
        configure_logging(args.log_level)
        logger.debug("Starting %s", args.command)
        run_command(args.command, command_args, commands)
        logger.debug("Finished %s", args.command)
    except KbcToolError as exc:
        # This is the only place an error becomes a process exit.
        logger.error("%s", exc)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
