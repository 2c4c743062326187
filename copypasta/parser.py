"""Command-line parser."""

import argparse
from pathlib import Path
from typing import Optional, Sequence

from copypasta.constants import DEFAULT_CONFIG_FILE, DESCRIPTION
from copypasta.models import (
    CommandRequest,
    ConsumeCommand,
    DefaultCommand,
    ListCommand,
    LoginCommand,
    ProduceCommand,
)


class ParseError(Exception):
    """Raised when command parsing fails."""

    pass


class _Parser(argparse.ArgumentParser):
    def error(self, message):
        raise ParseError(message)


def build_parser() -> argparse.ArgumentParser:
    parser = _Parser(prog="copypasta", description=DESCRIPTION)
    parser.add_argument(
        "-c", "--config",
        metavar="FILE",
        default=DEFAULT_CONFIG_FILE,
        help="Sets a custom config file",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", parser_class=_Parser)
    subparsers.add_parser("login", help="Logs you into Copypasta")
    subparsers.add_parser("list", help="Lists your pasta")
    subparsers.add_parser("produce", help="Produce a stream through your Copypasta account")
    consume = subparsers.add_parser("consume", help="Consume a stream created by a Copypasta user")
    consume.add_argument("stream_name", help="Stream name printed by the producer")
    return parser


def parse_command(argv: Optional[Sequence[str]] = None) -> tuple[CommandRequest, bool]:
    """Parse command-line arguments into a CommandRequest object.

    Args:
        argv: Arguments without the program name (defaults to sys.argv[1:])

    Returns:
        Tuple of (CommandRequest, debug flag)

    Raises:
        ParseError: If the arguments are invalid
    """
    args = build_parser().parse_args(argv)
    config_path = Path(args.config)

    if args.command == "login":
        cmd = LoginCommand(config_path=config_path)
    elif args.command == "list":
        cmd = ListCommand(config_path=config_path)
    elif args.command == "produce":
        cmd = ProduceCommand(config_path=config_path)
    elif args.command == "consume":
        if not args.stream_name.strip():
            raise ParseError("consume requires a non-empty stream name")
        cmd = ConsumeCommand(config_path=config_path, stream_name=args.stream_name.strip())
    else:
        cmd = DefaultCommand(config_path=config_path)

    return cmd, args.debug
