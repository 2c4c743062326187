"""CLI entry point."""

import sys
from typing import Optional, Sequence

from copypasta.commands import (
    handle_consume,
    handle_default,
    handle_list,
    handle_login,
    handle_produce,
)
from copypasta.constants import NOT_LOGGED_IN_TEXT
from copypasta.exceptions import NoConfigFoundError, PastaError
from copypasta.logging_config import setup_logging
from copypasta.models import (
    CommandRequest,
    ConsumeCommand,
    DefaultCommand,
    ListCommand,
    LoginCommand,
    ProduceCommand,
)
from copypasta.parser import ParseError, parse_command


def dispatch_command(cmd_obj: CommandRequest) -> Optional[str]:
    """Dispatch parsed command to appropriate handler."""
    if isinstance(cmd_obj, LoginCommand):
        return handle_login(cmd_obj)
    elif isinstance(cmd_obj, ListCommand):
        return handle_list(cmd_obj)
    elif isinstance(cmd_obj, ProduceCommand):
        return handle_produce(cmd_obj)
    elif isinstance(cmd_obj, ConsumeCommand):
        return handle_consume(cmd_obj)
    elif isinstance(cmd_obj, DefaultCommand):
        return handle_default(cmd_obj)
    raise TypeError(f"Unknown command type: {type(cmd_obj)}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for CLI."""
    try:
        cmd_obj, debug = parse_command(argv)
    except ParseError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    logger = setup_logging('copypasta', log_level='DEBUG' if debug else None)
    logger.debug(f"Running {cmd_obj.command} [config={cmd_obj.config_path}]")

    try:
        output = dispatch_command(cmd_obj)
    except NoConfigFoundError:
        print(NOT_LOGGED_IN_TEXT, file=sys.stderr)
        return 1
    except PastaError as e:
        logger.debug(f"{cmd_obj.command} failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        logger.error(f"Local I/O failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130

    if output is not None:
        print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
